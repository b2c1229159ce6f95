"""
KeyFormatValidator - validates the record id used as idempotency key.
"""

import re
from typing import Any

from dualwrite.core.models import RejectionReason

from .base_validator import BaseValidator

_WHITESPACE = re.compile(r"\s")


class KeyFormatValidator(BaseValidator):
    """
    Validates a record id.

    Fails with:
    - MissingId if the id is absent, None, or empty/whitespace-only
    - InvalidId if the id is not a string, contains whitespace, or exceeds max_length

    Parameters:
    - max_length: Maximum id length (default 255)
    """

    rule_type = "key_format"

    def __init__(self, field_name: str = "id", parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.max_length = self.parameters.get("max_length", 255)

    def rejection_reason(self) -> RejectionReason:
        return RejectionReason.invalid_id()

    def validate(self, value: Any, record: dict[str, Any]) -> str:
        if value is None or (isinstance(value, str) and value.strip() == ""):
            self.reject("Record id is missing or empty", RejectionReason.missing_id())

        if not isinstance(value, str):
            self.reject(f"Record id must be a string, got {type(value).__name__}")

        if _WHITESPACE.search(value):
            self.reject("Record id contains whitespace")

        if len(value) > self.max_length:
            self.reject(f"Record id exceeds maximum length of {self.max_length} characters")

        return value
