"""
Common base for per-field record checks.

A field check receives the raw value plus the whole record, and either
returns the value in normalized form or raises ValidationError carrying
the RejectionReason reported back to the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, NoReturn

from dualwrite.core.models import RejectionReason


class ValidationError(Exception):
    """A field check rejected the record."""

    def __init__(self, reason: RejectionReason, message: str):
        self.reason = reason
        self.message = message
        super().__init__(f"[{reason}] {message}")


class BaseValidator(ABC):
    """Checks and normalizes one field of a raw record."""

    rule_type: str = "field"

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        self.field_name = field_name
        self.parameters = dict(parameters or {})

    @abstractmethod
    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        """
        Return the normalized value.

        Raises:
            ValidationError: If the value is rejected
        """

    def rejection_reason(self) -> RejectionReason:
        return RejectionReason.invalid_field(self.field_name)

    def reject(self, message: str, reason: RejectionReason | None = None) -> NoReturn:
        raise ValidationError(reason or self.rejection_reason(), message)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.rule_type} field={self.field_name!r}>"
