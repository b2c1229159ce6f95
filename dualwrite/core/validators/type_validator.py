"""
TypeValidator - validates and normalizes string and timestamp attributes.
"""

from datetime import datetime, timezone
from typing import Any

from .base_validator import BaseValidator


class TypeValidator(BaseValidator):
    """
    Validates that a field matches its declared type and normalizes it.

    Supported types:
    - string: must be a str; surrounding whitespace is stripped; optional max_length
    - timestamp: datetime or ISO-8601 string; normalized to UTC ISO-8601 text.
      Naive values are taken as UTC.
    """

    rule_type = "type_check"
    SUPPORTED_TYPES = ("string", "timestamp")

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        expected_type = self.parameters.get("expected_type")
        if not expected_type:
            raise ValueError("TypeValidator requires 'expected_type' parameter")
        if expected_type not in self.SUPPORTED_TYPES:
            raise ValueError(f"Unsupported type: {expected_type}")

        self.expected_type = expected_type
        self.max_length = self.parameters.get("max_length")

    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        """
        Validate and normalize the value.

        None passes through untouched (presence is RequiredFieldValidator's job).

        Raises:
            ValidationError: InvalidField(name) if the value has the wrong type
        """
        if value is None:
            return None

        if self.expected_type == "string":
            return self._normalize_string(value)
        return self._normalize_timestamp(value)

    def _normalize_string(self, value: Any) -> str:
        if not isinstance(value, str):
            self.reject(f"Expected string, got {type(value).__name__}")

        normalized = value.strip()
        if self.max_length is not None and len(normalized) > self.max_length:
            self.reject(f"Value exceeds maximum length of {self.max_length}")
        return normalized

    def _normalize_timestamp(self, value: Any) -> str:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            text = value.strip()
            # fromisoformat before 3.11 rejects the Z suffix
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                self.reject(f"Value '{value}' is not an ISO-8601 timestamp")
        else:
            self.reject(f"Expected timestamp, got {type(value).__name__}")

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc).isoformat()
