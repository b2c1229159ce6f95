"""
EnumValidator - validates that a field holds one of a declared set of strings.
"""

from typing import Any

from dualwrite.core.models import RejectionReason

from .base_validator import BaseValidator


class EnumValidator(BaseValidator):
    """
    Validates that a field value is one of the allowed values.

    Parameters:
    - values: Allowed string values (matched exactly, after stripping whitespace)
    - reason: Optional RejectionReason to raise instead of InvalidField(name)
    """

    rule_type = "enum"

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        values = self.parameters.get("values")
        if not values:
            raise ValueError("EnumValidator requires 'values' parameter")

        self.allowed = frozenset(values)
        self.reason = self.parameters.get("reason")

    def rejection_reason(self) -> RejectionReason:
        return self.reason or super().rejection_reason()

    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        if value is None:
            return None

        if not isinstance(value, str) or value.strip() not in self.allowed:
            self.reject(f"Value {value!r} is not one of {sorted(self.allowed)}")

        return value.strip()
