"""
RequiredFieldValidator - the field must carry a non-blank value.
"""

from typing import Any

from dualwrite.core.models import RejectionReason

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """Rejects with MissingRequiredField(name) when the field is absent, null or blank."""

    rule_type = "required_field"

    def rejection_reason(self) -> RejectionReason:
        return RejectionReason.missing_required_field(self.field_name)

    def validate(self, value: Any, record: dict[str, Any]) -> Any:
        if self.field_name not in record:
            self.reject(f"'{self.field_name}' is absent")
        if value is None:
            self.reject(f"'{self.field_name}' is null")
        if isinstance(value, str) and not value.strip():
            self.reject(f"'{self.field_name}' is blank")
        return value
