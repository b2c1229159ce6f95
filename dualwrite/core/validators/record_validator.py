"""
Record validator: turns a raw caller mapping into a normalized Record.

Checks run in a fixed order and the first failure wins, so a record's
rejection reason is deterministic.
"""

from collections.abc import Mapping
from typing import Any

from dualwrite.core.errors import MalformedBatchError
from dualwrite.core.models import Record, RejectionReason
from dualwrite.core.schema import SchemaContract

from .base_validator import BaseValidator, ValidationError
from .enum_validator import EnumValidator
from .key_validator import KeyFormatValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator


class RecordValidator:
    """
    Validates raw records against a SchemaContract.

    Pure: no I/O and no shared mutable state, safe to call from any task.

    Order of checks:
    1. id key format (MissingId, InvalidId)
    2. status presence and enumeration (MissingRequiredField(status), InvalidStatus)
    3. required attributes (MissingRequiredField(name))
    4. typed attributes (InvalidField(name))
    5. undeclared attributes when extras are not allowed (InvalidField(name))
    """

    def __init__(self, contract: SchemaContract | None = None):
        self.contract = contract or SchemaContract()

        self.key_validator = KeyFormatValidator(
            "id", {"max_length": self.contract.id_max_length}
        )
        self.status_validators: list[BaseValidator] = [
            RequiredFieldValidator("status"),
            EnumValidator(
                "status",
                {"values": self.contract.status_values, "reason": RejectionReason.invalid_status()},
            ),
        ]
        self.required_validators = [
            RequiredFieldValidator(name) for name in self.contract.required_fields
        ]
        self.field_validators: dict[str, BaseValidator] = {}
        for field_def in self.contract.fields:
            if field_def.type == "enum":
                self.field_validators[field_def.name] = EnumValidator(field_def.name, {"values": field_def.values})
            else:
                self.field_validators[field_def.name] = TypeValidator(
                    field_def.name, {"expected_type": field_def.type, "max_length": field_def.max_length}
                )

    def validate(self, raw: Mapping[str, Any]) -> Record | RejectionReason:
        """
        Validate one raw record.

        Args:
            raw: Mapping of field name to value as submitted by the caller

        Returns:
            The normalized Record, or the RejectionReason of the first failed check

        Raises:
            MalformedBatchError: If raw is not a mapping at all
        """
        try:
            return self.validate_or_raise(raw)
        except ValidationError as e:
            return e.reason

    def validate_or_raise(self, raw: Mapping[str, Any]) -> Record:
        """Like validate(), but raises ValidationError on rejection."""
        if not isinstance(raw, Mapping):
            raise MalformedBatchError(
                f"Record must be a mapping of field name to value, got {type(raw).__name__}"
            )

        record = dict(raw)
        record_id = self.key_validator.validate(record.get("id"), record)

        status = record.get("status")
        for validator in self.status_validators:
            status = validator.validate(status, record)

        for validator in self.required_validators:
            validator.validate(record.get(validator.field_name), record)

        attributes: dict[str, Any] = {}
        for name, value in record.items():
            if name in ("id", "status"):
                continue

            validator = self.field_validators.get(name)
            if validator is not None:
                attributes[name] = validator.validate(value, record)
            elif self.contract.allow_extra_fields:
                attributes[name] = value
            else:
                raise ValidationError(
                    RejectionReason.invalid_field(name),
                    "Field is not declared in the schema contract"
                )

        return Record(id=record_id, status=status, attributes=attributes)

