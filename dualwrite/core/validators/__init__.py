"""
Record validation.

Provides field validators for ids, required fields, typed attributes and
enumerations, and the RecordValidator that applies a SchemaContract.
"""

from .base_validator import BaseValidator, ValidationError
from .enum_validator import EnumValidator
from .key_validator import KeyFormatValidator
from .record_validator import RecordValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "EnumValidator",
    "KeyFormatValidator",
    "RecordValidator",
    "RequiredFieldValidator",
    "TypeValidator",
]
