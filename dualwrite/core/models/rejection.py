"""
RejectionReason model: why a raw record was refused before any store write.
"""

from enum import Enum

from pydantic import BaseModel


class RejectionCode(str, Enum):
    MISSING_ID = "MissingId"
    INVALID_ID = "InvalidId"
    INVALID_STATUS = "InvalidStatus"
    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INVALID_FIELD = "InvalidField"
    DUPLICATE_ID = "DuplicateId"


class RejectionReason(BaseModel):
    """
    Enumerated validation failure.

    Field-level codes carry the offending field name and render as
    ``MissingRequiredField(name)``; record-level codes render bare.
    """

    code: RejectionCode
    field_name: str | None = None

    class Config:
        frozen = True

    def __str__(self) -> str:
        if self.field_name is None:
            return self.code.value
        return f"{self.code.value}({self.field_name})"

    @classmethod
    def missing_id(cls) -> "RejectionReason":
        return cls(code=RejectionCode.MISSING_ID)

    @classmethod
    def invalid_id(cls) -> "RejectionReason":
        return cls(code=RejectionCode.INVALID_ID)

    @classmethod
    def invalid_status(cls) -> "RejectionReason":
        return cls(code=RejectionCode.INVALID_STATUS)

    @classmethod
    def missing_required_field(cls, field_name: str) -> "RejectionReason":
        return cls(code=RejectionCode.MISSING_REQUIRED_FIELD, field_name=field_name)

    @classmethod
    def invalid_field(cls, field_name: str) -> "RejectionReason":
        return cls(code=RejectionCode.INVALID_FIELD, field_name=field_name)

    @classmethod
    def duplicate_id(cls) -> "RejectionReason":
        return cls(code=RejectionCode.DUPLICATE_ID)
