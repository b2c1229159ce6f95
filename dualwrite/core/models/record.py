"""
Record model representing a single validated unit of ingestion.
"""

from typing import Any

from pydantic import BaseModel, Field


class Record(BaseModel):
    """
    A validated, normalized record ready to be written to both stores.

    Records are only produced by the RecordValidator; raw caller input
    never reaches a store adapter directly.

    Attributes:
        id: Caller-supplied idempotency and reconciliation key
        status: One of the schema-declared status values
        attributes: Remaining fields in input order, normalized per schema
    """

    id: str = Field(..., min_length=1, max_length=255)
    status: str = Field(..., min_length=1)
    attributes: dict[str, Any] = Field(default_factory=dict)

    def primary_attributes(self) -> dict[str, Any]:
        """Column payload for the relational store (status plus attributes)."""
        return {"status": self.status, **self.attributes}

    def document_projection(self) -> dict[str, Any]:
        """
        Full denormalized document for the document store.

        The projection is self-contained so a reconciliation retry can
        replay the secondary write without reading the primary store.
        """
        return {"id": self.id, "status": self.status, **self.attributes}

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "rec-001",
                "status": "Active",
                "attributes": {
                    "name": "Sample Record 1",
                    "created_at": "2025-11-17T00:00:00+00:00"
                }
            }
        }
