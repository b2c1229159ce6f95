"""
Schema contract for ingested records.

The contract declares the status enumeration, the id key-format bounds and
the typed attributes a record may carry. Contracts are loaded from YAML.
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from dualwrite.core.errors import ContractError

RESERVED_FIELDS = ("id", "status")


class FieldSpec(BaseModel):
    """
    Declaration of one record attribute.

    Attributes:
        name: Attribute name
        type: "string", "enum" (string constrained to ``values``) or "timestamp"
        required: Whether the attribute must be present and non-blank
        values: Allowed values for enum attributes
        max_length: Optional upper bound for string attributes
    """

    name: str = Field(..., min_length=1)
    type: Literal["string", "enum", "timestamp"] = "string"
    required: bool = False
    values: list[str] | None = None
    max_length: int | None = Field(None, gt=0)

    @model_validator(mode="after")
    def check_enum_values(self) -> "FieldSpec":
        if self.type == "enum" and not self.values:
            raise ValueError(f"Enum field '{self.name}' must declare 'values'")
        if self.name in RESERVED_FIELDS:
            raise ValueError(f"'{self.name}' is reserved and cannot be declared as an attribute")
        return self


class SchemaContract(BaseModel):
    """
    Validation contract applied to every raw record.

    Attributes:
        status_values: Declared status enumeration
        id_max_length: Maximum length of a record id
        fields: Typed attribute declarations, in declaration order
        allow_extra_fields: Keep undeclared attributes as-is when True,
            reject them when False
    """

    status_values: list[str] = Field(default_factory=lambda: ["Active", "Inactive"], min_length=1)
    id_max_length: int = Field(255, gt=0, le=255)
    fields: list[FieldSpec] = Field(
        default_factory=lambda: [FieldSpec(name="name", type="string", required=True)]
    )
    allow_extra_fields: bool = True

    @model_validator(mode="after")
    def check_unique_fields(self) -> "SchemaContract":
        names = [field_def.name for field_def in self.fields]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"Duplicate field declarations: {sorted(duplicates)}")
        return self

    @property
    def required_fields(self) -> list[str]:
        return [field_def.name for field_def in self.fields if field_def.required]

    def field(self, name: str) -> FieldSpec | None:
        for field_def in self.fields:
            if field_def.name == name:
                return field_def
        return None


class ContractLoader:
    """
    Loads a SchemaContract from a YAML file.

    Expected YAML format:
    ```yaml
    status_values: [Active, Inactive]
    id_max_length: 255
    allow_extra_fields: true

    fields:
      name:
        type: string
        required: true
      category:
        type: enum
        values: [retail, wholesale]
      created_at:
        type: timestamp
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the contract loader.

        Args:
            config_path: Path to the YAML contract file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Schema contract file not found: {config_path}")

    def load(self) -> SchemaContract:
        """
        Load and validate the contract.

        Raises:
            ContractError: If the YAML is malformed or violates the contract model
        """
        with open(self.config_path) as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ContractError(f"Invalid YAML in {self.config_path}: {e}") from e

        return parse_contract(config)


def parse_contract(config: dict[str, Any] | None) -> SchemaContract:
    """
    Build a SchemaContract from an already-parsed mapping.

    The ``fields`` section is keyed by attribute name; order is preserved.
    """
    if not config:
        return SchemaContract()
    if not isinstance(config, dict):
        raise ContractError("Schema contract must be a mapping")

    contract_args = {k: v for k, v in config.items() if k != "fields"}

    if "fields" in config:
        field_defs = config["fields"] or {}
        if not isinstance(field_defs, dict):
            raise ContractError("'fields' must be a mapping of field name to definition")

        fields = []
        for field_name, field_def in field_defs.items():
            field_def = field_def or {}
            if not isinstance(field_def, dict):
                raise ContractError(f"Definition of field '{field_name}' must be a mapping")
            fields.append({"name": field_name, **field_def})
        contract_args["fields"] = fields

    try:
        return SchemaContract(**contract_args)
    except ValidationError as e:
        raise ContractError(f"Invalid schema contract: {e}") from e
