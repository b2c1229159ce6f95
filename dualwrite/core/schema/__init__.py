"""
Schema contract definition and loading.
"""

from .contract import ContractLoader, FieldSpec, SchemaContract, parse_contract

__all__ = ["ContractLoader", "FieldSpec", "SchemaContract", "parse_contract"]
