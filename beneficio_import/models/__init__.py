"""Domain models for the beneficiary spreadsheet import tool."""

from .cell import Cell, DecodedTable, RawKind
from .config_models import DatabaseConfig, ImportConfig
from .record import CanonicalRecord
from .schema import FIELD_SCHEMA, SchemaField

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Schema
    "FIELD_SCHEMA",
    "SchemaField",
    # Processing models
    "Cell",
    "DecodedTable",
    "RawKind",
    "CanonicalRecord",
]
