from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the beneficiary import tool.

Populated by ``beneficio_import.config.loader.load_config`` from
``config/import.yml``. Environment variables take precedence over the
``database`` section (resolved in the CLI).
"""

DEFAULT_TABLE = "beneficiarios"
DEFAULT_PAGE_SIZE = 1000
DEFAULT_CHUNK_SIZE = 1000


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback configuration.

    Used only when the corresponding environment variables are not set.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for import, repair and export runs."""
    source_directory: str  # Directory scanned for spreadsheets
    table: str = DEFAULT_TABLE  # Target table in the store
    page_size: int = DEFAULT_PAGE_SIZE  # Full-collection read page size
    upsert_chunk_size: int = DEFAULT_CHUNK_SIZE  # Rows per upsert call
    # Header -> schema key (None clears the automatic mapping for that header)
    column_overrides: dict[str, str | None] = field(default_factory=dict)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
