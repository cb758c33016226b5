from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "FieldValidation",
]


@dataclass(frozen=True)
class FieldValidation:
    """Verdict for one field of one record, as returned by a field validator."""
    field: str
    is_valid: bool
    error_message: str | None = None
