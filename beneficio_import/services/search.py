from __future__ import annotations

from collections.abc import Iterable

from ..models.record import CanonicalRecord
from .normalizer import normalize_identifier

__all__ = [
    "find_by_identifier",
    "search_contains",
]


def find_by_identifier(records: Iterable[CanonicalRecord], cpf: str) -> CanonicalRecord | None:
    """Exact lookup by CPF; the query is normalized the same way imports are."""
    wanted = normalize_identifier(cpf)
    if not wanted:
        return None
    for record in records:
        if record.identifier == wanted:
            return record
    return None


def search_contains(records: Iterable[CanonicalRecord], term: str) -> list[CanonicalRecord]:
    """Case-insensitive substring match over every stored value (extras included)."""
    needle = term.strip().casefold()
    if not needle:
        return []
    matches = []
    for record in records:
        for value in record.to_dict().values():
            if value is not None and needle in str(value).casefold():
                matches.append(record)
                break
    return matches
