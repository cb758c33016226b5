from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .schema import FIELD_SCHEMA, IDENTIFIER_FIELD

"""CanonicalRecord model.

One normalized beneficiary row. All ten schema keys are always present (empty
string when unmapped or blank). Columns the store adds on its own (row id,
timestamps) are kept apart in ``extras`` so a record read back from the store
can be re-upserted without writing those columns.
"""

__all__ = [
    "CanonicalRecord",
]

_KEYS: tuple[str, ...] = tuple(f.key for f in FIELD_SCHEMA)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


@dataclass(frozen=True)
class CanonicalRecord:
    values: Mapping[str, str]
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = set(self.values) - set(_KEYS)
        if unknown:
            raise ValueError(f"unknown schema fields: {sorted(unknown)}")
        # 欠落キーは空文字で補完 (スキーマ順に並べ直す)
        filled = {k: _as_text(self.values.get(k)) for k in _KEYS}
        object.__setattr__(self, "values", filled)
        object.__setattr__(self, "extras", dict(self.extras))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CanonicalRecord:
        """Build a record from a store row (schema columns + anything else)."""
        values = {k: _as_text(v) for k, v in data.items() if k in _KEYS}
        extras = {k: v for k, v in data.items() if k not in _KEYS}
        return cls(values=values, extras=extras)

    @property
    def identifier(self) -> str:
        return self.values[IDENTIFIER_FIELD]

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.values:
            return self.values[key]
        return self.extras.get(key, default)

    def replace(self, **changes: str) -> CanonicalRecord:
        """Return a copy with the given schema fields rewritten."""
        merged = dict(self.values)
        merged.update(changes)
        return CanonicalRecord(values=merged, extras=self.extras)

    def to_dict(self) -> dict[str, Any]:
        """Schema fields in order, followed by extras."""
        out: dict[str, Any] = dict(self.values)
        for k, v in self.extras.items():
            out[k] = v
        return out

    def to_store_row(self) -> dict[str, str]:
        """Only the schema columns; extras are owned by the store."""
        return dict(self.values)

    def to_row(self) -> tuple[str, ...]:
        return tuple(self.values[k] for k in _KEYS)
