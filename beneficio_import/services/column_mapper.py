from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence

from ..models.schema import FIELD_SCHEMA, SchemaField

"""Column mapping between spreadsheet headers and schema fields.

The mapping is injective: a schema field is assigned to at most one header,
and a header maps to at most one field. Automatic mapping matches a header
against each field's key and label after lowercasing and removing whitespace
and underscores; the first header (in sheet order) to match a field claims it.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ColumnMapping",
    "MappingIncompleteError",
    "apply_overrides",
    "auto_map",
    "normalize_label",
    "require_complete",
]

_STRIP_RE = re.compile(r"[\s_]+")

# Values accepted by remap() meaning "clear this header"
_NONE_VALUES = (None, "", "none")


class MappingIncompleteError(Exception):
    """Raised when a schema field has no header assigned."""

    def __init__(self, missing_labels: Sequence[str]) -> None:
        self.missing_labels = list(missing_labels)
        super().__init__(f"unmapped fields: {', '.join(self.missing_labels)}")


def normalize_label(text: str) -> str:
    return _STRIP_RE.sub("", str(text).lower())


class ColumnMapping:
    """Mutable header -> field key mapping with an injectivity invariant."""

    def __init__(
        self,
        headers: Sequence[str] = (),
        schema: Sequence[SchemaField] = FIELD_SCHEMA,
    ) -> None:
        self.headers = list(headers)
        self.schema = tuple(schema)
        self._keys = {f.key for f in self.schema}
        self._by_header: dict[str, str] = {}

    def remap(self, header: str, field: str | None) -> None:
        """Assign ``field`` to ``header`` or clear ``header`` when field is None/"none".

        A field already held by another header is released there first.
        """
        if field in _NONE_VALUES:
            self._by_header.pop(header, None)
            return
        if field not in self._keys:
            raise ValueError(f"unknown schema field: {field!r}")
        for other, assigned in list(self._by_header.items()):
            if assigned == field and other != header:
                del self._by_header[other]
        self._by_header[header] = field

    def field_for(self, header: str) -> str | None:
        return self._by_header.get(header)

    def header_for(self, field: str) -> str | None:
        for header, assigned in self._by_header.items():
            if assigned == field:
                return header
        return None

    def mapped_fields(self) -> set[str]:
        return set(self._by_header.values())

    def missing_fields(self) -> list[SchemaField]:
        """Schema fields (in schema order) with no header assigned."""
        mapped = self.mapped_fields()
        return [f for f in self.schema if f.key not in mapped]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def as_dict(self) -> dict[str, str]:
        return dict(self._by_header)

    def __len__(self) -> int:
        return len(self._by_header)

    def __contains__(self, header: object) -> bool:
        return header in self._by_header

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_header)

    def __repr__(self) -> str:  # pragma: no cover - debug aid
        return f"ColumnMapping({self._by_header!r})"


def auto_map(headers: Iterable[str], schema: Sequence[SchemaField] = FIELD_SCHEMA) -> ColumnMapping:
    """Infer the initial mapping from header text.

    Deterministic: same headers and schema always give the same mapping.
    """
    headers = list(headers)
    mapping = ColumnMapping(headers, schema)
    claimed: set[str] = set()
    for header in headers:
        normalized = normalize_label(header)
        if not normalized:
            continue
        match = next(
            (
                f for f in schema
                if normalize_label(f.key) == normalized or normalize_label(f.label) == normalized
            ),
            None,
        )
        # 既に先行ヘッダが取得したフィールドは割り当てない
        if match is not None and match.key not in claimed:
            mapping.remap(header, match.key)
            claimed.add(match.key)
    logger.debug("auto mapping: %s", mapping.as_dict())
    return mapping


def apply_overrides(mapping: ColumnMapping, overrides: Mapping[str, str | None]) -> ColumnMapping:
    """Apply operator reassignments (header -> field key, or None to clear)."""
    for header, field in overrides.items():
        if mapping.headers and header not in mapping.headers:
            logger.warning("column override ignored, header not in sheet: %s", header)
            continue
        mapping.remap(header, field)
    return mapping


def require_complete(mapping: ColumnMapping) -> None:
    """Raise MappingIncompleteError listing the labels of unmapped fields."""
    missing = mapping.missing_fields()
    if missing:
        raise MappingIncompleteError([f.label for f in missing])
