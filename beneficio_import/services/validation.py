from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ..models.record import CanonicalRecord
from ..models.schema import field_keys
from ..models.validation import FieldValidation

"""Field validation hook.

An external validator (e.g. a text-completion service) receives one record as
a ``{field: value}`` dict and answers with one FieldValidation per schema
field. Only the request/response contract is enforced here. The import
orchestrator runs it when given one (``import_file(..., validator=...)``).
"""

__all__ = [
    "FieldValidator",
    "ValidationContractError",
    "invalid_fields",
    "validate_records",
]


class ValidationContractError(Exception):
    """Raised when a validator response does not cover each schema field exactly once."""


class FieldValidator(Protocol):
    def validate(self, record: dict[str, str]) -> list[FieldValidation]: ...


def _check_contract(row_number: int, results: Sequence[FieldValidation]) -> None:
    expected = field_keys()
    got = [r.field for r in results]
    if sorted(got) != sorted(expected):
        missing = sorted(set(expected) - set(got))
        extra = sorted(set(got) - set(expected))
        raise ValidationContractError(
            f"row {row_number}: validator answered fields={got} missing={missing} unexpected={extra}"
        )


def validate_records(
    records: Sequence[CanonicalRecord], validator: FieldValidator
) -> list[list[FieldValidation]]:
    """Call ``validator`` once per record; results keep record order."""
    out: list[list[FieldValidation]] = []
    for index, record in enumerate(records, start=1):
        results = list(validator.validate(record.to_store_row()))
        _check_contract(index, results)
        out.append(results)
    return out


def invalid_fields(results: Sequence[FieldValidation]) -> dict[str, str]:
    """Map of field -> error message for the failing entries of one record."""
    return {r.field: (r.error_message or "invalid") for r in results if not r.is_valid}
