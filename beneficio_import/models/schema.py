from __future__ import annotations

from dataclasses import dataclass

"""Field schema for beneficiary records.

The set of fields is closed: every imported row is materialized into a record
carrying exactly these ten keys, in this order. Labels are the display strings
shown to the operator and are also used for automatic header matching.
"""

__all__ = [
    "SchemaField",
    "FIELD_SCHEMA",
    "IDENTIFIER_FIELD",
    "IDENTIFIER_WIDTH",
    "BIRTH_DATE_FIELD",
    "AGE_FIELD",
    "CURRENCY_FIELDS",
    "field_keys",
    "get_field",
    "label_for",
]


@dataclass(frozen=True)
class SchemaField:
    """One semantic attribute every record must carry."""
    key: str  # stable machine identifier (store column name)
    label: str  # display string


FIELD_SCHEMA: tuple[SchemaField, ...] = (
    SchemaField("cpf", "CPF"),
    SchemaField("beneficio", "Benefício"),
    SchemaField("nome", "Nome"),
    SchemaField("valor_beneficio", "Valor Benefício"),
    SchemaField("data_nascimento", "Data Nascimento"),
    SchemaField("idade", "Idade"),
    SchemaField("codigo_especie", "Código Espécie"),
    SchemaField("margem_disponivel", "Margem Disponível"),
    SchemaField("margem_rmc", "Margem RMC"),
    SchemaField("telefone", "Telefone"),
)

IDENTIFIER_FIELD = "cpf"
IDENTIFIER_WIDTH = 11
BIRTH_DATE_FIELD = "data_nascimento"
AGE_FIELD = "idade"
CURRENCY_FIELDS: tuple[str, ...] = ("valor_beneficio", "margem_disponivel", "margem_rmc")

_BY_KEY = {f.key: f for f in FIELD_SCHEMA}
if len(_BY_KEY) != len(FIELD_SCHEMA):  # pragma: no cover - static data guard
    raise RuntimeError("duplicate key in FIELD_SCHEMA")


def field_keys() -> list[str]:
    """Schema keys in declaration order."""
    return [f.key for f in FIELD_SCHEMA]


def get_field(key: str) -> SchemaField:
    """Return the schema field for ``key``.

    Raises:
        KeyError: if ``key`` is not part of the schema
    """
    try:
        return _BY_KEY[key]
    except KeyError:
        raise KeyError(f"unknown schema field: {key!r}") from None


def label_for(key: str) -> str:
    """Display label for a key. Store columns outside the schema (e.g. ``created_at``)
    are rendered as ``Created At``.
    """
    field = _BY_KEY.get(key)
    if field is not None:
        return field.label
    return " ".join(part[:1].upper() + part[1:] for part in key.replace("_", " ").split(" ") if part)
