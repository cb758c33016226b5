from __future__ import annotations

import pytest

from beneficio_import.services.column_mapper import (
    ColumnMapping,
    MappingIncompleteError,
    apply_overrides,
    auto_map,
    normalize_label,
    require_complete,
)

ALL_HEADERS = [
    "CPF", "Benefício", "Nome", "Valor Benefício", "Data Nascimento",
    "Idade", "Código Espécie", "Margem Disponível", "Margem RMC", "Telefone",
]


def test_normalize_label():
    assert normalize_label(" Data  Nascimento ") == "datanascimento"
    assert normalize_label("data_nascimento") == "datanascimento"


def test_auto_map_matches_labels_and_keys():
    mapping = auto_map(["cpf", "Nome", "VALOR_BENEFICIO", "Outra"])
    assert mapping.field_for("cpf") == "cpf"
    assert mapping.field_for("Nome") == "nome"
    assert mapping.field_for("VALOR_BENEFICIO") == "valor_beneficio"
    assert mapping.field_for("Outra") is None


def test_auto_map_complete_for_standard_headers():
    mapping = auto_map(ALL_HEADERS)
    assert mapping.is_complete
    require_complete(mapping)


def test_auto_map_first_header_claims_field():
    mapping = auto_map(["Nome", "nome"])
    assert mapping.field_for("Nome") == "nome"
    assert mapping.field_for("nome") is None
    assert mapping.header_for("nome") == "Nome"


def test_auto_map_is_deterministic():
    headers = ["Telefone", "CPF", "Nome", "Idade"]
    assert auto_map(headers).as_dict() == auto_map(headers).as_dict()


def test_remap_moves_field_and_keeps_injective():
    mapping = auto_map(["CPF", "Documento"])
    mapping.remap("Documento", "cpf")
    assert mapping.field_for("Documento") == "cpf"
    assert mapping.field_for("CPF") is None
    values = list(mapping.as_dict().values())
    assert len(values) == len(set(values))


def test_mapping_stays_injective_across_remap_sequence():
    mapping = auto_map(["CPF", "Documento", "Nome", "Nome Completo"])

    def assert_injective():
        values = list(mapping.as_dict().values())
        assert len(values) == len(set(values))

    steps = [
        ("Documento", "cpf"),        # 移動
        ("Documento", None),         # 解除
        ("CPF", "cpf"),              # 再割当
        ("Nome Completo", "nome"),   # 別フィールドを奪う
        ("Nome Completo", "cpf"),    # さらに付け替え
        ("Nome", "nome"),
    ]
    for header, field in steps:
        mapping.remap(header, field)
        assert_injective()
        assert mapping.field_for(header) == field

    assert mapping.as_dict() == {"Nome Completo": "cpf", "Nome": "nome"}
    assert mapping.header_for("cpf") == "Nome Completo"


def test_remap_none_clears_header():
    mapping = auto_map(["CPF"])
    mapping.remap("CPF", "none")
    assert "CPF" not in mapping
    assert len(mapping) == 0


def test_remap_unknown_field_raises():
    mapping = ColumnMapping(["X"])
    with pytest.raises(ValueError):
        mapping.remap("X", "email")


def test_apply_overrides_ignores_unknown_headers():
    mapping = auto_map(["Documento"])
    apply_overrides(mapping, {"Documento": "cpf", "Inexistente": "nome"})
    assert mapping.as_dict() == {"Documento": "cpf"}


def test_require_complete_lists_missing_labels():
    mapping = auto_map(["CPF", "Nome"])
    with pytest.raises(MappingIncompleteError) as e:
        require_complete(mapping)
    assert "Benefício" in e.value.missing_labels
    assert "CPF" not in e.value.missing_labels
    assert len(e.value.missing_labels) == 8
