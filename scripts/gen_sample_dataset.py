#!/usr/bin/env python3
"""Sample beneficiary workbook generator.

Generates synthetic spreadsheets shaped like real operator exports, for manual
runs and throughput checks of the importer:
- Row 1: header row (field labels, optionally with renamed columns)
- Row 2+: data rows mixing the formats seen in the field: formatted and
  unformatted CPFs, 'R$ 1.234,56' text next to numeric amounts, birth dates as
  day serials, native dates and DD/MM/YYYY text
- a configurable share of repeated CPFs and blank CPFs
"""
from __future__ import annotations

import argparse
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

LABELS = [
    "CPF",
    "Benefício",
    "Nome",
    "Valor Benefício",
    "Data Nascimento",
    "Idade",
    "Código Espécie",
    "Margem Disponível",
    "Margem RMC",
    "Telefone",
]

FIRST_NAMES = ["Maria", "José", "Ana", "João", "Antônio", "Francisca", "Carlos", "Paulo", "Adriana", "Lucas"]
LAST_NAMES = ["Silva", "Santos", "Oliveira", "Souza", "Rodrigues", "Ferreira", "Alves", "Pereira", "Lima", "Gomes"]
SPECIES_CODES = ["21", "32", "41", "42", "87", "88"]

SERIAL_EPOCH = date(1899, 12, 30)


def _format_cpf(number: int, formatted: bool) -> str:
    digits = f"{number:011d}"
    if not formatted:
        return digits.lstrip("0") or "0"
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def _format_brl(amount: float) -> str:
    """1234.5 -> 'R$ 1.234,50'"""
    whole, cents = f"{amount:,.2f}".split(".")
    return f"R$ {whole.replace(',', '.')},{cents}"


def generate_beneficiary_rows(
    rows: int,
    duplicate_ratio: float = 0.05,
    blank_ratio: float = 0.01,
    seed: int = 42,
) -> list[list[Any]]:
    """Generate data rows (no header) in LABELS order."""
    rng = np.random.default_rng(seed)
    today = date(2025, 1, 1)
    cpf_pool = rng.integers(1, 99_999_999_999, size=rows, dtype=np.int64).tolist()

    out: list[list[Any]] = []
    for i in range(rows):
        if i > 0 and rng.random() < duplicate_ratio:
            cpf_number = cpf_pool[int(rng.integers(0, i))]
        else:
            cpf_number = cpf_pool[i]
        if rng.random() < blank_ratio:
            cpf: Any = None
        else:
            cpf = _format_cpf(cpf_number, formatted=bool(rng.random() < 0.5))

        age = int(rng.integers(18, 95))
        born = today - timedelta(days=age * 365 + int(rng.integers(0, 365)))
        style = int(rng.integers(0, 3))
        if style == 0:
            birth: Any = (born - SERIAL_EPOCH).days  # day serial
        elif style == 1:
            birth = pd.Timestamp(born)
        else:
            birth = born.strftime("%d/%m/%Y")

        benefit = float(np.round(rng.uniform(1412.0, 7786.02), 2))
        available = float(np.round(benefit * 0.35, 2))
        rmc = float(np.round(benefit * 0.05, 2))
        as_text = rng.random() < 0.5

        out.append([
            cpf,
            str(int(rng.integers(1_000_000_000, 9_999_999_999))),
            f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
            _format_brl(benefit) if as_text else benefit,
            birth,
            str(age),
            str(rng.choice(SPECIES_CODES)),
            _format_brl(available) if as_text else available,
            _format_brl(rmc) if as_text else rmc,
            f"11{int(rng.integers(900000000, 999999999))}",
        ])
    return out


def create_excel_file(
    output_path: Path,
    rows: int,
    renames: dict[str, str] | None = None,
    sheet_name: str = "Planilha1",
    duplicate_ratio: float = 0.05,
    blank_ratio: float = 0.01,
    seed: int = 42,
) -> None:
    """Write a single-sheet beneficiary workbook (header in row 1)."""
    headers = [(renames or {}).get(label, label) for label in LABELS]
    data = generate_beneficiary_rows(rows, duplicate_ratio, blank_ratio, seed)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
        pd.DataFrame([headers, *data]).to_excel(writer, sheet_name=sheet_name, header=False, index=False)

    print(f"Created Excel file: {output_path}")
    print(f"  Sheet: {sheet_name}")
    print(f"  Rows: {rows} (+ 1 header row)")
    print(f"  Headers: {', '.join(headers)}")


def _parse_renames(values: list[str]) -> dict[str, str]:
    renames: dict[str, str] = {}
    for item in values:
        label, sep, header = item.partition("=")
        if not sep or label not in LABELS:
            raise ValueError(f"--rename expects LABEL=HEADER with a known label, got {item!r}")
        renames[label] = header
    return renames


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate synthetic beneficiary spreadsheets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 10k rows with the standard headers
  %(prog)s data/lote1.xlsx --rows 10000

  # Headers that automatic mapping cannot resolve (needs --map on import)
  %(prog)s data/lote2.xlsx --rename CPF=Documento --rename Nome="Nome Completo"
        """
    )
    parser.add_argument("output", type=Path, help="Output Excel file path")
    parser.add_argument("--rows", type=int, default=10_000, help="Number of data rows (default: 10,000)")
    parser.add_argument("--rename", action="append", default=[], metavar="LABEL=HEADER",
                        help="Write HEADER instead of the field label LABEL (repeatable)")
    parser.add_argument("--sheet", default="Planilha1", help="Sheet name (default: Planilha1)")
    parser.add_argument("--duplicates", type=float, default=0.05, help="Share of repeated CPFs (default: 0.05)")
    parser.add_argument("--blanks", type=float, default=0.01, help="Share of blank CPFs (default: 0.01)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")

    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    try:
        renames = _parse_renames(args.rename)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        create_excel_file(
            args.output,
            args.rows,
            renames,
            args.sheet,
            args.duplicates,
            args.blanks,
            args.seed,
        )
    except Exception as e:
        print(f"\nError generating dataset: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
