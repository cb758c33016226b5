"""Beneficiary spreadsheet import tool (spreadsheet -> PostgreSQL)."""

__version__ = "0.1.0"
