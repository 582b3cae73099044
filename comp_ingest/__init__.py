"""Bulk employee-compensation import: spreadsheet/CSV uploads -> canonical employee records."""

__version__ = "0.1.0"
