"""Spreadsheet import engine for an installment-sales store.

Reads customer, transaction and payment workbooks, validates and
cross-references their rows against existing sequence numbers and commits
them to PostgreSQL.
"""

__version__ = "0.1.0"
