"""Command line interface for the installment importer."""

from .app import main

__all__ = ["main"]
