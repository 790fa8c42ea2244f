"""Typer CLI for the Reelharvest manager service."""
from .app import app

__all__ = ["app"]
