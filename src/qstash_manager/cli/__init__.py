"""
CLI package for QStash Manager.

This package contains the Typer application and command handlers.
"""

__all__ = ["app"]
