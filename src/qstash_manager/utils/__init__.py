"""
Utility package for QStash Manager.

This package contains input validation helpers shared by the CLI.
"""

__all__ = ["validation"]
