"""
Core package for QStash Manager.

This package contains the QStash API client, error taxonomy and
retry machinery.
"""

__all__ = ["client"]
