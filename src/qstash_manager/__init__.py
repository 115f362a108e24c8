"""
QStash Manager - A Python-based command-line manager for Upstash QStash.

This package provides multi-environment credential management and a typed,
retrying client for the QStash REST API.
"""

__version__ = "0.1.0"
__author__ = "QStash Manager Team"
__license__ = "Apache-2.0"

from typing import Final

# Package metadata
VERSION: Final[str] = __version__
PACKAGE_NAME: Final[str] = "qstash-manager"
USER_AGENT: Final[str] = f"{PACKAGE_NAME}/{VERSION}"

# Re-export commonly used items
__all__ = [
    "__version__",
    "VERSION",
    "PACKAGE_NAME",
    "USER_AGENT",
]
