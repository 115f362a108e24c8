"""
Entry point for running QStash Manager as a module.

This allows users to run the CLI using:
    python -m qstash_manager [command] [options]
"""

from qstash_manager.cli.app import main

if __name__ == "__main__":
    main()
