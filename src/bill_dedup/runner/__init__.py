"""
CLI runner module.

Provides commands:
- dedupe: Deduplicate a JSON list of bill records
- field-map: Show the resolved field type map
- init-config: Write a default configuration file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
