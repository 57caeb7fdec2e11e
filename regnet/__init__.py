"""regnet source package.

This package contains the property registration ledger:
- config: Configuration loading and management
- registry: Keys, records, registries, transfer workflow and contracts
"""

from __future__ import annotations

__all__: list[str] = []
