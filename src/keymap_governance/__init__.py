"""Governance layer for extension-contributed keyboard shortcuts."""

__all__ = [
    "adapters",
    "config",
    "errors",
    "governance",
    "keymaps",
    "runtime",
    "snapshots",
    "storage",
    "workflows",
]

__version__ = "0.1.0"
