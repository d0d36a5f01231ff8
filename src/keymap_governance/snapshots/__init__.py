"""Snapshot history of the keybindings artifact and governance state."""

from .manager import SnapshotManager
from .models import BASE_SNAPSHOT_NAME, Snapshot, generate_snapshot_id

__all__ = [
    "BASE_SNAPSHOT_NAME",
    "Snapshot",
    "SnapshotManager",
    "generate_snapshot_id",
]
