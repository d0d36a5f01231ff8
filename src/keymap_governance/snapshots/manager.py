"""Bounded, ordered history of artifact + governance-state snapshots."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable, List, Optional

from keymap_governance.config import DEFAULT_MAX_SNAPSHOTS, SNAPSHOTS_KEY
from keymap_governance.errors import ProtectedResourceViolation
from keymap_governance.governance.models import GovernanceState, now_ms
from keymap_governance.runtime.telemetry import record_event, span
from keymap_governance.storage.keybindings_file import KeybindingsFile
from keymap_governance.storage.providers import KeyValueStore

from .models import BASE_SNAPSHOT_NAME, Snapshot, generate_snapshot_id


class SnapshotManager:
    """Keeps at most ``max_snapshots`` named snapshots plus the Base snapshot.

    Order is newest first with Base always last. Base never counts toward
    the bound and is never evicted.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        keybindings_file: KeybindingsFile,
        *,
        key: str = SNAPSHOTS_KEY,
        max_snapshots: int = DEFAULT_MAX_SNAPSHOTS,
        clock: Callable[[], int] = now_ms,
        logger_name: str | None = None,
    ) -> None:
        if max_snapshots <= 0:
            raise ValueError("max_snapshots must be positive")
        self._storage = storage
        self._file = keybindings_file
        self._key = key
        self._max = max_snapshots
        self._clock = clock
        self._logger_name = logger_name
        self._lock = threading.RLock()

    @property
    def max_snapshots(self) -> int:
        return self._max

    def list(self) -> List[Snapshot]:
        with self._lock:
            return self._load()

    def get(self, snapshot_id: str) -> Optional[Snapshot]:
        return next((s for s in self.list() if s.id == snapshot_id), None)

    def base(self) -> Optional[Snapshot]:
        return next((s for s in self.list() if s.is_base), None)

    def create(self, name: str, state: GovernanceState) -> Snapshot:
        with self._lock, span(
            "snapshots::create",
            logger_name=self._logger_name,
            component="snapshots",
            metadata={"name": name},
        ) as handle:
            snapshot = self._capture(name, state, is_base=False)
            snapshots = self._load()
            base = next((s for s in snapshots if s.is_base), None)
            history = [s for s in snapshots if not s.is_base]
            history.insert(0, snapshot)
            evicted = history[self._max :]
            history = history[: self._max]
            if base is not None:
                history.append(base)
            if evicted:
                handle.add_metadata("evicted", ",".join(s.id for s in evicted))
            self._save(history)
            return snapshot

    def create_base(self, state: GovernanceState) -> Snapshot:
        """Capture the Base snapshot once; later calls return the existing one."""

        with self._lock:
            snapshots = self._load()
            existing = next((s for s in snapshots if s.is_base), None)
            if existing is not None:
                return existing
            with span(
                "snapshots::create_base",
                logger_name=self._logger_name,
                component="snapshots",
            ):
                base = self._capture(BASE_SNAPSHOT_NAME, state, is_base=True)
                self._save([*snapshots, base])
                return base

    def restore(self, snapshot_id: str) -> Optional[GovernanceState]:
        """Write the snapshot's artifact back and hand its state to the caller.

        The governance store is left untouched; installing the returned state
        is the caller's job and must happen after this returns.
        """

        with self._lock:
            snapshot = self.get(snapshot_id)
            if snapshot is None:
                return None
            with span(
                "snapshots::restore",
                logger_name=self._logger_name,
                component="snapshots",
                metadata={"snapshot_id": snapshot_id},
            ):
                self._file.write_raw(snapshot.keybindings_content)
            return snapshot.governance_state.copy()

    def rename(self, snapshot_id: str, name: str) -> bool:
        if not name or not name.strip():
            raise ValueError("snapshot name cannot be empty")
        with self._lock:
            snapshots = self._load()
            for index, snapshot in enumerate(snapshots):
                if snapshot.id == snapshot_id:
                    snapshots[index] = replace(snapshot, name=name)
                    self._save(snapshots)
                    return True
            return False

    def delete(self, snapshot_id: str) -> bool:
        with self._lock:
            snapshots = self._load()
            target = next((s for s in snapshots if s.id == snapshot_id), None)
            if target is None:
                return False
            if target.is_base:
                raise ProtectedResourceViolation(
                    "The base snapshot cannot be deleted", resource=snapshot_id
                )
            self._save([s for s in snapshots if s.id != snapshot_id])
            record_event(
                "snapshots.deleted",
                data={"snapshot_id": snapshot_id},
                logger_name=self._logger_name,
            )
            return True

    def _capture(self, name: str, state: GovernanceState, *, is_base: bool) -> Snapshot:
        created_at = self._clock()
        return Snapshot(
            id=generate_snapshot_id(created_at),
            name=name,
            created_at=created_at,
            keybindings_content=self._file.read_raw(),
            governance_state=state.copy(),
            is_base=is_base,
        )

    def _load(self) -> List[Snapshot]:
        raw = self._storage.get(self._key, [])
        if not isinstance(raw, list):
            record_event(
                "snapshots.history_corrupt",
                level="warning",
                data={"key": self._key},
                logger_name=self._logger_name,
            )
            return []
        snapshots: List[Snapshot] = []
        for item in raw:
            try:
                snapshots.append(Snapshot.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                record_event(
                    "snapshots.entry_dropped",
                    level="warning",
                    data={"error": str(exc)},
                    logger_name=self._logger_name,
                )
        return snapshots

    def _save(self, snapshots: List[Snapshot]) -> None:
        self._storage.set(self._key, [snapshot.to_dict() for snapshot in snapshots])


__all__ = ["SnapshotManager"]
