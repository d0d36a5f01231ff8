"""Wires the governance components together and gates destructive operations.

``GovernanceSession`` is what a host (the Textual app, a CLI, tests)
holds on to. Operations that throw away user state ask the injected
``confirm`` callback first and do nothing when it declines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from keymap_governance.config import DEFAULT_MAX_SNAPSHOTS, GovernanceSettings
from keymap_governance.governance.audit import (
    AuditReport,
    build_audit,
    deactivate_all_conflicting,
)
from keymap_governance.governance.service import GovernanceService
from keymap_governance.governance.store import GovernanceStore
from keymap_governance.governance.transfer import ImportReport, export_json, import_decisions
from keymap_governance.governance.watcher import (
    ExtensionWatcher,
    NewShortcutsNotification,
    handle_first_run,
)
from keymap_governance.keymaps.conflicts import ConflictDetector
from keymap_governance.keymaps.parser import ExtensionProvider, KeybindingParser
from keymap_governance.runtime.telemetry import record_event
from keymap_governance.snapshots.manager import SnapshotManager
from keymap_governance.snapshots.models import Snapshot
from keymap_governance.storage.keybindings_file import KeybindingsFile
from keymap_governance.storage.providers import (
    JsonFileKeyValueStore,
    KeyValueStore,
    LocalTextFile,
    ManifestDirectory,
    TextFile,
)

Confirm = Callable[[str], bool]


def decline(_message: str) -> bool:
    return False


@dataclass(slots=True)
class GovernanceSession:
    file: KeybindingsFile
    parser: KeybindingParser
    store: GovernanceStore
    service: GovernanceService
    snapshots: SnapshotManager
    detector: ConflictDetector
    watcher: ExtensionWatcher
    confirm: Confirm = decline
    logger_name: Optional[str] = None

    @classmethod
    def build(
        cls,
        *,
        text_file: TextFile,
        storage: KeyValueStore,
        extensions: ExtensionProvider,
        platform: Optional[str] = None,
        max_snapshots: int = DEFAULT_MAX_SNAPSHOTS,
        notify_on_new: bool = True,
        confirm: Confirm = decline,
        logger_name: Optional[str] = None,
    ) -> "GovernanceSession":
        keybindings_file = KeybindingsFile(text_file, logger_name=logger_name)
        parser = KeybindingParser(keybindings_file, extensions, platform=platform)
        store = GovernanceStore(storage, logger_name=logger_name)
        service = GovernanceService(store, keybindings_file, parser, logger_name=logger_name)
        return cls(
            file=keybindings_file,
            parser=parser,
            store=store,
            service=service,
            snapshots=SnapshotManager(
                storage,
                keybindings_file,
                max_snapshots=max_snapshots,
                logger_name=logger_name,
            ),
            detector=ConflictDetector(logger_name=logger_name),
            watcher=ExtensionWatcher(
                service, parser, notify_on_new=notify_on_new, logger_name=logger_name
            ),
            confirm=confirm,
            logger_name=logger_name,
        )

    @classmethod
    def from_settings(
        cls,
        settings: GovernanceSettings,
        *,
        extensions: Optional[ExtensionProvider] = None,
        confirm: Confirm = decline,
        logger_name: Optional[str] = None,
    ) -> "GovernanceSession":
        if extensions is None:
            extensions = (
                ManifestDirectory(settings.extensions_path)
                if settings.extensions_path
                else list
            )
        return cls.build(
            text_file=LocalTextFile(settings.keybindings_path),
            storage=JsonFileKeyValueStore(settings.state_path),
            extensions=extensions,
            platform=settings.platform,
            max_snapshots=settings.max_snapshots,
            notify_on_new=settings.notify_on_new,
            confirm=confirm,
            logger_name=logger_name,
        )

    def start(self) -> List[NewShortcutsNotification]:
        """Run the activation flow: first-run setup, or repair plus new-shortcut check."""

        if self.service.is_first_run():
            handle_first_run(self.snapshots, self.service, self.parser)
            return []
        self.service.reconcile()
        return self.watcher.initial_check()

    def audit(self) -> AuditReport:
        return build_audit(self.parser, self.service, self.detector)

    def create_snapshot(self, name: str) -> Snapshot:
        return self.snapshots.create(name, self.service.get_state())

    def restore_snapshot(self, snapshot_id: str) -> bool:
        snapshot = self.snapshots.get(snapshot_id)
        if snapshot is None:
            return False
        if not self._confirmed(
            "restore_snapshot",
            f"Restore snapshot '{snapshot.name}'? Current keybindings will be replaced.",
        ):
            return False
        state = self.snapshots.restore(snapshot_id)
        if state is None:
            return False
        self.service.install_state(state)
        return True

    def delete_snapshot(self, snapshot_id: str) -> bool:
        snapshot = self.snapshots.get(snapshot_id)
        if snapshot is None:
            return False
        if not self._confirmed("delete_snapshot", f"Delete snapshot '{snapshot.name}'?"):
            return False
        return self.snapshots.delete(snapshot_id)

    def deactivate_all_from_extension(self, extension_id: str) -> int:
        name = self.parser.extension_name(extension_id)
        if not self._confirmed(
            "deactivate_all_from_extension",
            f"Deactivate all pending shortcuts from {name}?",
        ):
            return 0
        return self.service.deactivate_all_from_extension(extension_id)

    def deactivate_all_conflicting(self) -> int:
        if not self._confirmed(
            "deactivate_all_conflicting",
            "This will deactivate all conflicting extension shortcuts. Continue?",
        ):
            return 0
        return deactivate_all_conflicting(self.parser, self.service, self.detector)

    def reset_all_decisions(self) -> bool:
        if not self._confirmed(
            "reset_all_decisions", "Reset every governance decision to pending?"
        ):
            return False
        self.service.reset_all_decisions()
        return True

    def prepare_for_uninstall(self) -> int:
        return self.service.prepare_for_uninstall()

    def export_backup(self, **kwargs: Any) -> str:
        return export_json(self.service, **kwargs)

    def import_backup(self, payload: Any) -> ImportReport:
        return import_decisions(self.service, payload)

    def _confirmed(self, operation: str, message: str) -> bool:
        if self.confirm(message):
            return True
        record_event(
            "workflow.cancelled",
            data={"operation": operation},
            logger_name=self.logger_name,
        )
        return False


__all__ = ["Confirm", "GovernanceSession", "decline"]
