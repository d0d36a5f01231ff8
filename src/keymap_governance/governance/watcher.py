"""Detects newly installed or updated extensions with undecided bindings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Tuple

from keymap_governance.keymaps.parser import KeybindingParser
from keymap_governance.runtime.telemetry import record_event, span

from .service import GovernanceService

if TYPE_CHECKING:  # pragma: no cover
    from keymap_governance.snapshots.manager import SnapshotManager
    from keymap_governance.snapshots.models import Snapshot


@dataclass(frozen=True, slots=True)
class NewShortcutsNotification:
    extension_id: str
    extension_name: str
    new_count: int
    keybinding_ids: Tuple[str, ...] = ()


NotificationListener = Callable[[List[NewShortcutsNotification]], None]


class ExtensionWatcher:
    """Compares installed extension versions against the last seen ones.

    Hosts call ``check_for_new_shortcuts`` whenever their extension set
    changes. Listeners receive one list per check that found anything.
    """

    def __init__(
        self,
        service: GovernanceService,
        parser: KeybindingParser,
        *,
        notify_on_new: bool = True,
        logger_name: str | None = None,
    ) -> None:
        self.service = service
        self.parser = parser
        self.notify_on_new = notify_on_new
        self._logger_name = logger_name
        self._listeners: List[NotificationListener] = []

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def check_for_new_shortcuts(self) -> List[NewShortcutsNotification]:
        if not self.notify_on_new:
            return []
        current_versions = self.parser.extension_versions()
        changes = self.service.store.get_new_or_updated_extensions(current_versions)
        if not changes:
            return []

        with span(
            "governance::check_new_shortcuts",
            logger_name=self._logger_name,
            component="watcher",
            metadata={"changed": len(changes)},
        ) as handle:
            notifications: List[NewShortcutsNotification] = []
            for change in changes:
                pending = self.service.pending_bindings(
                    self.parser.bindings_for_extension(change.extension_id)
                )
                if not pending:
                    continue
                notifications.append(
                    NewShortcutsNotification(
                        extension_id=change.extension_id,
                        extension_name=self.parser.extension_name(change.extension_id),
                        new_count=len(pending),
                        keybinding_ids=tuple(binding.id for binding in pending),
                    )
                )
            handle.add_metadata("notifications", len(notifications))

            if notifications:
                record_event(
                    "governance.new_shortcuts",
                    data={
                        "extensions": len(notifications),
                        "total": sum(n.new_count for n in notifications),
                    },
                    logger_name=self._logger_name,
                )
                for listener in list(self._listeners):
                    listener(list(notifications))

            self.service.store.update_extension_versions(current_versions)
            return notifications

    def initial_check(self) -> List[NewShortcutsNotification]:
        if self.service.is_first_run():
            return []
        return self.check_for_new_shortcuts()


def handle_first_run(
    snapshots: "SnapshotManager",
    service: GovernanceService,
    parser: KeybindingParser,
) -> "Snapshot":
    """Capture the Base snapshot, baseline extension versions, end first run."""

    base = snapshots.create_base(service.get_state())
    service.store.update_extension_versions(parser.extension_versions())
    service.store.mark_initial_audit_complete()
    return base


__all__ = [
    "ExtensionWatcher",
    "NewShortcutsNotification",
    "NotificationListener",
    "handle_first_run",
]
