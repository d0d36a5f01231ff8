"""Minimal Textual adapter that turns store notifications into UI callbacks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from keymap_governance.governance.audit import AuditReport
from keymap_governance.governance.models import GovernanceState
from keymap_governance.governance.watcher import NewShortcutsNotification
from keymap_governance.keymaps.models import Binding
from keymap_governance.runtime.telemetry import record_event
from keymap_governance.snapshots.models import Snapshot
from keymap_governance.workflows import GovernanceSession


def _noop(*_args, **_kwargs) -> None:  # pragma: no cover - default hook
    return None


@dataclass(slots=True)
class AuditUIHooks:
    """Callbacks invoked by the adapter to update Textual widgets."""

    update_report: Callable[[AuditReport], None]
    update_status: Callable[[str], None] = _noop
    update_snapshots: Callable[[List[Snapshot]], None] = _noop
    show_notifications: Callable[[List[NewShortcutsNotification]], None] = _noop
    log: Callable[[str], None] = _noop


class TextualAuditAdapter:
    """Bridges a ``GovernanceSession`` to a Textual-friendly surface.

    The report is rebuilt whenever the store persists a new state, so the
    UI never shows a decision that was not written.
    """

    def __init__(self, session: GovernanceSession, hooks: AuditUIHooks) -> None:
        self.session = session
        self.hooks = hooks
        self.report: Optional[AuditReport] = None
        self._unsubscribe = session.store.subscribe(self._on_state_changed)
        self._unwatch = session.watcher.subscribe(self._on_new_shortcuts)
        self._actions: Dict[str, Callable[..., object]] = {
            "approve": self._approve,
            "skip": self._skip,
            "unapprove": self._unapprove,
            "deactivate": self._deactivate,
            "remap": self._remap,
            "restore": self._restore,
            "restore_remap": self._restore_remap,
            "approve_all": self._approve_all,
            "unapprove_all": self._unapprove_all,
            "deactivate_all": self._deactivate_all,
            "restore_all": self._restore_all,
            "deactivate_all_conflicting": self._deactivate_all_conflicting,
            "create_snapshot": self._create_snapshot,
            "restore_snapshot": self._restore_snapshot,
            "delete_snapshot": self._delete_snapshot,
            "refresh": self._refresh,
        }
        self._refresh()
        self._refresh_snapshots()

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(self._actions)

    def close(self) -> None:
        self._unsubscribe()
        self._unwatch()

    def dispatch(self, action: str, **data: object) -> object:
        """Run the named review action with its payload fields."""

        handler = self._actions.get(action)
        if handler is None:
            raise ValueError(f"Unknown audit action '{action}'")
        self.hooks.log(f"action -> {action} {data!r}")
        return handler(**data)

    def _find(self, keybinding_id: str, extension_id: Optional[str]) -> Optional[Binding]:
        binding = self.session.parser.find_binding(keybinding_id, extension_id)
        if binding is None:
            self.hooks.update_status(f"Shortcut {keybinding_id} not found")
            record_event(
                "adapter.binding_missing",
                level="warning",
                data={"keybinding_id": keybinding_id, "extension_id": extension_id},
            )
        return binding

    def _approve(self, keybinding_id: str, extension_id: Optional[str] = None) -> bool:
        binding = self._find(keybinding_id, extension_id)
        if binding is None:
            return False
        self.session.service.approve(binding)
        return True

    def _skip(self, keybinding_id: str, extension_id: Optional[str] = None) -> bool:
        binding = self._find(keybinding_id, extension_id)
        if binding is None:
            return False
        self.session.service.skip(binding)
        return True

    def _unapprove(self, keybinding_id: str, extension_id: Optional[str] = None) -> bool:
        binding = self._find(keybinding_id, extension_id)
        return binding is not None and self.session.service.unapprove(binding)

    def _deactivate(self, keybinding_id: str, extension_id: Optional[str] = None) -> bool:
        binding = self._find(keybinding_id, extension_id)
        return binding is not None and self.session.service.deactivate(binding)

    def _remap(
        self,
        keybinding_id: str,
        new_key: str,
        extension_id: Optional[str] = None,
    ) -> bool:
        binding = self._find(keybinding_id, extension_id)
        if binding is None:
            return False
        self.session.service.remap(binding, new_key)
        self.hooks.update_status(f"{binding.command}: {binding.key} -> {new_key}")
        return True

    def _restore(self, keybinding_id: str, extension_id: Optional[str] = None) -> bool:
        binding = self._find(keybinding_id, extension_id)
        return binding is not None and self.session.service.restore(binding)

    def _restore_remap(self, keybinding_id: str, extension_id: Optional[str] = None) -> bool:
        binding = self._find(keybinding_id, extension_id)
        return binding is not None and self.session.service.restore_remapped(binding)

    def _approve_all(self, extension_id: str) -> int:
        return self.session.service.approve_all_from_extension(extension_id)

    def _unapprove_all(self, extension_id: str) -> int:
        return self.session.service.unapprove_all_from_extension(extension_id)

    def _deactivate_all(self, extension_id: str) -> int:
        count = self.session.deactivate_all_from_extension(extension_id)
        self.hooks.update_status(f"Deactivated {count} shortcuts")
        return count

    def _restore_all(self, extension_id: str) -> int:
        return self.session.service.restore_all_from_extension(extension_id)

    def _deactivate_all_conflicting(self) -> int:
        count = self.session.deactivate_all_conflicting()
        self.hooks.update_status(f"Deactivated {count} conflicting shortcuts")
        return count

    def _create_snapshot(self, name: str) -> Snapshot:
        snapshot = self.session.create_snapshot(name)
        self.hooks.update_status(f"Snapshot '{snapshot.name}' created")
        self._refresh_snapshots()
        return snapshot

    def _restore_snapshot(self, snapshot_id: str) -> bool:
        restored = self.session.restore_snapshot(snapshot_id)
        if restored:
            self.hooks.update_status("Snapshot restored")
        return restored

    def _delete_snapshot(self, snapshot_id: str) -> bool:
        deleted = self.session.delete_snapshot(snapshot_id)
        if deleted:
            self._refresh_snapshots()
        return deleted

    def _refresh(self) -> AuditReport:
        self.report = self.session.audit()
        self.hooks.update_report(self.report)
        return self.report

    def _refresh_snapshots(self) -> None:
        self.hooks.update_snapshots(self.session.snapshots.list())

    def _on_state_changed(self, state: GovernanceState) -> None:
        self.hooks.log(f"state -> decisions={len(state.decisions)}")
        self._refresh()

    def _on_new_shortcuts(self, notifications: List[NewShortcutsNotification]) -> None:
        total = sum(notification.new_count for notification in notifications)
        if len(notifications) == 1:
            message = f"{total} new shortcuts detected from {notifications[0].extension_name}."
        else:
            message = f"{total} new shortcuts detected from {len(notifications)} extensions."
        self.hooks.update_status(message)
        self.hooks.show_notifications(notifications)


__all__ = ["AuditUIHooks", "TextualAuditAdapter"]
