"""Executable Textual app for reviewing extension shortcuts."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Sequence

try:  # pragma: no cover - imported only when the app is run
    from textual.app import App, ComposeResult
    from textual.widgets import DataTable, Footer, Header, Input, Static
except ModuleNotFoundError as exc:  # pragma: no cover - friendly error for missing dep
    raise RuntimeError(
        "Install the 'textual' package to use keymap_governance.adapters.textual.app"
    ) from exc

from keymap_governance.config import GovernanceSettings
from keymap_governance.governance.audit import AuditReport
from keymap_governance.governance.watcher import NewShortcutsNotification
from keymap_governance.runtime.telemetry import get_logger
from keymap_governance.snapshots.models import Snapshot
from keymap_governance.workflows import GovernanceSession

from .controller import AuditUIHooks, TextualAuditAdapter

_STATUS_LABELS = {
    "pending": "pending",
    "approved": "approved",
    "deactivated": "off",
    "remapped": "remapped",
    "skipped": "skipped",
}


@dataclass
class UIState:
    status_text: str = ""
    summary_text: str = ""
    # (keybinding id, extension id) per table row
    rows: List[tuple[str, str]] = field(default_factory=list)
    snapshots: List[Snapshot] = field(default_factory=list)


class PressAgainConfirm:
    """Confirms a destructive action when the same request is made twice."""

    def __init__(self, notify) -> None:
        self._notify = notify
        self._pending: Optional[str] = None

    def __call__(self, message: str) -> bool:
        if self._pending == message:
            self._pending = None
            return True
        self._pending = message
        self._notify(f"{message} (repeat to confirm)")
        return False


class KeymapAuditApp(App[None]):
    """Table of extension shortcuts with their governance status."""

    CSS = """
	Screen {
		layout: vertical;
	}

	#bindings {
		height: 1fr;
		border: round $accent;
	}

	#summary-line {
		height: 1;
		background: $surface-darken-1;
		padding: 0 1;
	}

	#status-line {
		height: 1;
		background: $surface-darken-2;
		padding: 0 1;
	}
	"""

    BINDINGS = [
        ("a", "approve", "Approve"),
        ("s", "skip", "Skip"),
        ("d", "deactivate", "Deactivate"),
        ("r", "restore", "Restore"),
        ("m", "remap", "Remap"),
        ("c", "deactivate_conflicting", "Deactivate conflicts"),
        ("n", "snapshot", "Snapshot"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, settings: GovernanceSettings) -> None:
        super().__init__()
        self._settings = settings
        self._state = UIState()
        self.session: GovernanceSession | None = None
        self.adapter: TextualAuditAdapter | None = None
        self._table: DataTable | None = None
        self._summary_widget: Static | None = None
        self._status_widget: Static | None = None
        self._remap_input: Input | None = None
        self._logger = get_logger("keymap_governance.app")

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        self._table = DataTable(id="bindings", cursor_type="row")
        yield self._table
        self._remap_input = Input(placeholder="New key, e.g. ctrl+alt+k", id="remap-input")
        yield self._remap_input
        self._summary_widget = Static("", id="summary-line")
        self._status_widget = Static("", id="status-line")
        yield self._summary_widget
        yield self._status_widget
        yield Footer()

    def on_mount(self) -> None:
        if self._table:
            self._table.add_columns("Extension", "Key", "Command", "When", "Status")
        self.session = GovernanceSession.from_settings(
            self._settings, confirm=PressAgainConfirm(self._update_status)
        )
        hooks = AuditUIHooks(
            update_report=self._update_report,
            update_status=self._update_status,
            update_snapshots=self._update_snapshots,
            show_notifications=self._show_notifications,
            log=self._log_line,
        )
        self.adapter = TextualAuditAdapter(self.session, hooks)
        self.session.start()
        if self._table:
            self._table.focus()

    def on_unmount(self) -> None:
        if self.adapter:
            self.adapter.close()

    def _selected(self) -> Optional[tuple[str, str]]:
        if not self._table or not self._state.rows:
            return None
        row = self._table.cursor_row
        if row < 0 or row >= len(self._state.rows):
            return None
        return self._state.rows[row]

    def _dispatch_selected(self, action: str) -> None:
        selected = self._selected()
        if not selected or not self.adapter:
            return
        keybinding_id, extension_id = selected
        self.adapter.dispatch(action, keybinding_id=keybinding_id, extension_id=extension_id)

    def action_approve(self) -> None:
        self._dispatch_selected("approve")

    def action_skip(self) -> None:
        self._dispatch_selected("skip")

    def action_deactivate(self) -> None:
        self._dispatch_selected("deactivate")

    def action_restore(self) -> None:
        selected = self._selected()
        if not selected or not self.adapter or not self.adapter.report:
            return
        governed = self.adapter.report.governed(selected[0])
        if governed and governed.status == "remapped":
            self._dispatch_selected("restore_remap")
        elif governed and governed.status == "deactivated":
            self._dispatch_selected("restore")
        else:
            self._dispatch_selected("unapprove")

    def action_remap(self) -> None:
        if self._remap_input:
            self._remap_input.focus()

    def action_deactivate_conflicting(self) -> None:
        if self.adapter:
            self.adapter.dispatch("deactivate_all_conflicting")

    def action_snapshot(self) -> None:
        if self.adapter:
            index = len(self._state.snapshots) + 1
            self.adapter.dispatch("create_snapshot", name=f"Snapshot {index}")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        new_key = event.value.strip()
        event.input.value = ""
        selected = self._selected()
        if new_key and selected and self.adapter:
            keybinding_id, extension_id = selected
            try:
                self.adapter.dispatch(
                    "remap",
                    keybinding_id=keybinding_id,
                    extension_id=extension_id,
                    new_key=new_key,
                )
            except ValueError as exc:
                self._update_status(str(exc))
        if self._table:
            self._table.focus()

    def _update_report(self, report: AuditReport) -> None:
        conflicted = {
            binding.id for group in report.conflicts for binding in group.bindings
        }
        rows: List[tuple[str, str]] = []
        if self._table:
            cursor = self._table.cursor_row
            self._table.clear()
            for extension in report.extensions:
                for governed in extension.bindings:
                    binding = governed.binding
                    key = binding.key
                    if governed.status == "remapped" and governed.remapped_key:
                        key = f"{binding.key} -> {governed.remapped_key}"
                    marker = " !" if binding.id in conflicted else ""
                    self._table.add_row(
                        extension.extension_name,
                        key + marker,
                        binding.command,
                        binding.when or "",
                        _STATUS_LABELS[governed.status],
                    )
                    rows.append((binding.id, extension.extension_id))
            if rows:
                self._table.move_cursor(row=min(max(cursor, 0), len(rows) - 1))
        self._state.rows = rows
        totals = report.totals
        self._state.summary_text = (
            f"{totals['total']} shortcuts | {totals['pending']} pending | "
            f"{totals['conflicts']} conflicts | {totals['deactivated']} off"
        )
        if self._summary_widget:
            self._summary_widget.update(self._state.summary_text)

    def _update_status(self, status: str) -> None:
        self._state.status_text = status
        if self._status_widget:
            self._status_widget.update(status)

    def _update_snapshots(self, snapshots: List[Snapshot]) -> None:
        self._state.snapshots = snapshots

    def _show_notifications(self, notifications: List[NewShortcutsNotification]) -> None:
        for notification in notifications:
            self.notify(
                f"{notification.new_count} new shortcuts from {notification.extension_name}"
            )

    def _log_line(self, line: str) -> None:
        self._logger.debug(line)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Review extension keyboard shortcuts.")
    parser.add_argument(
        "--keybindings",
        type=Path,
        default=None,
        help="Path to keybindings.json (default: the editor's user file)",
    )
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        help="Path of the governance state file",
    )
    parser.add_argument(
        "--extensions",
        type=Path,
        default=None,
        help="Directory of installed extensions",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    settings = GovernanceSettings.from_env(os.environ)
    overrides = {
        "keybindings_path": args.keybindings,
        "state_path": args.state,
        "extensions_path": args.extensions,
    }
    settings = replace(
        settings, **{name: value for name, value in overrides.items() if value is not None}
    )
    KeymapAuditApp(settings).run()


if __name__ == "__main__":  # pragma: no cover - manual run
    main()
