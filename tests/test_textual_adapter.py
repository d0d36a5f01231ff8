from __future__ import annotations

import json
from typing import List

import pytest

from keymap_governance.adapters.textual.controller import AuditUIHooks, TextualAuditAdapter
from keymap_governance.governance import AuditReport, NewShortcutsNotification
from keymap_governance.keymaps import ExtensionContribution
from keymap_governance.storage import MemoryKeyValueStore, MemoryTextFile
from keymap_governance.workflows import GovernanceSession


def make_session() -> GovernanceSession:
    contributions = [
        ExtensionContribution(
            id="pub.alpha",
            name="Alpha",
            version="1.0.0",
            keybindings=(
                {"key": "ctrl+k", "command": "alpha.k"},
                {"key": "ctrl+j", "command": "alpha.j"},
            ),
        )
    ]
    return GovernanceSession.build(
        text_file=MemoryTextFile(json.dumps([{"key": "ctrl+k", "command": "mine"}])),
        storage=MemoryKeyValueStore(),
        extensions=lambda: contributions,
        platform="linux",
        confirm=lambda _message: True,
    )


def test_adapter_publishes_initial_report() -> None:
    reports: List[AuditReport] = []
    adapter = TextualAuditAdapter(make_session(), AuditUIHooks(update_report=reports.append))

    assert len(reports) == 1
    assert adapter.report is reports[0]
    assert len(reports[0].conflicts) == 1


def test_adapter_refreshes_after_each_persisted_mutation() -> None:
    session = make_session()
    reports: List[AuditReport] = []
    adapter = TextualAuditAdapter(session, AuditUIHooks(update_report=reports.append))
    binding = session.parser.extension_bindings()[0]

    adapter.dispatch("deactivate", keybinding_id=binding.id, extension_id="pub.alpha")

    assert len(reports) == 2
    assert reports[-1].governed(binding.id).status == "deactivated"
    assert reports[-1].conflicts == ()


def test_adapter_remap_and_restore() -> None:
    session = make_session()
    statuses: List[str] = []
    adapter = TextualAuditAdapter(
        session, AuditUIHooks(update_report=lambda _r: None, update_status=statuses.append)
    )
    binding = session.parser.extension_bindings()[1]

    adapter.dispatch("remap", keybinding_id=binding.id, new_key="ctrl+alt+j")
    assert adapter.report.governed(binding.id).remapped_key == "ctrl+alt+j"
    assert statuses[-1] == "alpha.j: ctrl+j -> ctrl+alt+j"

    assert adapter.dispatch("restore_remap", keybinding_id=binding.id)
    assert adapter.report.governed(binding.id).status == "pending"


def test_adapter_reports_missing_bindings() -> None:
    statuses: List[str] = []
    adapter = TextualAuditAdapter(
        make_session(),
        AuditUIHooks(update_report=lambda _r: None, update_status=statuses.append),
    )

    assert adapter.dispatch("approve", keybinding_id="ffffffff") is False
    assert statuses == ["Shortcut ffffffff not found"]


def test_adapter_rejects_unknown_actions() -> None:
    adapter = TextualAuditAdapter(make_session(), AuditUIHooks(update_report=lambda _r: None))

    with pytest.raises(ValueError):
        adapter.dispatch("explode")
    assert "deactivate_all_conflicting" in adapter.actions


def test_adapter_relays_new_shortcut_notifications() -> None:
    session = make_session()
    shown: List[List[NewShortcutsNotification]] = []
    statuses: List[str] = []
    TextualAuditAdapter(
        session,
        AuditUIHooks(
            update_report=lambda _r: None,
            update_status=statuses.append,
            show_notifications=shown.append,
        ),
    )
    session.store.mark_initial_audit_complete()

    session.watcher.check_for_new_shortcuts()

    assert shown and shown[0][0].new_count == 2
    assert statuses[-1] == "2 new shortcuts detected from Alpha."


def test_adapter_snapshot_actions() -> None:
    session = make_session()
    snapshot_lists: List[int] = []
    adapter = TextualAuditAdapter(
        session,
        AuditUIHooks(
            update_report=lambda _r: None,
            update_snapshots=lambda snapshots: snapshot_lists.append(len(snapshots)),
        ),
    )

    snapshot = adapter.dispatch("create_snapshot", name="checkpoint")
    assert adapter.dispatch("delete_snapshot", snapshot_id=snapshot.id)

    assert snapshot_lists == [0, 1, 0]


def test_close_detaches_from_store() -> None:
    session = make_session()
    reports: List[AuditReport] = []
    adapter = TextualAuditAdapter(session, AuditUIHooks(update_report=reports.append))
    adapter.close()

    session.service.approve(session.parser.extension_bindings()[0])

    assert len(reports) == 1
