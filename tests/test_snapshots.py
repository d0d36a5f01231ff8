import pytest

from keymap_governance.config import SNAPSHOTS_KEY
from keymap_governance.errors import ProtectedResourceViolation
from keymap_governance.governance import GovernanceState
from keymap_governance.governance.models import Decision
from keymap_governance.snapshots import BASE_SNAPSHOT_NAME, SnapshotManager, generate_snapshot_id
from keymap_governance.storage import KeybindingsFile, MemoryKeyValueStore, MemoryTextFile


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


def make_manager(
    content: str = "[]", storage: MemoryKeyValueStore | None = None
) -> tuple[SnapshotManager, MemoryTextFile]:
    text_file = MemoryTextFile(content)
    manager = SnapshotManager(
        storage or MemoryKeyValueStore(), KeybindingsFile(text_file), clock=FakeClock()
    )
    return manager, text_file


def make_state(*approved: str) -> GovernanceState:
    return GovernanceState(
        decisions={
            keybinding_id: Decision(keybinding_id, "approved", decided_at=1)
            for keybinding_id in approved
        }
    )


def test_snapshot_id_format() -> None:
    snapshot_id = generate_snapshot_id(1234)

    prefix, stamp, suffix = snapshot_id.split("-")
    assert (prefix, stamp) == ("snapshot", "1234")
    assert len(suffix) == 6
    assert suffix.isalnum() and suffix.lower() == suffix


def test_history_is_bounded_and_base_is_kept() -> None:
    manager, _ = make_manager()
    base = manager.create_base(make_state())

    for index in range(12):
        manager.create(f"snap {index}", make_state())

    snapshots = manager.list()
    assert len(snapshots) == 11
    assert snapshots[-1].id == base.id
    assert snapshots[-1].is_base
    assert [s.name for s in snapshots[:10]] == [f"snap {i}" for i in range(11, 1, -1)]


def test_create_base_is_idempotent() -> None:
    manager, _ = make_manager()

    first = manager.create_base(make_state())
    second = manager.create_base(make_state("abc"))

    assert first == second
    assert first.name == BASE_SNAPSHOT_NAME
    assert len(manager.list()) == 1


def test_base_snapshot_cannot_be_deleted() -> None:
    manager, _ = make_manager()
    base = manager.create_base(make_state())

    with pytest.raises(ProtectedResourceViolation):
        manager.delete(base.id)
    assert manager.base() == base


def test_delete_and_rename() -> None:
    manager, _ = make_manager()
    snapshot = manager.create("before", make_state())

    assert manager.rename(snapshot.id, "after")
    assert manager.get(snapshot.id).name == "after"
    with pytest.raises(ValueError):
        manager.rename(snapshot.id, "  ")
    assert manager.delete(snapshot.id)
    assert manager.delete(snapshot.id) is False
    assert manager.rename("snapshot-0-missing", "x") is False


def test_restore_writes_content_and_returns_state() -> None:
    original = '// comment kept\n[{"key": "ctrl+k", "command": "-foo"}]'
    manager, text_file = make_manager(original)
    snapshot = manager.create("checkpoint", make_state("abc"))
    text_file.write_text("[]")

    state = manager.restore(snapshot.id)

    assert text_file.content == original
    assert state is not None
    assert set(state.decisions) == {"abc"}


def test_restore_unknown_snapshot_returns_none() -> None:
    manager, text_file = make_manager("[]")
    writes = text_file.writes

    assert manager.restore("snapshot-1-nothere") is None
    assert text_file.writes == writes


def test_restored_state_is_a_copy() -> None:
    manager, _ = make_manager()
    snapshot = manager.create("checkpoint", make_state("abc"))

    manager.restore(snapshot.id).decisions.clear()

    assert set(manager.restore(snapshot.id).decisions) == {"abc"}


def test_history_round_trips_through_storage() -> None:
    storage = MemoryKeyValueStore()
    manager, _ = make_manager('[{"key": "a", "command": "b"}]', storage)
    manager.create_base(make_state())
    created = manager.create("named", make_state("abc"))

    reloaded, _ = make_manager(storage=storage)

    assert [s.id for s in reloaded.list()] == [s.id for s in manager.list()]
    assert reloaded.get(created.id).keybindings_content == '[{"key": "a", "command": "b"}]'


def test_corrupt_entries_are_dropped() -> None:
    storage = MemoryKeyValueStore()
    manager, _ = make_manager(storage=storage)
    good = manager.create("good", make_state())
    raw = storage.get(SNAPSHOTS_KEY)
    storage.set(SNAPSHOTS_KEY, [{"id": "broken"}, *raw])

    assert [s.id for s in manager.list()] == [good.id]


def test_legacy_base_identified_by_name() -> None:
    storage = MemoryKeyValueStore()
    manager, _ = make_manager(storage=storage)
    manager.create_base(make_state())
    raw = storage.get(SNAPSHOTS_KEY)
    del raw[0]["isBase"]
    storage.set(SNAPSHOTS_KEY, raw)

    assert manager.base() is not None
