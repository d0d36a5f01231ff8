import json

from keymap_governance.storage import (
    KeybindingsFile,
    MemoryTextFile,
    parse_keybindings,
    strip_json_comments,
)


def make_file(entries: list[dict] | None = None, *, raw: str | None = None) -> KeybindingsFile:
    content = raw if raw is not None else json.dumps(entries or [])
    return KeybindingsFile(MemoryTextFile(content))


def commands(keybindings_file: KeybindingsFile) -> list[tuple[str, str, str | None]]:
    return [(e.key, e.command, e.when) for e in keybindings_file.read()]


def test_comments_are_stripped_outside_strings() -> None:
    raw = """
    // user keybindings
    [
        /* block */ {"key": "ctrl+k", "command": "open // not a comment"},
        {"key": "ctrl+j", "command": "foo",}, // trailing comma
    ]
    """

    entries = parse_keybindings(raw)

    assert [(e.key, e.command) for e in entries] == [
        ("ctrl+k", "open // not a comment"),
        ("ctrl+j", "foo"),
    ]
    assert "block" not in strip_json_comments(raw)


def test_garbage_parses_to_empty_list() -> None:
    assert parse_keybindings("{not json") == []
    assert parse_keybindings('{"key": "ctrl+k"}') == []
    assert parse_keybindings("") == []


def test_unrecognised_rows_are_kept_opaque() -> None:
    entries = parse_keybindings(
        json.dumps([{"key": "ctrl+k", "command": "foo"}, {"key": 3}, "text"])
    )

    assert [(e.key, e.command) for e in entries if not e.is_opaque] == [("ctrl+k", "foo")]
    assert [e.to_dict() for e in entries if e.is_opaque] == [{"key": 3}, "text"]


def test_unrecognised_rows_survive_rewrites() -> None:
    original = [
        {"key": "ctrl+a", "command": "mine"},
        {"command": "keyless"},
        {"key": "ctrl+b", "command": ["odd"]},
        None,
    ]
    keybindings_file = make_file(original)

    keybindings_file.deactivate("ctrl+k", "ext.cmd")
    keybindings_file.remap("ctrl+j", "ctrl+alt+j", "other.cmd")
    keybindings_file.remove_remap_entries("other.cmd")

    assert json.loads(keybindings_file.read_raw()) == original + [
        {"key": "ctrl+k", "command": "-ext.cmd"}
    ]
    assert keybindings_file.negated_commands() == {"ext.cmd"}


def test_deactivate_appends_negation() -> None:
    keybindings_file = make_file([{"key": "ctrl+a", "command": "mine"}])

    keybindings_file.deactivate("ctrl+k", "foo", "editorTextFocus")

    assert commands(keybindings_file) == [
        ("ctrl+a", "mine", None),
        ("ctrl+k", "-foo", "editorTextFocus"),
    ]
    assert keybindings_file.negated_commands() == {"foo"}


def test_deactivate_then_restore_round_trip() -> None:
    original = [{"key": "ctrl+a", "command": "mine"}]
    keybindings_file = make_file(original)
    before = commands(keybindings_file)

    keybindings_file.deactivate("ctrl+k", "foo", "editorTextFocus")
    assert keybindings_file.restore_deactivation("ctrl+k", "foo", "editorTextFocus")

    assert commands(keybindings_file) == before


def test_restore_matches_context_exactly() -> None:
    keybindings_file = make_file()
    keybindings_file.deactivate("ctrl+k", "foo", "editorTextFocus")

    assert not keybindings_file.restore_deactivation("ctrl+k", "foo")
    assert not keybindings_file.restore_deactivation("ctrl+k", "foo", "terminalFocus")
    assert len(keybindings_file.read()) == 1


def test_restore_reports_missing_negation() -> None:
    keybindings_file = make_file([{"key": "ctrl+a", "command": "mine"}])

    assert keybindings_file.restore_deactivation("ctrl+k", "foo") is False
    assert commands(keybindings_file) == [("ctrl+a", "mine", None)]


def test_remap_writes_negation_then_new_binding() -> None:
    keybindings_file = make_file([{"key": "ctrl+a", "command": "mine"}])

    keybindings_file.remap("ctrl+k", "ctrl+alt+k", "foo", "editorTextFocus")

    assert commands(keybindings_file) == [
        ("ctrl+a", "mine", None),
        ("ctrl+k", "-foo", "editorTextFocus"),
        ("ctrl+alt+k", "foo", "editorTextFocus"),
    ]


def test_remap_is_idempotent() -> None:
    keybindings_file = make_file([{"key": "ctrl+a", "command": "mine"}])

    keybindings_file.remap("ctrl+k", "ctrl+alt+k", "foo")
    once = keybindings_file.read_raw()
    keybindings_file.remap("ctrl+k", "ctrl+alt+k", "foo")

    assert keybindings_file.read_raw() == once


def test_remap_replaces_previous_remap() -> None:
    keybindings_file = make_file()

    keybindings_file.remap("ctrl+k", "ctrl+alt+k", "foo")
    keybindings_file.remap("ctrl+k", "ctrl+shift+k", "foo")

    assert commands(keybindings_file) == [
        ("ctrl+k", "-foo", None),
        ("ctrl+shift+k", "foo", None),
    ]


def test_remove_remap_entries() -> None:
    keybindings_file = make_file([{"key": "ctrl+a", "command": "mine"}])
    keybindings_file.remap("ctrl+k", "ctrl+alt+k", "foo")

    assert keybindings_file.remove_remap_entries("foo")
    assert commands(keybindings_file) == [("ctrl+a", "mine", None)]
    assert keybindings_file.remove_remap_entries("foo") is False


def test_unknown_fields_survive_rewrites() -> None:
    keybindings_file = make_file(
        [{"key": "ctrl+a", "command": "type", "args": {"text": "hi"}, "extra": 1}]
    )

    keybindings_file.deactivate("ctrl+k", "foo")

    first = json.loads(keybindings_file.read_raw())[0]
    assert first == {"key": "ctrl+a", "command": "type", "args": {"text": "hi"}, "extra": 1}


def test_mutating_unreadable_file_starts_from_empty_list() -> None:
    keybindings_file = make_file(raw="this is not json")

    keybindings_file.deactivate("ctrl+k", "foo")

    assert commands(keybindings_file) == [("ctrl+k", "-foo", None)]


def test_add_and_remove_entry() -> None:
    keybindings_file = make_file()
    keybindings_file.add_entry(parse_keybindings('[{"key": "ctrl+k", "command": "x"}]')[0])

    assert keybindings_file.remove_entry("ctrl+k", "x")
    assert keybindings_file.remove_entry("ctrl+k", "x") is False
    assert keybindings_file.read() == []
