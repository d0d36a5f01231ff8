from keymap_governance.keymaps import (
    Binding,
    derive_identity,
    normalize_key_combination,
    normalize_platform_key,
    resolve_platform_key,
)
from keymap_governance.keymaps.identity import base_command, negated


def test_identity_matches_known_value() -> None:
    # "a|b|" -> 3012053 -> 2df5d5
    assert derive_identity("a", "b") == "002df5d5"


def test_identity_is_deterministic() -> None:
    first = derive_identity("ctrl+k", "foo", "editorTextFocus")
    second = derive_identity("ctrl+k", "foo", "editorTextFocus")

    assert first == second
    assert len(first) >= 8
    assert int(first, 16) >= 0


def test_identity_treats_missing_and_empty_context_alike() -> None:
    assert derive_identity("ctrl+k", "foo", None) == derive_identity("ctrl+k", "foo", "")


def test_identity_differs_per_field() -> None:
    base = derive_identity("ctrl+k", "foo", "editorTextFocus")

    assert derive_identity("ctrl+j", "foo", "editorTextFocus") != base
    assert derive_identity("ctrl+k", "bar", "editorTextFocus") != base
    assert derive_identity("ctrl+k", "foo", "!editorTextFocus") != base


def test_identity_survives_long_inputs() -> None:
    identity = derive_identity("ctrl+shift+alt+k ctrl+j", "x" * 500, "a && b" * 40)

    assert identity == derive_identity("ctrl+shift+alt+k ctrl+j", "x" * 500, "a && b" * 40)
    assert all(char in "0123456789abcdef" for char in identity)


def test_binding_create_uses_identity() -> None:
    binding = Binding.create("ctrl+k", "foo", "editorTextFocus", extension_id="pub.ext")

    assert binding.id == derive_identity("ctrl+k", "foo", "editorTextFocus")
    assert binding.source == "extension"


def test_normalization_ignores_case_and_modifier_order() -> None:
    assert normalize_key_combination("Ctrl+Shift+K") == normalize_key_combination(
        "shift+ctrl+k"
    )
    assert normalize_key_combination(" ctrl + k ") == "ctrl+k"


def test_normalization_keeps_chord_sequence() -> None:
    assert normalize_key_combination("ctrl+k ctrl+j") != normalize_key_combination(
        "ctrl+j ctrl+k"
    )
    assert normalize_key_combination("K+Ctrl  J+Ctrl") == "ctrl+k ctrl+j"


def test_platform_override_wins() -> None:
    raw = {"key": "ctrl+k", "mac": "cmd+k", "win": "alt+k"}

    assert resolve_platform_key(raw, "darwin") == "cmd+k"
    assert resolve_platform_key(raw, "win32") == "alt+k"
    assert resolve_platform_key(raw, "linux") == "ctrl+k"


def test_platform_key_modifier_rewrite() -> None:
    assert normalize_platform_key("ctrl+k", "darwin") == "cmd+k"
    assert normalize_platform_key("cmd+k", "linux") == "ctrl+k"


def test_negation_helpers() -> None:
    assert negated("foo") == "-foo"
    assert base_command("-foo") == "foo"
    assert base_command("foo") == "foo"
