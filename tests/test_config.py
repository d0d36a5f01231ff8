from pathlib import Path

import pytest

from keymap_governance.config import (
    DEFAULT_MAX_SNAPSHOTS,
    GovernanceSettings,
    default_keybindings_path,
)


def test_settings_from_environment(tmp_path: Path) -> None:
    environ = {
        "KEYMAP_GOVERNANCE_KEYBINDINGS_PATH": str(tmp_path / "kb.json"),
        "KEYMAP_GOVERNANCE_STATE_PATH": str(tmp_path / "state.json"),
        "KEYMAP_GOVERNANCE_EXTENSIONS_PATH": str(tmp_path / "ext"),
        "KEYMAP_GOVERNANCE_PLATFORM": "darwin",
        "KEYMAP_GOVERNANCE_MAX_SNAPSHOTS": "4",
        "KEYMAP_GOVERNANCE_NOTIFY_ON_NEW": "off",
    }

    settings = GovernanceSettings.from_env(environ)

    assert settings.keybindings_path == tmp_path / "kb.json"
    assert settings.state_path == tmp_path / "state.json"
    assert settings.extensions_path == tmp_path / "ext"
    assert settings.platform == "darwin"
    assert settings.max_snapshots == 4
    assert settings.notify_on_new is False


def test_settings_defaults() -> None:
    settings = GovernanceSettings.from_env({"KEYMAP_GOVERNANCE_MAX_SNAPSHOTS": "many"})

    assert settings.max_snapshots == DEFAULT_MAX_SNAPSHOTS
    assert settings.notify_on_new is True
    assert settings.keybindings_path.name == "keybindings.json"


def test_settings_reject_non_positive_bound(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        GovernanceSettings(tmp_path / "a", tmp_path / "b", max_snapshots=0)


def test_default_keybindings_path_per_platform(tmp_path: Path) -> None:
    assert default_keybindings_path("linux", home=tmp_path) == (
        tmp_path / ".config" / "Code" / "User" / "keybindings.json"
    )
    assert default_keybindings_path("darwin", home=tmp_path).parts[-4:] == (
        "Application Support",
        "Code",
        "User",
        "keybindings.json",
    )
    assert default_keybindings_path(
        "win32", home=tmp_path, environ={"APPDATA": str(tmp_path / "roaming")}
    ) == tmp_path / "roaming" / "Code" / "User" / "keybindings.json"
