"""Environment-driven settings for hosts embedding the governance layer."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

ENV_PREFIX = "KEYMAP_GOVERNANCE_"

STATE_KEY = "keymap-governance.governanceState"
SNAPSHOTS_KEY = "keymap-governance.snapshots"
DEFAULT_MAX_SNAPSHOTS = 10


def _env(
    name: str, default: Optional[str] = None, *, environ: Mapping[str, str]
) -> Optional[str]:
    return environ.get(f"{ENV_PREFIX}{name}", default)


def _env_flag(name: str, default: bool, *, environ: Mapping[str, str]) -> bool:
    raw = _env(name, environ=environ)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, fallback: int, *, environ: Mapping[str, str]) -> int:
    value = _env(name, environ=environ)
    if value is None:
        return fallback
    try:
        return int(value)
    except ValueError:
        return fallback


def default_keybindings_path(
    platform: str | None = None,
    *,
    home: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """Location of the editor's user ``keybindings.json`` for ``platform``."""

    platform = platform or sys.platform
    home = home or Path.home()
    environ = os.environ if environ is None else environ

    if platform == "darwin":
        return home / "Library" / "Application Support" / "Code" / "User" / "keybindings.json"
    if platform == "win32":
        appdata = environ.get("APPDATA")
        root = Path(appdata) if appdata else home / "AppData" / "Roaming"
        return root / "Code" / "User" / "keybindings.json"
    return home / ".config" / "Code" / "User" / "keybindings.json"


def default_extensions_path(*, home: Path | None = None) -> Path:
    home = home or Path.home()
    return home / ".vscode" / "extensions"


def default_state_path(*, home: Path | None = None) -> Path:
    home = home or Path.home()
    return home / ".config" / "keymap-governance" / "state.json"


@dataclass(frozen=True, slots=True)
class GovernanceSettings:
    """Resolved host settings."""

    keybindings_path: Path
    state_path: Path
    extensions_path: Optional[Path] = None
    platform: str = sys.platform
    max_snapshots: int = DEFAULT_MAX_SNAPSHOTS
    notify_on_new: bool = True

    def __post_init__(self) -> None:
        if self.max_snapshots <= 0:
            raise ValueError("max_snapshots must be positive")

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None
    ) -> "GovernanceSettings":
        env = os.environ if environ is None else environ
        platform = _env("PLATFORM", environ=env) or sys.platform
        keybindings = _env("KEYBINDINGS_PATH", environ=env)
        state = _env("STATE_PATH", environ=env)
        extensions = _env("EXTENSIONS_PATH", environ=env)
        return cls(
            keybindings_path=(
                Path(keybindings)
                if keybindings
                else default_keybindings_path(platform, environ=env)
            ),
            state_path=Path(state) if state else default_state_path(),
            extensions_path=(
                Path(extensions) if extensions else default_extensions_path()
            ),
            platform=platform,
            max_snapshots=_env_int(
                "MAX_SNAPSHOTS", DEFAULT_MAX_SNAPSHOTS, environ=env
            ),
            notify_on_new=_env_flag("NOTIFY_ON_NEW", True, environ=env),
        )


__all__ = [
    "DEFAULT_MAX_SNAPSHOTS",
    "GovernanceSettings",
    "SNAPSHOTS_KEY",
    "STATE_KEY",
    "default_extensions_path",
    "default_keybindings_path",
    "default_state_path",
]
