"""Deterministic binding identities and key-string normalization."""

from __future__ import annotations

import re
import sys
from typing import Any, Mapping, Optional

_PLATFORM_OVERRIDES = {"darwin": "mac", "win32": "win", "linux": "linux"}

_CTRL_OR_META = re.compile(r"\b(?:ctrl|meta)\b", re.IGNORECASE)
_CMD_OR_META = re.compile(r"\b(?:cmd|meta)\b", re.IGNORECASE)
_PLUS_SPACING = re.compile(r"\s*\+\s*")


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def derive_identity(key: str, command: str, when: Optional[str] = None) -> str:
    """Return the stable identity of the ``(key, command, when)`` triple.

    Rolling 31-multiplier hash over the UTF-16 code units of
    ``key|command|when``, wrapped to signed 32 bits and rendered as at least
    eight lowercase hex digits. Identities persisted by earlier installs stay
    valid because the arithmetic matches bit for bit.
    """

    payload = f"{key}|{command}|{when or ''}".encode("utf-16-le")
    value = 0
    for index in range(0, len(payload), 2):
        unit = payload[index] | (payload[index + 1] << 8)
        value = _to_int32(value * 31 + unit)
    return format(abs(value), "x").zfill(8)[:16]


def _normalize_chord(chord: str) -> str:
    parts = sorted(part.strip() for part in chord.lower().split("+"))
    return "+".join(parts)


def normalize_key_combination(key: str) -> str:
    """Order- and case-insensitive form of ``key``.

    ``"Ctrl+Shift+K"`` and ``"shift+ctrl+k"`` both become ``"ctrl+k+shift"``.
    Chords separated by whitespace keep their sequence; spaces around ``+``
    belong to the chord, so ``"ctrl + k"`` is ``"ctrl+k"``.
    """

    chords = _PLUS_SPACING.sub("+", key.strip()).split()
    return " ".join(_normalize_chord(chord) for chord in chords)


def _read(binding: Any, name: str) -> Any:
    if isinstance(binding, Mapping):
        return binding.get(name)
    return getattr(binding, name, None)


def resolve_platform_key(binding: Any, platform: Optional[str] = None) -> str:
    """Pick the OS-specific override of ``binding`` when one is present."""

    platform = platform or sys.platform
    override_field = _PLATFORM_OVERRIDES.get(platform)
    if override_field:
        override = _read(binding, override_field)
        if override:
            return str(override)
    return str(_read(binding, "key") or "")


def normalize_platform_key(key: str, platform: Optional[str] = None) -> str:
    """Rewrite the primary modifier to the one ``platform`` uses."""

    platform = platform or sys.platform
    if platform == "darwin":
        return _CTRL_OR_META.sub("cmd", key)
    return _CMD_OR_META.sub("ctrl", key)


def is_negation_command(command: str) -> bool:
    return command.startswith("-")


def base_command(command: str) -> str:
    return command[1:] if command.startswith("-") else command


def negated(command: str) -> str:
    return f"-{command}"


__all__ = [
    "base_command",
    "derive_identity",
    "is_negation_command",
    "negated",
    "normalize_key_combination",
    "normalize_platform_key",
    "resolve_platform_key",
]
