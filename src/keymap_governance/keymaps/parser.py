"""Turns raw artifact entries and extension contributions into bindings."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Callable, Iterable, Mapping, Optional

from .identity import derive_identity, resolve_platform_key
from .models import Binding, ExtensionContribution

if TYPE_CHECKING:  # pragma: no cover
    from keymap_governance.storage.keybindings_file import KeybindingsFile

ExtensionProvider = Callable[[], Iterable[ExtensionContribution]]


def _optional_str(raw: Mapping[str, object], name: str) -> Optional[str]:
    value = raw.get(name)
    return value if isinstance(value, str) and value else None


class KeybindingParser:
    """Derives ``Binding`` objects once per audit read.

    ``extensions`` is the host's read-only enumeration of installed
    extensions; it is called on every read and never cached.
    """

    def __init__(
        self,
        keybindings_file: "KeybindingsFile",
        extensions: ExtensionProvider,
        *,
        platform: str | None = None,
    ) -> None:
        self._file = keybindings_file
        self._extensions = extensions
        self.platform = platform or sys.platform

    def user_bindings(self) -> list[Binding]:
        bindings: list[Binding] = []
        for entry in self._file.read():
            if entry.is_opaque or entry.is_negation:
                continue
            if not entry.key or not entry.command:
                continue
            bindings.append(
                Binding(
                    id=derive_identity(entry.key, entry.command, entry.when),
                    key=entry.key,
                    command=entry.command,
                    when=entry.when,
                    source="user",
                    args=entry.args,
                )
            )
        return bindings

    def extension_contributions(self) -> list[ExtensionContribution]:
        return [
            contribution
            for contribution in self._extensions()
            if contribution.keybindings
        ]

    def _to_binding(
        self, contribution: ExtensionContribution, raw: Mapping[str, object]
    ) -> Optional[Binding]:
        command = _optional_str(raw, "command")
        key = resolve_platform_key(raw, self.platform)
        if not command or not key:
            return None
        when = _optional_str(raw, "when")
        return Binding(
            id=derive_identity(key, command, when),
            key=key,
            command=command,
            when=when,
            source="extension",
            extension_id=contribution.id,
            extension_name=contribution.name or contribution.id,
            mac=_optional_str(raw, "mac"),
            win=_optional_str(raw, "win"),
            linux=_optional_str(raw, "linux"),
            args=raw.get("args"),
        )

    def bindings_for_contribution(
        self, contribution: ExtensionContribution
    ) -> list[Binding]:
        bindings = (self._to_binding(contribution, raw) for raw in contribution.keybindings)
        return [binding for binding in bindings if binding is not None]

    def extension_bindings(self) -> list[Binding]:
        return [
            binding
            for contribution in self.extension_contributions()
            for binding in self.bindings_for_contribution(contribution)
        ]

    def bindings_for_extension(self, extension_id: str) -> list[Binding]:
        for contribution in self.extension_contributions():
            if contribution.id == extension_id:
                return self.bindings_for_contribution(contribution)
        return []

    def find_binding(
        self, keybinding_id: str, extension_id: Optional[str] = None
    ) -> Optional[Binding]:
        candidates = (
            self.bindings_for_extension(extension_id)
            if extension_id
            else self.extension_bindings()
        )
        for binding in candidates:
            if binding.id == keybinding_id:
                return binding
        return None

    def all_bindings(self) -> tuple[list[Binding], list[Binding]]:
        return self.user_bindings(), self.extension_bindings()

    def negated_commands(self) -> set[str]:
        return self._file.negated_commands()

    def extension_versions(self) -> dict[str, str]:
        return {
            contribution.id: contribution.version or "0.0.0"
            for contribution in self.extension_contributions()
        }

    def extension_name(self, extension_id: str) -> str:
        for contribution in self.extension_contributions():
            if contribution.id == extension_id:
                return contribution.name or extension_id
        return extension_id


__all__ = ["ExtensionProvider", "KeybindingParser"]
