"""Read-modify-write protocol for the user's keybindings artifact.

Every mutation re-reads and re-parses the artifact, edits the entry list and
rewrites the whole file. Raw string edits never happen, so a mutation can
only ever produce a well-formed list.
"""

from __future__ import annotations

import json
import re
import threading
from typing import Iterable, List, Optional

from keymap_governance.keymaps.identity import negated
from keymap_governance.keymaps.models import KeybindingEntry, entries_to_dicts
from keymap_governance.runtime.telemetry import record_event, span

from .providers import TextFile

_TRAILING_COMMA = re.compile(r",(\s*[\]}])")


def strip_json_comments(content: str) -> str:
    """Remove ``//`` and ``/* */`` comments outside string literals."""

    result: List[str] = []
    index = 0
    length = len(content)
    in_string = False
    while index < length:
        char = content[index]
        nxt = content[index + 1] if index + 1 < length else ""
        if in_string:
            result.append(char)
            if char == "\\" and nxt:
                result.append(nxt)
                index += 2
                continue
            if char == '"':
                in_string = False
            index += 1
        elif char == '"':
            in_string = True
            result.append(char)
            index += 1
        elif char == "/" and nxt == "/":
            newline = content.find("\n", index)
            if newline == -1:
                break
            index = newline
        elif char == "/" and nxt == "*":
            end = content.find("*/", index + 2)
            index = length if end == -1 else end + 2
        else:
            result.append(char)
            index += 1
    return "".join(result)


def _strip_trailing_commas(content: str) -> str:
    # Only safe once comments are gone; string contents are re-checked below.
    result: List[str] = []
    in_string = False
    segment_start = 0
    index = 0
    while index < len(content):
        char = content[index]
        if in_string:
            if char == "\\":
                index += 2
                continue
            if char == '"':
                in_string = False
                result.append(content[segment_start : index + 1])
                segment_start = index + 1
        elif char == '"':
            result.append(_TRAILING_COMMA.sub(r"\1", content[segment_start:index]))
            segment_start = index
            in_string = True
        index += 1
    tail = content[segment_start:]
    result.append(tail if in_string else _TRAILING_COMMA.sub(r"\1", tail))
    return "".join(result)


def parse_keybindings(content: str) -> list[KeybindingEntry]:
    """Parse artifact text; malformed content degrades to an empty list.

    Rows that are not bindings come back as opaque entries so rewrites keep
    them in place.
    """

    try:
        parsed = json.loads(_strip_trailing_commas(strip_json_comments(content)))
    except ValueError as exc:
        if content.strip():
            record_event(
                "keybindings.parse_failure",
                level="warning",
                data={"error": str(exc)},
            )
        return []
    if not isinstance(parsed, list):
        record_event(
            "keybindings.parse_failure",
            level="warning",
            data={"error": f"expected a list, got {type(parsed).__name__}"},
        )
        return []

    entries: list[KeybindingEntry] = []
    opaque = 0
    for item in parsed:
        entry = KeybindingEntry.from_mapping(item) if isinstance(item, dict) else None
        if entry is None:
            # written back untouched on the next rewrite
            entry = KeybindingEntry.opaque(item)
            opaque += 1
        entries.append(entry)
    if opaque:
        record_event(
            "keybindings.entries_unrecognised",
            level="warning",
            data={"count": opaque},
        )
    return entries


def serialize_keybindings(entries: Iterable[KeybindingEntry]) -> str:
    return json.dumps(entries_to_dicts(entries), indent=2, ensure_ascii=False)


def _when_matches(entry: KeybindingEntry, when: Optional[str]) -> bool:
    return entry.when == when if when else not entry.when


class KeybindingsFile:
    """Sole writer of the persisted keybinding list."""

    def __init__(self, source: TextFile, *, logger_name: str | None = None) -> None:
        self._source = source
        self._lock = threading.RLock()
        self._logger_name = logger_name

    @property
    def source(self) -> TextFile:
        return self._source

    def exists(self) -> bool:
        return self._source.exists()

    def read_raw(self) -> str:
        return self._source.read_text()

    def read(self) -> list[KeybindingEntry]:
        return parse_keybindings(self.read_raw())

    def write(self, entries: Iterable[KeybindingEntry]) -> None:
        with self._lock:
            self._source.write_text(serialize_keybindings(entries))

    def write_raw(self, content: str) -> None:
        """Overwrite the artifact verbatim (snapshot restore path)."""

        with self._lock:
            self._source.write_text(content)

    def add_entry(self, entry: KeybindingEntry) -> None:
        with self._mutation("add_entry", command=entry.command):
            entries = self.read()
            entries.append(entry)
            self.write(entries)

    def remove_entry(self, key: str, command: str) -> bool:
        with self._mutation("remove_entry", command=command) as handle:
            entries = self.read()
            for index, entry in enumerate(entries):
                if entry.key == key and entry.command == command:
                    del entries[index]
                    self.write(entries)
                    return True
            handle.add_metadata("found", False)
            return False

    def deactivate(self, key: str, command: str, when: Optional[str] = None) -> None:
        """Append a negation entry for ``command`` on ``key``."""

        with self._mutation("deactivate", command=command):
            entries = self.read()
            entries.append(KeybindingEntry(key=key, command=negated(command), when=when))
            self.write(entries)

    def restore_deactivation(
        self, key: str, command: str, when: Optional[str] = None
    ) -> bool:
        """Remove the negation written by ``deactivate``; report whether found."""

        target = negated(command)
        with self._mutation("restore_deactivation", command=command) as handle:
            entries = self.read()
            for index, entry in enumerate(entries):
                if (
                    entry.key == key
                    and entry.command == target
                    and _when_matches(entry, when)
                ):
                    del entries[index]
                    self.write(entries)
                    return True
            handle.add_metadata("found", False)
            return False

    def remap(
        self,
        original_key: str,
        new_key: str,
        command: str,
        when: Optional[str] = None,
    ) -> None:
        """Replace every entry for ``command`` with a negation plus a new binding."""

        target = negated(command)
        with self._mutation("remap", command=command) as handle:
            entries = [
                entry
                for entry in self.read()
                if entry.command not in (command, target)
            ]
            entries.append(KeybindingEntry(key=original_key, command=target, when=when))
            entries.append(KeybindingEntry(key=new_key, command=command, when=when))
            handle.add_metadata("new_key", new_key)
            self.write(entries)

    def remove_remap_entries(self, command: str) -> bool:
        target = negated(command)
        with self._mutation("remove_remap_entries", command=command) as handle:
            entries = self.read()
            kept = [entry for entry in entries if entry.command not in (command, target)]
            removed = len(entries) - len(kept)
            handle.add_metadata("removed", removed)
            if not removed:
                return False
            self.write(kept)
            return True

    def negated_commands(self) -> set[str]:
        return {
            entry.command[1:]
            for entry in self.read()
            if not entry.is_opaque and entry.is_negation
        }

    def _mutation(self, operation: str, *, command: str):
        return _LockedSpan(self._lock, operation, command, self._logger_name)


class _LockedSpan:
    """Hold the file lock for the duration of a telemetry span."""

    def __init__(
        self,
        lock: threading.RLock,
        operation: str,
        command: str,
        logger_name: str | None,
    ) -> None:
        self._lock = lock
        self._span_cm = span(
            f"keybindings::{operation}",
            logger_name=logger_name,
            component="keybindings_file",
            metadata={"command": command},
        )

    def __enter__(self):
        self._lock.acquire()
        try:
            return self._span_cm.__enter__()
        except BaseException:
            self._lock.release()
            raise

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self._span_cm.__exit__(exc_type, exc, tb)
        finally:
            self._lock.release()
        return False


__all__ = [
    "KeybindingsFile",
    "parse_keybindings",
    "serialize_keybindings",
    "strip_json_comments",
]
