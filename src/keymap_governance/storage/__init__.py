"""Persistence providers and the keybindings artifact protocol."""

from .keybindings_file import KeybindingsFile, parse_keybindings, strip_json_comments
from .providers import (
    JsonFileKeyValueStore,
    KeyValueStore,
    LocalTextFile,
    MemoryKeyValueStore,
    MemoryTextFile,
    TextFile,
)

__all__ = [
    "JsonFileKeyValueStore",
    "KeybindingsFile",
    "KeyValueStore",
    "LocalTextFile",
    "MemoryKeyValueStore",
    "MemoryTextFile",
    "TextFile",
    "parse_keybindings",
    "strip_json_comments",
]
