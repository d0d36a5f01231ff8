"""Persistence providers injected into the governance services.

Read failures are absorbed here and normalized to defaults; write failures
propagate to the caller.
"""

from __future__ import annotations

import copy
import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from keymap_governance.keymaps.models import ExtensionContribution
from keymap_governance.runtime.telemetry import record_event

EMPTY_ARTIFACT = "[]"


class KeyValueStore(Protocol):
    """Opaque key-value persistence (the host's global state)."""

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default``."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Persist ``value`` under ``key`` wholesale."""
        ...


class TextFile(Protocol):
    """Raw access to the configuration artifact."""

    def exists(self) -> bool:
        ...

    def read_text(self) -> str:
        """Return the raw file content, or an empty list literal when unreadable."""
        ...

    def write_text(self, content: str) -> None:
        ...


class MemoryKeyValueStore:
    """Dict-backed store; values are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._data)


class JsonFileKeyValueStore:
    """Key-value store persisted as a single JSON object on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeError, ValueError) as exc:
            record_event(
                "storage.state_unreadable",
                level="warning",
                data={"path": str(self.path), "error": str(exc)},
            )
            return {}
        return payload if isinstance(payload, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class LocalTextFile:
    """Configuration artifact stored on the local filesystem."""

    def __init__(self, path: Path | str, *, default: str = EMPTY_ARTIFACT) -> None:
        self.path = Path(path)
        self._default = default

    def exists(self) -> bool:
        return self.path.exists()

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeError):
            return self._default

    def write_text(self, content: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(content, encoding="utf-8")


class ManifestDirectory:
    """Enumerates extensions installed as `<dir>/<folder>/package.json`.

    Each call rescans the directory. Unreadable manifests are reported and
    skipped.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def __call__(self) -> List[ExtensionContribution]:
        if not self.directory.is_dir():
            return []
        contributions: List[ExtensionContribution] = []
        for manifest_path in sorted(self.directory.glob("*/package.json")):
            try:
                manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
            except (OSError, UnicodeError, ValueError) as exc:
                record_event(
                    "storage.manifest_unreadable",
                    level="warning",
                    data={"path": str(manifest_path), "error": str(exc)},
                )
                continue
            if not isinstance(manifest, dict) or not manifest.get("name"):
                continue
            publisher = manifest.get("publisher")
            extension_id = (
                f"{publisher}.{manifest['name']}" if publisher else str(manifest["name"])
            )
            contributions.append(ExtensionContribution.from_manifest(extension_id, manifest))
        return contributions


class MemoryTextFile:
    """In-memory artifact used by tests and dry runs."""

    def __init__(self, content: Optional[str] = None) -> None:
        self.content = content
        self.writes = 0

    def exists(self) -> bool:
        return self.content is not None

    def read_text(self) -> str:
        return EMPTY_ARTIFACT if self.content is None else self.content

    def write_text(self, content: str) -> None:
        self.content = content
        self.writes += 1


__all__ = [
    "EMPTY_ARTIFACT",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "LocalTextFile",
    "ManifestDirectory",
    "MemoryKeyValueStore",
    "MemoryTextFile",
    "TextFile",
]
