"""Portable export/import of governance decisions.

Exports use format version 3, grouped by extension display name. Imports
accept version 3 and the older flat version 2 layout.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from keymap_governance.errors import ImportFormatError
from keymap_governance.keymaps.identity import derive_identity
from keymap_governance.keymaps.models import Binding
from keymap_governance.runtime.telemetry import span

from .models import STATUSES
from .service import GovernanceService

EXPORT_VERSION = 3
EXPORT_DESCRIPTION = "Keymap governance - complete backup of all extension shortcuts"


@dataclass(frozen=True, slots=True)
class ImportReport:
    applied: int
    skipped: int


def _sanitize(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return text.replace("\u2014", "-").replace("\u2013", "-")


def _timestamp() -> str:
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def build_export(
    service: GovernanceService,
    bindings: Optional[Iterable[Binding]] = None,
    *,
    exported_at: Optional[str] = None,
) -> Dict[str, Any]:
    """Serialize every extension binding with its current status."""

    source = service.parser.extension_bindings() if bindings is None else bindings
    shortcuts: List[Dict[str, Any]] = []
    for governed in service.governed_bindings(source):
        binding = governed.binding
        entry: Dict[str, Any] = {"key": binding.key, "command": binding.command}
        if binding.when:
            entry["when"] = binding.when
        entry["extensionId"] = binding.extension_id
        entry["extensionName"] = _sanitize(binding.extension_name)
        entry["status"] = governed.status
        if governed.status == "remapped":
            entry["originalKey"] = governed.original_key
            entry["remappedKey"] = governed.remapped_key
        shortcuts.append(entry)

    by_extension: Dict[str, List[Dict[str, Any]]] = {}
    for entry in shortcuts:
        group = entry["extensionName"] or entry["extensionId"] or "Unknown"
        by_extension.setdefault(group, []).append(entry)

    summary = {"total": len(shortcuts)}
    for status in STATUSES:
        summary[status] = sum(1 for entry in shortcuts if entry["status"] == status)

    return {
        "version": EXPORT_VERSION,
        "exportedAt": exported_at or _timestamp(),
        "description": EXPORT_DESCRIPTION,
        "summary": summary,
        "extensions": by_extension,
    }


def export_json(service: GovernanceService, **kwargs: Any) -> str:
    return json.dumps(build_export(service, **kwargs), indent=2, ensure_ascii=False)


def extract_shortcuts(payload: Any) -> List[Any]:
    """Flatten a v3 or v2 export into its list of shortcut entries."""

    if not isinstance(payload, Mapping):
        raise ImportFormatError("Backup must be a JSON object")
    version = payload.get("version")
    if version == 3 and isinstance(payload.get("extensions"), Mapping):
        shortcuts: List[Any] = []
        for group in payload["extensions"].values():
            if not isinstance(group, list):
                raise ImportFormatError(
                    "Extension groups must be lists", version=version
                )
            shortcuts.extend(group)
        return shortcuts
    if version == 2 and isinstance(payload.get("shortcuts"), list):
        return list(payload["shortcuts"])
    raise ImportFormatError("Invalid backup file format", version=version)


def _text(shortcut: Mapping[str, Any], name: str) -> Optional[str]:
    value = shortcut.get(name)
    return value if isinstance(value, str) and value else None


def import_decisions(service: GovernanceService, payload: Any) -> ImportReport:
    """Apply the decisions in ``payload`` (parsed JSON or raw text).

    Shape problems are raised before anything is applied. Entries without a
    string ``key``, ``command`` or ``status``, entries with a non-string
    ``when``, and entries whose status cannot be applied are counted as
    skipped.
    """

    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise ImportFormatError(f"Backup is not valid JSON: {exc}") from exc

    shortcuts = extract_shortcuts(payload)
    applied = 0
    skipped = 0
    with span(
        "governance::import",
        component="transfer",
        metadata={"entries": len(shortcuts)},
    ) as handle:
        for shortcut in shortcuts:
            if not isinstance(shortcut, Mapping):
                skipped += 1
                continue
            key = _text(shortcut, "key")
            command = _text(shortcut, "command")
            status = _text(shortcut, "status")
            raw_when = shortcut.get("when")
            if (
                not (key and command)
                or status not in STATUSES
                or not (raw_when is None or isinstance(raw_when, str))
            ):
                skipped += 1
                continue

            when = raw_when or None
            binding = Binding(
                id=derive_identity(key, command, when),
                key=key,
                command=command,
                when=when,
                source="extension",
                extension_id=_text(shortcut, "extensionId"),
                extension_name=_text(shortcut, "extensionName"),
            )
            if status == "deactivated":
                service.deactivate(binding)
            elif status == "remapped":
                remapped_key = _text(shortcut, "remappedKey")
                if not remapped_key or not remapped_key.strip():
                    skipped += 1
                    continue
                service.remap(binding, remapped_key)
            elif status == "approved":
                service.approve(binding)
            elif status == "skipped":
                service.skip(binding)
            applied += 1
        handle.add_metadata("applied", applied)
        handle.add_metadata("skipped", skipped)
    return ImportReport(applied=applied, skipped=skipped)


__all__ = [
    "EXPORT_VERSION",
    "ImportReport",
    "build_export",
    "export_json",
    "extract_shortcuts",
    "import_decisions",
]
