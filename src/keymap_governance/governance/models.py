"""Decision and governance-state records plus their persisted blob format."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Literal, Mapping, Optional

GovernanceStatus = Literal["pending", "approved", "deactivated", "remapped", "skipped"]
STATUSES: tuple[str, ...] = ("pending", "approved", "deactivated", "remapped", "skipped")

STATE_SCHEMA_VERSION = 1


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class Decision:
    """Governance outcome recorded for one extension binding."""

    keybinding_id: str
    status: GovernanceStatus
    decided_at: int
    original_key: Optional[str] = None
    remapped_key: Optional[str] = None
    extension_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.keybinding_id:
            raise ValueError("decision keybinding_id cannot be empty")
        if self.status not in STATUSES:
            raise ValueError(f"Unknown governance status '{self.status}'")
        remap_keys = (self.original_key, self.remapped_key)
        if self.status == "remapped":
            if not all(remap_keys):
                raise ValueError("remapped decisions need original and remapped keys")
        elif any(remap_keys):
            raise ValueError("only remapped decisions carry remap keys")

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "keybindingId": self.keybinding_id,
            "status": self.status,
            "decidedAt": self.decided_at,
        }
        if self.original_key is not None:
            payload["originalKey"] = self.original_key
        if self.remapped_key is not None:
            payload["remappedKey"] = self.remapped_key
        if self.extension_id is not None:
            payload["extensionId"] = self.extension_id
        return payload

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Decision":
        return cls(
            keybinding_id=str(raw["keybindingId"]),
            status=raw["status"],
            decided_at=int(raw.get("decidedAt") or 0),
            original_key=raw.get("originalKey"),
            remapped_key=raw.get("remappedKey"),
            extension_id=raw.get("extensionId"),
        )


@dataclass(slots=True)
class GovernanceState:
    """The single live governance record."""

    version: int = STATE_SCHEMA_VERSION
    decisions: Dict[str, Decision] = field(default_factory=dict)
    extension_versions: Dict[str, str] = field(default_factory=dict)
    initial_audit_complete: bool = False
    last_updated: int = field(default_factory=now_ms)

    def copy(self) -> "GovernanceState":
        # Decisions are frozen, so copying the containers is a deep copy.
        return replace(
            self,
            decisions=dict(self.decisions),
            extension_versions=dict(self.extension_versions),
        )

    def status_of(self, keybinding_id: str) -> GovernanceStatus:
        decision = self.decisions.get(keybinding_id)
        return decision.status if decision else "pending"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "decisions": {
                key: decision.to_dict() for key, decision in self.decisions.items()
            },
            "extensionVersions": dict(self.extension_versions),
            "initialAuditComplete": self.initial_audit_complete,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "GovernanceState":
        """Strict parse of the persisted blob; raises on malformed input."""

        if not isinstance(raw, Mapping):
            raise TypeError("governance state must be a mapping")
        decisions_raw = raw.get("decisions") or {}
        versions_raw = raw.get("extensionVersions") or {}
        if not isinstance(decisions_raw, Mapping) or not isinstance(
            versions_raw, Mapping
        ):
            raise TypeError("governance state collections must be mappings")
        decisions = {
            str(key): Decision.from_dict(value) for key, value in decisions_raw.items()
        }
        return cls(
            version=int(raw.get("version", STATE_SCHEMA_VERSION)),
            decisions=decisions,
            extension_versions={str(k): str(v) for k, v in versions_raw.items()},
            initial_audit_complete=bool(raw.get("initialAuditComplete", False)),
            last_updated=int(raw.get("lastUpdated") or now_ms()),
        )


def empty_state() -> GovernanceState:
    return GovernanceState()


__all__ = [
    "Decision",
    "GovernanceState",
    "GovernanceStatus",
    "STATE_SCHEMA_VERSION",
    "STATUSES",
    "empty_state",
    "now_ms",
]
