"""Snapshot records pairing raw artifact content with governance state."""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from keymap_governance.governance.models import GovernanceState, now_ms

BASE_SNAPSHOT_NAME = "Base Snapshot"

_ALPHABET = string.ascii_lowercase + string.digits


def generate_snapshot_id(created_at: int | None = None) -> str:
    stamp = now_ms() if created_at is None else created_at
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"snapshot-{stamp}-{suffix}"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Versioned capture of the artifact and the governance state."""

    id: str
    name: str
    created_at: int
    keybindings_content: str
    governance_state: GovernanceState = field(compare=False)
    is_base: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "keybindingsContent": self.keybindings_content,
            "governanceState": self.governance_state.to_dict(),
            "isBase": self.is_base,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Snapshot":
        name = str(raw["name"])
        return cls(
            id=str(raw["id"]),
            name=name,
            created_at=int(raw["createdAt"]),
            keybindings_content=str(raw["keybindingsContent"]),
            governance_state=GovernanceState.from_dict(raw["governanceState"]),
            # Blobs written before the flag existed mark Base by name only.
            is_base=bool(raw.get("isBase", name == BASE_SNAPSHOT_NAME)),
        )


__all__ = ["BASE_SNAPSHOT_NAME", "Snapshot", "generate_snapshot_id"]
