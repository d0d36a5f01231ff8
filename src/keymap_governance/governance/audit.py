"""Audit cycle: one read of every binding, statuses, and surfaced conflicts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from keymap_governance.keymaps.conflicts import ConflictDetector, surfaced_conflicts
from keymap_governance.keymaps.models import Binding, ConflictGroup
from keymap_governance.keymaps.parser import KeybindingParser
from keymap_governance.runtime.telemetry import span

from .models import STATUSES
from .service import GovernanceService, GovernedBinding

# Bindings in these states are no longer live in the artifact.
INACTIVE_STATUSES = frozenset({"deactivated", "remapped"})


@dataclass(frozen=True, slots=True)
class ExtensionAudit:
    extension_id: str
    extension_name: str
    bindings: Tuple[GovernedBinding, ...] = ()

    @property
    def stats(self) -> Dict[str, int]:
        counts = {status: 0 for status in STATUSES}
        for governed in self.bindings:
            counts[governed.status] += 1
        counts["total"] = len(self.bindings)
        return counts


@dataclass(frozen=True, slots=True)
class AuditReport:
    """Everything a review surface needs after one audit read."""

    user_bindings: Tuple[Binding, ...] = ()
    extensions: Tuple[ExtensionAudit, ...] = ()
    conflicts: Tuple[ConflictGroup, ...] = ()

    @property
    def totals(self) -> Dict[str, int]:
        counts = {status: 0 for status in STATUSES}
        for extension in self.extensions:
            for status, value in extension.stats.items():
                if status != "total":
                    counts[status] += value
        counts["total"] = sum(len(extension.bindings) for extension in self.extensions)
        counts["user"] = len(self.user_bindings)
        counts["conflicts"] = len(self.conflicts)
        return counts

    def extension(self, extension_id: str) -> Optional[ExtensionAudit]:
        return next((e for e in self.extensions if e.extension_id == extension_id), None)

    def governed(self, keybinding_id: str) -> Optional[GovernedBinding]:
        for extension in self.extensions:
            for governed in extension.bindings:
                if governed.id == keybinding_id:
                    return governed
        return None


def active_extension_bindings(
    service: GovernanceService, bindings: list[Binding]
) -> list[Binding]:
    return [b for b in bindings if service.store.get_status(b.id) not in INACTIVE_STATUSES]


def build_audit(
    parser: KeybindingParser,
    service: GovernanceService,
    detector: Optional[ConflictDetector] = None,
) -> AuditReport:
    detector = detector or ConflictDetector()
    with span("governance::audit", component="audit") as handle:
        user = parser.user_bindings()
        extensions: list[ExtensionAudit] = []
        all_extension: list[Binding] = []
        for contribution in parser.extension_contributions():
            bindings = parser.bindings_for_contribution(contribution)
            if not bindings:
                continue
            all_extension.extend(bindings)
            extensions.append(
                ExtensionAudit(
                    extension_id=contribution.id,
                    extension_name=contribution.name or contribution.id,
                    bindings=tuple(service.governed_bindings(bindings)),
                )
            )
        conflicts = surfaced_conflicts(
            detector.detect_conflicts(user, active_extension_bindings(service, all_extension))
        )
        handle.add_metadata("extensions", len(extensions))
        handle.add_metadata("conflicts", len(conflicts))
        return AuditReport(
            user_bindings=tuple(user),
            extensions=tuple(extensions),
            conflicts=tuple(conflicts),
        )


def deactivate_all_conflicting(
    parser: KeybindingParser,
    service: GovernanceService,
    detector: Optional[ConflictDetector] = None,
) -> int:
    """Deactivate every live extension binding that sits in a conflict group.

    User bindings in those groups are left alone. Returns the number of
    bindings newly deactivated.
    """

    detector = detector or ConflictDetector()
    user, extension = parser.all_bindings()
    conflicts = detector.detect_conflicts(user, active_extension_bindings(service, extension))
    count = 0
    for group in conflicts:
        for binding in group.bindings:
            if binding.source == "extension" and service.deactivate(binding):
                count += 1
    return count


__all__ = [
    "AuditReport",
    "ExtensionAudit",
    "INACTIVE_STATUSES",
    "active_extension_bindings",
    "build_audit",
    "deactivate_all_conflicting",
]
