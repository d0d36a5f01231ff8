"""Decision tracking, compound actions, auditing and backup transfer."""

from .audit import AuditReport, ExtensionAudit, build_audit, deactivate_all_conflicting
from .models import (
    STATUSES,
    Decision,
    GovernanceState,
    GovernanceStatus,
    empty_state,
)
from .service import GovernanceService, GovernedBinding
from .store import ExtensionChange, GovernanceStore, require_governable
from .transfer import ImportReport, build_export, export_json, import_decisions
from .watcher import ExtensionWatcher, NewShortcutsNotification, handle_first_run

__all__ = [
    "AuditReport",
    "Decision",
    "ExtensionAudit",
    "ExtensionChange",
    "ExtensionWatcher",
    "GovernanceService",
    "GovernanceState",
    "GovernanceStatus",
    "GovernanceStore",
    "GovernedBinding",
    "ImportReport",
    "NewShortcutsNotification",
    "STATUSES",
    "build_audit",
    "build_export",
    "deactivate_all_conflicting",
    "empty_state",
    "export_json",
    "handle_first_run",
    "import_decisions",
    "require_governable",
]
