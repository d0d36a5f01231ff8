"""Persisted identity → decision mapping with observer notifications."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from keymap_governance.config import STATE_KEY
from keymap_governance.errors import ProtectedResourceViolation
from keymap_governance.keymaps.models import Binding
from keymap_governance.runtime.telemetry import record_event, span
from keymap_governance.storage.providers import KeyValueStore

from .models import STATUSES, Decision, GovernanceState, GovernanceStatus, now_ms

StateObserver = Callable[[GovernanceState], None]
BatchPredicate = Callable[[Binding, GovernanceStatus], bool]


@dataclass(frozen=True, slots=True)
class ExtensionChange:
    """Extension whose contributed bindings need another look."""

    extension_id: str
    is_new: bool


def require_governable(binding: Binding) -> None:
    if binding.source != "extension":
        raise ProtectedResourceViolation(
            f"Binding '{binding.id}' comes from '{binding.source}' and cannot be governed",
            resource=binding.id,
        )


class GovernanceStore:
    """Owns the single live ``GovernanceState``.

    Each mutation builds a new state, persists it wholesale and only then
    swaps it in and notifies observers, so observers never see a state that
    was not written.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        key: str = STATE_KEY,
        clock: Callable[[], int] = now_ms,
        logger_name: str | None = None,
    ) -> None:
        self._storage = storage
        self._key = key
        self._clock = clock
        self._logger_name = logger_name
        self._lock = threading.RLock()
        self._observers: List[StateObserver] = []
        self._state = self._load()

    def _load(self) -> GovernanceState:
        raw = self._storage.get(self._key)
        if raw is None:
            return GovernanceState(last_updated=self._clock())
        try:
            return GovernanceState.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            record_event(
                "governance.state_corrupt",
                level="warning",
                data={"key": self._key, "error": str(exc)},
                logger_name=self._logger_name,
            )
            return GovernanceState(last_updated=self._clock())

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register ``observer``; the returned callable unsubscribes it."""

        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def get_state(self) -> GovernanceState:
        with self._lock:
            return self._state.copy()

    def get_decision(self, keybinding_id: str) -> Optional[Decision]:
        with self._lock:
            return self._state.decisions.get(keybinding_id)

    def get_status(self, keybinding_id: str) -> GovernanceStatus:
        with self._lock:
            return self._state.status_of(keybinding_id)

    def is_first_run(self) -> bool:
        with self._lock:
            return not self._state.initial_audit_complete

    def record_decision(
        self,
        binding: Binding,
        status: GovernanceStatus,
        remapped_key: Optional[str] = None,
    ) -> Optional[Decision]:
        """Record ``status`` for ``binding``; ``pending`` clears the decision."""

        require_governable(binding)
        if status not in STATUSES:
            raise ValueError(f"Unknown governance status '{status}'")
        if status == "pending":
            self.unrecord_decision(binding)
            return None
        if status == "remapped" and not remapped_key:
            raise ValueError("remapped decisions require a remapped key")

        with self._lock:
            decision = self._make_decision(binding, status, remapped_key)
            state = self._state.copy()
            state.decisions[binding.id] = decision
            self._commit(state, "record_decision", binding_id=binding.id, status=status)
            return decision

    def unrecord_decision(self, binding: Binding) -> bool:
        require_governable(binding)
        with self._lock:
            if binding.id not in self._state.decisions:
                return False
            state = self._state.copy()
            del state.decisions[binding.id]
            self._commit(state, "unrecord_decision", binding_id=binding.id)
            return True

    def batch_record(
        self,
        extension_id: str,
        bindings: Iterable[Binding],
        predicate: BatchPredicate,
        status: GovernanceStatus,
    ) -> int:
        """Apply ``status`` to every binding of ``extension_id`` accepted by
        ``predicate``; persists and notifies once."""

        if status == "remapped":
            raise ValueError("remaps need a key per binding and cannot be batched")
        if status not in STATUSES:
            raise ValueError(f"Unknown governance status '{status}'")
        with self._lock:
            state = self._state.copy()
            count = 0
            for binding in bindings:
                if binding.source != "extension" or binding.extension_id != extension_id:
                    continue
                if not predicate(binding, state.status_of(binding.id)):
                    continue
                if status == "pending":
                    if state.decisions.pop(binding.id, None) is None:
                        continue
                else:
                    state.decisions[binding.id] = self._make_decision(binding, status)
                count += 1
            if count:
                self._commit(
                    state,
                    "batch_record",
                    extension_id=extension_id,
                    status=status,
                    count=count,
                )
            return count

    def replace_state(self, new_state: GovernanceState) -> None:
        with self._lock:
            self._commit(new_state.copy(), "replace_state")

    def reset(self) -> None:
        with self._lock:
            self._commit(GovernanceState(), "reset")

    def mark_initial_audit_complete(self) -> None:
        with self._lock:
            state = self._state.copy()
            state.initial_audit_complete = True
            self._commit(state, "mark_initial_audit_complete")

    def update_extension_versions(self, versions: Mapping[str, str]) -> None:
        with self._lock:
            state = self._state.copy()
            state.extension_versions = dict(versions)
            self._commit(state, "update_extension_versions", count=len(versions))

    def get_new_or_updated_extensions(
        self, current_versions: Mapping[str, str]
    ) -> list[ExtensionChange]:
        with self._lock:
            stored = self._state.extension_versions
            changes: list[ExtensionChange] = []
            for extension_id, version in current_versions.items():
                previous = stored.get(extension_id)
                if not previous:
                    changes.append(ExtensionChange(extension_id, is_new=True))
                elif previous != version:
                    changes.append(ExtensionChange(extension_id, is_new=False))
            return changes

    def statistics(self) -> Dict[str, int]:
        with self._lock:
            decisions = list(self._state.decisions.values())
        stats = {status: 0 for status in STATUSES}
        for decision in decisions:
            stats[decision.status] += 1
        stats["total"] = len(decisions)
        return stats

    def _make_decision(
        self,
        binding: Binding,
        status: GovernanceStatus,
        remapped_key: Optional[str] = None,
    ) -> Decision:
        remapped = status == "remapped"
        return Decision(
            keybinding_id=binding.id,
            status=status,
            decided_at=self._clock(),
            original_key=binding.key if remapped else None,
            remapped_key=remapped_key if remapped else None,
            extension_id=binding.extension_id,
        )

    def _commit(self, state: GovernanceState, operation: str, **metadata: object) -> None:
        with span(
            f"governance::{operation}",
            logger_name=self._logger_name,
            component="governance_store",
            metadata=metadata or None,
        ):
            state.last_updated = self._clock()
            self._storage.set(self._key, state.to_dict())
            self._state = state
            for observer in list(self._observers):
                observer(state.copy())


__all__ = [
    "BatchPredicate",
    "ExtensionChange",
    "GovernanceStore",
    "StateObserver",
    "require_governable",
]
