"""Compound governance actions: artifact mutation followed by a decision record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Literal, Optional

from keymap_governance.keymaps.identity import negated
from keymap_governance.keymaps.models import Binding
from keymap_governance.keymaps.parser import KeybindingParser
from keymap_governance.runtime.telemetry import record_event, span
from keymap_governance.storage.keybindings_file import KeybindingsFile

from .models import GovernanceState, GovernanceStatus
from .store import GovernanceStore, require_governable

DecisionAction = Literal["deactivate", "remap"]


@dataclass(frozen=True, slots=True)
class GovernedBinding:
    """Binding paired with its current decision."""

    binding: Binding
    status: GovernanceStatus
    original_key: Optional[str] = None
    remapped_key: Optional[str] = None
    decided_at: Optional[int] = None

    @property
    def id(self) -> str:
        return self.binding.id


class GovernanceService:
    """Applies decisions to the artifact and the state store.

    The artifact is always written before the decision is recorded; a crash
    in between leaves the file ahead, which ``reconcile`` repairs.
    """

    def __init__(
        self,
        store: GovernanceStore,
        keybindings_file: KeybindingsFile,
        parser: KeybindingParser,
        *,
        logger_name: str | None = None,
    ) -> None:
        self.store = store
        self.file = keybindings_file
        self.parser = parser
        self._logger_name = logger_name

    def get_state(self) -> GovernanceState:
        return self.store.get_state()

    def install_state(self, state: GovernanceState) -> None:
        """Adopt ``state`` wholesale, e.g. after a snapshot restore."""

        self.store.replace_state(state)

    def is_first_run(self) -> bool:
        return self.store.is_first_run()

    def approve(self, binding: Binding) -> None:
        self.store.record_decision(binding, "approved")

    def skip(self, binding: Binding) -> None:
        self.store.record_decision(binding, "skipped")

    def unapprove(self, binding: Binding) -> bool:
        return self.store.unrecord_decision(binding)

    def deactivate(self, binding: Binding) -> bool:
        """Negate ``binding`` in the artifact; ``False`` if already deactivated.

        A remapped binding loses its remap entries first, so only the single
        negation remains.
        """

        require_governable(binding)
        status = self.store.get_status(binding.id)
        if status == "deactivated":
            return False
        with span(
            "governance::deactivate",
            logger_name=self._logger_name,
            component="governance_service",
            metadata={"binding_id": binding.id},
        ):
            if status == "remapped":
                self.file.remove_remap_entries(binding.command)
            self.file.deactivate(binding.key, binding.command, binding.when)
            self.store.record_decision(binding, "deactivated")
        return True

    def remap(self, binding: Binding, new_key: str) -> None:
        require_governable(binding)
        if not new_key or not new_key.strip():
            raise ValueError("remap requires a non-empty key")
        with span(
            "governance::remap",
            logger_name=self._logger_name,
            component="governance_service",
            metadata={"binding_id": binding.id, "new_key": new_key},
        ):
            self.file.remap(binding.key, new_key, binding.command, binding.when)
            self.store.record_decision(binding, "remapped", new_key)

    def apply_decision(
        self,
        binding: Binding,
        action: DecisionAction,
        new_key: Optional[str] = None,
    ) -> None:
        if action == "deactivate":
            self.deactivate(binding)
        elif action == "remap":
            if not new_key:
                raise ValueError("remap requires a new key")
            self.remap(binding, new_key)
        else:
            raise ValueError(f"Unknown decision action '{action}'")

    def restore(self, binding: Binding) -> bool:
        """Drop the negation for ``binding`` and send it back to pending."""

        require_governable(binding)
        if self.store.get_status(binding.id) == "remapped":
            return self.restore_remapped(binding)
        found = self.file.restore_deactivation(binding.key, binding.command, binding.when)
        self.store.unrecord_decision(binding)
        return found

    def restore_remapped(self, binding: Binding) -> bool:
        require_governable(binding)
        found = self.file.remove_remap_entries(binding.command)
        self.store.unrecord_decision(binding)
        return found

    def approve_all_from_extension(self, extension_id: str) -> int:
        return self.store.batch_record(
            extension_id,
            self.parser.bindings_for_extension(extension_id),
            lambda _binding, status: status == "pending",
            "approved",
        )

    def unapprove_all_from_extension(self, extension_id: str) -> int:
        return self.store.batch_record(
            extension_id,
            self.parser.bindings_for_extension(extension_id),
            lambda _binding, status: status == "approved",
            "pending",
        )

    def deactivate_all_from_extension(self, extension_id: str) -> int:
        count = 0
        for binding in self.parser.bindings_for_extension(extension_id):
            if self.store.get_status(binding.id) == "pending" and self.deactivate(binding):
                count += 1
        return count

    def restore_all_from_extension(self, extension_id: str) -> int:
        count = 0
        for binding in self.parser.bindings_for_extension(extension_id):
            if self.store.get_status(binding.id) == "deactivated":
                self.restore(binding)
                count += 1
        return count

    def governed_bindings(self, bindings: Iterable[Binding]) -> list[GovernedBinding]:
        governed: list[GovernedBinding] = []
        for binding in bindings:
            decision = self.store.get_decision(binding.id)
            governed.append(
                GovernedBinding(
                    binding=binding,
                    status=decision.status if decision else "pending",
                    original_key=decision.original_key if decision else None,
                    remapped_key=decision.remapped_key if decision else None,
                    decided_at=decision.decided_at if decision else None,
                )
            )
        return governed

    def pending_bindings(self, bindings: Iterable[Binding]) -> list[Binding]:
        return [b for b in bindings if self.store.get_status(b.id) == "pending"]

    def new_keybindings(self) -> list[Binding]:
        return self.pending_bindings(self.parser.extension_bindings())

    def reset_all_decisions(self) -> None:
        self.store.reset()

    def cleanup_keybindings_file(self) -> int:
        """Remove every artifact entry this tool wrote for current decisions."""

        cleaned = 0
        for binding in self.parser.extension_bindings():
            status = self.store.get_status(binding.id)
            if status == "deactivated":
                self.file.restore_deactivation(binding.key, binding.command, binding.when)
                cleaned += 1
            elif status == "remapped":
                self.file.remove_remap_entries(binding.command)
                cleaned += 1
        return cleaned

    def prepare_for_uninstall(self) -> int:
        cleaned = self.cleanup_keybindings_file()
        self.reset_all_decisions()
        return cleaned

    def statistics(self) -> Dict[str, int]:
        return self.store.statistics()

    def reconcile(self, bindings: Optional[Iterable[Binding]] = None) -> int:
        """Record decisions the artifact already reflects.

        A pending extension binding whose exact negation is present was
        deactivated (or remapped, when a replacement entry for the same command
        and context exists) by a run that stopped before recording it.
        """

        candidates = list(self.parser.extension_bindings() if bindings is None else bindings)
        entries = self.file.read()
        repaired = 0
        for binding in candidates:
            if binding.source != "extension":
                continue
            if self.store.get_status(binding.id) != "pending":
                continue
            target = negated(binding.command)
            negation = any(
                entry.key == binding.key
                and entry.command == target
                and (entry.when or None) == binding.when
                for entry in entries
            )
            if not negation:
                continue
            replacement = next(
                (
                    entry
                    for entry in entries
                    if entry.command == binding.command
                    and (entry.when or None) == binding.when
                    and entry.key != binding.key
                ),
                None,
            )
            if replacement is not None:
                self.store.record_decision(binding, "remapped", replacement.key)
            else:
                self.store.record_decision(binding, "deactivated")
            repaired += 1
        if repaired:
            record_event(
                "governance.reconciled",
                level="warning",
                data={"count": repaired},
                logger_name=self._logger_name,
            )
        return repaired


__all__ = ["DecisionAction", "GovernanceService", "GovernedBinding"]
