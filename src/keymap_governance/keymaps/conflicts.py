"""Collision detection over context-scoped bindings."""

from __future__ import annotations

from typing import Dict, Iterable, Sequence

from keymap_governance.runtime.telemetry import span

from .identity import normalize_key_combination
from .models import Binding, ConflictGroup


def contexts_overlap(left: Binding, right: Binding) -> bool:
    """Whether ``left`` and ``right`` can both be active at once.

    Conservative: only a flag or key assigned contradictory values by the two
    ``when`` clauses separates them.
    """

    if not left.when or not right.when:
        return True
    return left.context.overlaps(right.context)


def group_by_context(bindings: Sequence[Binding]) -> list[list[Binding]]:
    """Partition one key bucket into overlap groups.

    Each group is seeded on the first unassigned binding and absorbs every
    later unassigned binding overlapping the seed. Absorbed members are not
    compared with each other, so the result depends on bucket order.
    """

    groups: list[list[Binding]] = []
    assigned: set[int] = set()
    for index, seed in enumerate(bindings):
        if index in assigned:
            continue
        group = [seed]
        assigned.add(index)
        for other_index in range(index + 1, len(bindings)):
            if other_index in assigned:
                continue
            candidate = bindings[other_index]
            if contexts_overlap(seed, candidate):
                group.append(candidate)
                assigned.add(other_index)
        groups.append(group)
    return groups


class ConflictDetector:
    """Groups bindings that share a normalized key and an overlapping context."""

    def __init__(self, *, logger_name: str | None = None) -> None:
        self._logger_name = logger_name

    def detect_conflicts(
        self,
        user_bindings: Iterable[Binding],
        extension_bindings: Iterable[Binding],
    ) -> list[ConflictGroup]:
        arrivals = [*user_bindings, *extension_bindings]
        with span(
            "keymaps::detect_conflicts",
            logger_name=self._logger_name,
            component="conflicts",
            metadata={"bindings": len(arrivals)},
        ) as handle:
            buckets: Dict[str, list[Binding]] = {}
            for binding in arrivals:
                normalized = normalize_key_combination(binding.key)
                buckets.setdefault(normalized, []).append(binding)

            conflicts: list[ConflictGroup] = []
            for normalized, bucket in buckets.items():
                if len(bucket) < 2:
                    continue
                for group in group_by_context(bucket):
                    if len(group) < 2:
                        continue
                    conflicts.append(
                        ConflictGroup(
                            key=group[0].key,
                            normalized_key=normalized,
                            bindings=tuple(group),
                        )
                    )
            handle.add_metadata("groups", len(conflicts))
            return conflicts

    @staticmethod
    def conflicts_for_binding(
        binding: Binding, conflicts: Iterable[ConflictGroup]
    ) -> list[ConflictGroup]:
        return [group for group in conflicts if binding.id in group.binding_ids]

    @staticmethod
    def conflicting_keys(conflicts: Iterable[ConflictGroup]) -> set[str]:
        return {group.normalized_key for group in conflicts}

    @staticmethod
    def has_conflict(key: str, conflicts: Iterable[ConflictGroup]) -> bool:
        normalized = normalize_key_combination(key)
        return any(group.normalized_key == normalized for group in conflicts)


def surfaced_conflicts(conflicts: Iterable[ConflictGroup]) -> list[ConflictGroup]:
    """Drop groups made only of user bindings; those are intentional."""

    return [group for group in conflicts if group.involves_extension_binding]


__all__ = [
    "ConflictDetector",
    "contexts_overlap",
    "group_by_context",
    "surfaced_conflicts",
]
