"""Binding model, identity derivation and conflict detection."""

from .conflicts import ConflictDetector, contexts_overlap, surfaced_conflicts
from .identity import (
    base_command,
    derive_identity,
    is_negation_command,
    normalize_key_combination,
    normalize_platform_key,
    resolve_platform_key,
)
from .models import (
    Binding,
    ConflictGroup,
    ContextExpression,
    ContextTerm,
    ExtensionContribution,
    KeybindingEntry,
)
from .parser import KeybindingParser

__all__ = [
    "Binding",
    "ConflictDetector",
    "ConflictGroup",
    "ContextExpression",
    "ContextTerm",
    "ExtensionContribution",
    "KeybindingEntry",
    "KeybindingParser",
    "base_command",
    "contexts_overlap",
    "derive_identity",
    "is_negation_command",
    "normalize_key_combination",
    "normalize_platform_key",
    "resolve_platform_key",
    "surfaced_conflicts",
]
