"""Dataclasses describing bindings, context expressions and artifact entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Literal, Mapping, Optional

from .identity import derive_identity

BindingSource = Literal["user", "extension", "default"]
BINDING_SOURCES: tuple[str, ...] = ("user", "extension", "default")

_UNMODELLED_TOKENS = ("(", ")", "=~", "<", ">", " in ", " not in ")


def _unquote(value: str) -> str:
    cleaned = value.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "'\"":
        return cleaned[1:-1]
    return cleaned


def _coerce_value(value: str) -> bool | str:
    cleaned = _unquote(value)
    if cleaned == "true":
        return True
    if cleaned == "false":
        return False
    return cleaned


def _truthy(value: bool | str) -> bool:
    return value if isinstance(value, bool) else bool(value)


@dataclass(frozen=True, slots=True)
class ContextTerm:
    """One conjunct of a context expression.

    Bare flags carry ``True``, negated flags ``False``; equality and
    inequality tests carry the compared value.
    """

    flag: str
    value: bool | str = True
    operator: Literal["==", "!="] = "=="

    def __post_init__(self) -> None:
        if not self.flag:
            raise ValueError("flag cannot be empty")

    @classmethod
    def parse(cls, expression: str) -> Optional["ContextTerm"]:
        """Parse a single term, or return ``None`` when it cannot be modelled."""

        expr = expression.strip()
        if not expr or any(token in expr for token in _UNMODELLED_TOKENS):
            return None
        for operator in ("!=", "=="):
            if operator in expr:
                flag, _, raw_value = expr.partition(operator)
                flag = flag.strip()
                if not flag:
                    return None
                return cls(flag, _coerce_value(raw_value), operator)  # type: ignore[arg-type]
        if expr.startswith("!"):
            flag = expr[1:].strip()
            return cls(flag, False) if flag else None
        return cls(expr, True)

    def contradicts(self, other: "ContextTerm") -> bool:
        if self.flag != other.flag:
            return False
        if self.operator == "!=" and other.operator == "!=":
            return False
        if self.operator == "!=" or other.operator == "!=":
            return self.value == other.value
        if self.value == other.value:
            return False
        if isinstance(self.value, bool) and isinstance(other.value, bool):
            return True
        if isinstance(self.value, str) and isinstance(other.value, str):
            return True
        return _truthy(self.value) != _truthy(other.value)


@dataclass(frozen=True, slots=True)
class ContextExpression:
    """Conjunctive view of a ``when`` clause.

    Disjunctions and unmodelled terms impose no constraint, so an expression
    only ever narrows the context through terms it fully understands.
    """

    terms: tuple[ContextTerm, ...] = ()
    raw: str = ""

    @classmethod
    def parse(cls, expression: Optional[str]) -> "ContextExpression":
        if not expression or not expression.strip():
            return cls()
        raw = expression.strip()
        if "||" in raw:
            return cls(raw=raw)
        terms = tuple(
            term
            for term in (ContextTerm.parse(part) for part in raw.split("&&"))
            if term is not None
        )
        return cls(terms=terms, raw=raw)

    @property
    def unconstrained(self) -> bool:
        return not self.terms

    def overlaps(self, other: "ContextExpression") -> bool:
        for term in self.terms:
            for candidate in other.terms:
                if term.contradicts(candidate):
                    return False
        return True


@dataclass(frozen=True, slots=True)
class Binding:
    """Key combination to command association from a given source."""

    id: str
    key: str
    command: str
    when: Optional[str] = None
    source: BindingSource = "extension"
    extension_id: Optional[str] = None
    extension_name: Optional[str] = None
    mac: Optional[str] = None
    win: Optional[str] = None
    linux: Optional[str] = None
    args: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("binding id cannot be empty")
        if not self.key:
            raise ValueError("binding key cannot be empty")
        if not self.command:
            raise ValueError("binding command cannot be empty")
        if self.source not in BINDING_SOURCES:
            raise ValueError(f"Unknown binding source '{self.source}'")
        if self.when is not None and not self.when.strip():
            object.__setattr__(self, "when", None)

    @classmethod
    def create(
        cls,
        key: str,
        command: str,
        when: Optional[str] = None,
        *,
        source: BindingSource = "extension",
        **extra: Any,
    ) -> "Binding":
        return cls(
            id=derive_identity(key, command, when),
            key=key,
            command=command,
            when=when,
            source=source,
            **extra,
        )

    @property
    def context(self) -> ContextExpression:
        return ContextExpression.parse(self.when)

    @property
    def is_user(self) -> bool:
        return self.source == "user"


@dataclass(frozen=True, slots=True)
class KeybindingEntry:
    """Single row of the persisted configuration list.

    Fields other than ``key``, ``command`` and ``when`` (``args`` included)
    ride along in ``extras`` so rewrites never drop them. Rows that are not
    a binding at all are kept as opaque entries holding the original item.
    """

    key: str
    command: str
    when: Optional[str] = None
    extras: Mapping[str, Any] = field(default_factory=dict)
    raw: Any = None
    is_opaque: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "extras", MappingProxyType(dict(self.extras)))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> Optional["KeybindingEntry"]:
        key = raw.get("key")
        command = raw.get("command")
        if not isinstance(key, str) or not isinstance(command, str):
            return None
        when = raw.get("when")
        extras = {
            name: value
            for name, value in raw.items()
            if name not in {"key", "command", "when"}
        }
        return cls(
            key=key,
            command=command,
            when=when if isinstance(when, str) and when else None,
            extras=extras,
        )

    @classmethod
    def opaque(cls, item: Any) -> "KeybindingEntry":
        return cls(key="", command="", raw=item, is_opaque=True)

    @property
    def args(self) -> Any:
        return self.extras.get("args")

    @property
    def is_negation(self) -> bool:
        return self.command.startswith("-")

    def to_dict(self) -> Any:
        if self.is_opaque:
            return self.raw
        payload: dict[str, Any] = {"key": self.key, "command": self.command}
        if self.when:
            payload["when"] = self.when
        payload.update(self.extras)
        return payload


@dataclass(frozen=True, slots=True)
class ExtensionContribution:
    """Extension metadata plus the raw keybindings it contributes."""

    id: str
    name: str
    version: str = "0.0.0"
    keybindings: tuple[Mapping[str, Any], ...] = ()

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("extension id cannot be empty")
        object.__setattr__(self, "keybindings", tuple(self.keybindings))

    @classmethod
    def from_manifest(
        cls, extension_id: str, manifest: Mapping[str, Any]
    ) -> "ExtensionContribution":
        """Build from a ``package.json``-style manifest."""

        contributes = manifest.get("contributes") or {}
        raw = contributes.get("keybindings") or ()
        if isinstance(raw, Mapping):
            raw = (raw,)
        return cls(
            id=extension_id,
            name=str(manifest.get("displayName") or extension_id),
            version=str(manifest.get("version") or "0.0.0"),
            keybindings=tuple(item for item in raw if isinstance(item, Mapping)),
        )


@dataclass(frozen=True, slots=True)
class ConflictGroup:
    """Bindings sharing a normalized key with overlapping contexts."""

    key: str
    normalized_key: str
    bindings: tuple[Binding, ...]

    @property
    def involves_user_binding(self) -> bool:
        return any(binding.source == "user" for binding in self.bindings)

    @property
    def involves_extension_binding(self) -> bool:
        return any(binding.source == "extension" for binding in self.bindings)

    @property
    def binding_ids(self) -> tuple[str, ...]:
        return tuple(binding.id for binding in self.bindings)

    def __contains__(self, binding: object) -> bool:
        return isinstance(binding, Binding) and binding.id in self.binding_ids


def entries_to_dicts(entries: Iterable[KeybindingEntry]) -> list[Any]:
    return [entry.to_dict() for entry in entries]


__all__ = [
    "BINDING_SOURCES",
    "Binding",
    "BindingSource",
    "ConflictGroup",
    "ContextExpression",
    "ContextTerm",
    "ExtensionContribution",
    "KeybindingEntry",
    "entries_to_dicts",
]
