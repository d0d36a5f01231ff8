"""Exceptions surfaced by the governance layer."""

from __future__ import annotations


class GovernanceError(RuntimeError):
    """Base class for errors raised to callers of the governance layer."""


class ProtectedResourceViolation(GovernanceError):
    """Raised before any write that would touch a protected resource.

    Covers deleting the Base snapshot and recording a decision for a binding
    that does not come from an extension.
    """

    def __init__(self, message: str, *, resource: str | None = None) -> None:
        super().__init__(message)
        self.resource = resource


class ImportFormatError(GovernanceError):
    """Raised when an import payload is not a recognised export shape."""

    def __init__(self, message: str, *, version: object | None = None) -> None:
        super().__init__(message)
        self.version = version


__all__ = [
    "GovernanceError",
    "ImportFormatError",
    "ProtectedResourceViolation",
]
