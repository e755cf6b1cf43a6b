"""Exception types raised by specasm."""

from __future__ import annotations


class SpecasmError(Exception):
    """Base class for specasm failures."""


class SpecError(SpecasmError, ValueError):
    """Raised when an architecture specification is malformed."""


class LoadError(SpecasmError):
    """Raised by a document loader that cannot provide a document."""

    def __init__(self, kind: str, name: str, reason: str = "") -> None:
        self.kind = kind
        self.name = name
        self.reason = reason
        message = f"Could not load {kind} '{name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
