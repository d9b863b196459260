"""
Per-call result type.

External calls never raise past their component: they return an Outcome
holding either a value or a typed failure, and the caller decides in one
place whether to fall back to a default.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailureKind(StrEnum):
    """Why a call produced no value."""

    NETWORK = "network"
    PARSE = "parse"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Success value or typed failure of a single call."""

    value: T | None = None
    failure: FailureKind | None = None
    detail: str = ""

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, detail: str = "") -> "Outcome[T]":
        return cls(failure=kind, detail=detail)

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    def unwrap_or(self, default: T) -> T:
        """Return the value, or `default` when the call failed."""
        if self.failure is not None or self.value is None:
            return default
        return self.value
