"""
Tagged outcomes of long-running computations.

A search either finishes (``Ok``), is stopped on request (``Cancelled``) or
breaks (``Failed``). Callers branch with ``match``; cancellation is an
ordinary outcome, not an error.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Cancelled:
    pass


@dataclass(frozen=True, slots=True)
class Failed:
    reason: str


Outcome = Union[Ok[T], Cancelled, Failed]
