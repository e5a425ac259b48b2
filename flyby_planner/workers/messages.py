"""
Messages exchanged between a host and a compute worker.

Inbound (host to worker): Initialize, Run, Continue, Stop, Pass.
Outbound (worker to host): Initialized, Progress, Complete, Stopped, Debug, Received.

Every Run or Continue ends with exactly one Complete or Stopped. A ``None``
on the inbound queue shuts the worker down.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from flyby_planner.config import PlannerConfig
from flyby_planner.results import Outcome


# ------------------------------- Inbound ---------------------------------

@dataclass(frozen=True, slots=True)
class Initialize:
    config: PlannerConfig


@dataclass(frozen=True, slots=True)
class Run:
    input: Any


@dataclass(frozen=True, slots=True)
class Continue:
    input: Any = None


@dataclass(frozen=True, slots=True)
class Stop:
    pass


@dataclass(frozen=True, slots=True)
class Pass:
    data: Any


InboundMessage = Union[Initialize, Run, Continue, Stop, Pass]


# ------------------------------- Outbound --------------------------------

@dataclass(frozen=True, slots=True)
class Initialized:
    pass


@dataclass(frozen=True, slots=True)
class Progress:
    fraction: float
    data: Any = None


@dataclass(frozen=True, slots=True)
class Complete:
    """Terminal message of a run that was not stopped; ``result`` is Ok or Failed."""
    result: Outcome


@dataclass(frozen=True, slots=True)
class Stopped:
    pass


@dataclass(frozen=True, slots=True)
class Debug:
    data: Any


@dataclass(frozen=True, slots=True)
class Received:
    pass


OutboundMessage = Union[Initialized, Progress, Complete, Stopped, Debug, Received]
