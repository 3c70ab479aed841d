"""Data model contracts for cross-module use."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

CpuUsedFn = Callable[[], float]


@dataclass(frozen=True)
class HostContext:
    """Read-only facts the host supplies fresh for every tick."""

    tick: int
    tick_limit: float
    baseline_rate: float
    reserve: float
    cpu_used: CpuUsedFn
    detached: bool = False
    cold_start: bool = False

    def used(self) -> float:
        return float(self.cpu_used())


@dataclass(frozen=True)
class ProcessOutcome:
    pid: int
    name: str
    ok: bool
    cost: float
    descriptor: str | None = None
    performance_name: str | None = None
    error: str | None = None
    traceback: str | None = None

    @property
    def label(self) -> str:
        if self.descriptor:
            return f"{self.name} {self.descriptor}"
        return self.name


@dataclass
class TickContext:
    """State scoped to one tick invocation; discarded when the tick ends."""

    host: HostContext
    allowance: float | None = None
    outcomes: list[ProcessOutcome] = field(default_factory=list)
    stop_reason: str | None = None

    @property
    def tick(self) -> int:
        return self.host.tick

    @property
    def faults(self) -> tuple[ProcessOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)


class ContinueReason(str, Enum):
    DETACHED = "detached"
    HARD_LIMIT = "hard_limit"
    WITHIN_ALLOWANCE = "within_allowance"
    FAIRNESS_BURST = "fairness_burst"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class BudgetDecision:
    proceed: bool
    reason: ContinueReason
    used: float
    allowance: float | None = None


@dataclass(frozen=True)
class DeploymentMarker:
    script_version: str
    script_upload: int


@dataclass(frozen=True)
class TickSummary:
    tick: int
    processes_run: int
    process_count: int
    tick_limit: float
    allowance: float
    cpu_used: float
    reserve: float
    faults: int = 0
    stop_reason: str | None = None
    report_rendered: bool = False
    stats_reset: bool = False
