"""External tick driver and a reference host for local simulation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import logging
import time

from .kernel import Kernel
from .models import HostContext, TickContext, TickSummary
from .process import Process

logger = logging.getLogger(__name__)

CpuClockFn = Callable[[], float]


def process_time_ms() -> float:
    return time.process_time() * 1000.0


@dataclass
class SimulatedHost:
    """Host that meters compute with a cumulative clock and banks unused time."""

    tick_limit: float = 500.0
    baseline_rate: float = 20.0
    reserve: float = 10000.0
    bucket_max: float = 10000.0
    tick: int = 0
    detached: bool = False
    cpu_clock: CpuClockFn = field(default=process_time_ms)

    def begin_tick(self, *, cold_start: bool = False) -> HostContext:
        self.tick += 1
        started = self.cpu_clock()
        clock = self.cpu_clock

        def cpu_used() -> float:
            return clock() - started

        return HostContext(
            tick=self.tick,
            tick_limit=self.tick_limit,
            baseline_rate=self.baseline_rate,
            reserve=self.reserve,
            cpu_used=cpu_used,
            detached=self.detached,
            cold_start=cold_start,
        )

    def end_tick(self, used: float) -> float:
        """Bank (or withdraw) the difference between the baseline rate and ``used``."""
        self.reserve = min(self.bucket_max, max(0.0, self.reserve + self.baseline_rate - used))
        return self.reserve


class TickDriver:
    """Invoke start/run/shutdown once per tick with a fresh TickContext."""

    def __init__(self, kernel: Kernel, host: SimulatedHost) -> None:
        self._kernel = kernel
        self._host = host
        self._ticks_run = 0

    @property
    def ticks_run(self) -> int:
        return self._ticks_run

    def run_tick(self) -> TickSummary:
        host_context = self._host.begin_tick(cold_start=self._ticks_run == 0)
        tick = TickContext(host=host_context)

        self._kernel.start(tick)
        try:
            self._kernel.run(tick)
        finally:
            summary = self._kernel.shutdown(tick)

        self._host.end_tick(host_context.used())
        self._ticks_run += 1
        return summary

    def run(self, ticks: int) -> list[TickSummary]:
        if ticks <= 0:
            raise ValueError("ticks must be > 0.")
        return [self.run_tick() for _ in range(ticks)]


class BusyProcess(Process):
    """Burn ``work_ms`` of process time per run; used by the simulate command."""

    def main(self) -> None:
        work_ms = float(self.data.get("work_ms", 1.0))
        deadline = process_time_ms() + work_ms
        while process_time_ms() < deadline:
            pass
        self.data["runs"] = int(self.data.get("runs", 0)) + 1

    def get_performance_descriptor(self) -> str | None:
        return f"{self.data.get('work_ms', 1.0)}ms"
