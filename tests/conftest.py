"""Shared fixtures for kernel tests."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from qos_kernel.config import KernelSettings, load_settings
from qos_kernel.models import HostContext, TickContext
from qos_kernel.process import ProcessRegistry, default_registry
from qos_kernel.store.memory import MemoryStore
from qos_kernel.testing import ManualCpuClock, scripted_process_class

SCRIPTED_KIND = "scripted"


@dataclass
class FakeProgress:
    total: int = 0
    completed: int = 0

    def get_process_count(self) -> int:
        return self.total

    def get_completed_process_count(self) -> int:
        return self.completed


def make_tick(
    reserve: float,
    *,
    used: float = 0.0,
    tick: int = 1,
    tick_limit: float = 500.0,
    baseline_rate: float = 100.0,
    detached: bool = False,
    cold_start: bool = False,
    clock: ManualCpuClock | None = None,
) -> TickContext:
    resolved_clock = clock if clock is not None else ManualCpuClock(used)
    return TickContext(
        host=HostContext(
            tick=tick,
            tick_limit=tick_limit,
            baseline_rate=baseline_rate,
            reserve=reserve,
            cpu_used=resolved_clock,
            detached=detached,
            cold_start=cold_start,
        )
    )


@pytest.fixture
def settings() -> KernelSettings:
    return load_settings(_env_file=None)


@pytest.fixture
def clock() -> ManualCpuClock:
    return ManualCpuClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def registry(clock: ManualCpuClock) -> ProcessRegistry:
    registry = default_registry("player")
    registry.register(SCRIPTED_KIND, scripted_process_class(clock))
    return registry
