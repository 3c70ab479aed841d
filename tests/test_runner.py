"""Process execution, cost attribution and fault isolation."""

from __future__ import annotations

import logging

from conftest import make_tick
from qos_kernel.logging import DEFAULT_LOG_GROUP, current_log_group
from qos_kernel.performance import PerformanceTracker
from qos_kernel.process import Process
from qos_kernel.runner import ProcessRunner
from qos_kernel.store.memory import MemoryStore
from qos_kernel.testing import ManualCpuClock, scripted_process_class


class _GroupProbe(Process):
    seen: list[str] = []

    def main(self) -> None:
        _GroupProbe.seen.append(current_log_group())


class _BrokenDescriptor(Process):
    def main(self) -> None:
        return None

    def get_descriptor(self) -> str | None:
        raise KeyError("room")


def _runner() -> tuple[ProcessRunner, PerformanceTracker]:
    performance = PerformanceTracker(MemoryStore())
    return ProcessRunner(performance), performance


def test_execute_attributes_cost_under_performance_name() -> None:
    clock = ManualCpuClock()
    runner, performance = _runner()
    process = scripted_process_class(clock)(3, "harvest", {"cost": 4.5, "perf": "W1N1"})

    outcome = runner.execute(process, make_tick(10000, clock=clock).host)

    assert outcome.ok is True
    assert outcome.cost == 4.5
    assert outcome.performance_name == "harvest W1N1"
    stats = performance.get("harvest W1N1")
    assert stats is not None
    assert stats.count == 1
    assert stats.total == 4.5


def test_execute_captures_fault_and_still_records_cost(caplog) -> None:
    clock = ManualCpuClock()
    runner, performance = _runner()
    process = scripted_process_class(clock)(7, "defend", {"cost": 2, "fail": "boom", "label": "E2S3"})

    with caplog.at_level(logging.ERROR, logger="qos_kernel"):
        outcome = runner.execute(process, make_tick(10000, clock=clock).host)

    assert outcome.ok is False
    assert outcome.error == "RuntimeError: boom"
    assert outcome.traceback is not None and "boom" in outcome.traceback
    assert outcome.descriptor == "E2S3"
    assert outcome.label == "defend E2S3"
    assert outcome.cost == 2
    assert performance.get("defend").total == 2

    errors = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "program error occurred" in errors[0].getMessage()
    assert "process 7: defend E2S3" in errors[0].getMessage()


def test_execute_scopes_log_group_to_process_name() -> None:
    runner, _ = _runner()
    _GroupProbe.seen = []

    runner.execute(_GroupProbe(1, "spawner"), make_tick(10000).host)

    assert _GroupProbe.seen == ["spawner"]
    assert current_log_group() == DEFAULT_LOG_GROUP


def test_execute_restores_log_group_after_fault() -> None:
    clock = ManualCpuClock()
    runner, _ = _runner()

    runner.execute(scripted_process_class(clock)(2, "broken", {"fail": "nope"}), make_tick(10000).host)

    assert current_log_group() == DEFAULT_LOG_GROUP


def test_descriptor_failure_falls_back_to_process_name(caplog) -> None:
    runner, performance = _runner()

    with caplog.at_level(logging.WARNING, logger="qos_kernel"):
        outcome = runner.execute(_BrokenDescriptor(4, "observer"), make_tick(10000).host)

    assert outcome.ok is True
    assert outcome.descriptor is None
    assert outcome.label == "observer"
    assert performance.get("observer").count == 1
    assert any("Descriptor lookup failed" in record.getMessage() for record in caplog.records)
