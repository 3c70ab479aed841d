"""Execute one process with cost attribution and fault isolation."""

from __future__ import annotations

from collections.abc import Callable
import logging
import traceback

from .logging import TRACE, log_group
from .models import HostContext, ProcessOutcome
from .performance import PerformanceTracker
from .process import Process

logger = logging.getLogger(__name__)


class ProcessRunner:
    """Run a process, measure its compute cost and turn any fault into an outcome."""

    def __init__(self, performance: PerformanceTracker) -> None:
        self._performance = performance

    def execute(self, process: Process, host: HostContext) -> ProcessOutcome:
        descriptor = _describe(process, process.get_descriptor)
        label = f"{process.name} {descriptor}" if descriptor else process.name

        with log_group(process.name):
            logger.log(TRACE, f"Running {label} (pid {process.pid})")
            start_cpu = host.used()
            error: str | None = None
            trace: str | None = None
            try:
                process.run()
            except Exception as exc:
                error = f"{type(exc).__name__}: {exc}"
                trace = traceback.format_exc()
            cost = host.used() - start_cpu

            performance_descriptor = _describe(process, process.get_performance_descriptor)
            performance_name = (
                f"{process.name} {performance_descriptor}" if performance_descriptor else process.name
            )
            self._performance.add_program_stats(performance_name, cost)

            if error is not None:
                logger.error(
                    "program error occurred\n"
                    f"process {process.pid}: {label}\n"
                    f"{trace or error}"
                )

        return ProcessOutcome(
            pid=process.pid,
            name=process.name,
            ok=error is None,
            cost=cost,
            descriptor=descriptor,
            performance_name=performance_name,
            error=error,
            traceback=trace,
        )


def _describe(process: Process, describe: Callable[[], str | None]) -> str | None:
    try:
        value = describe()
    except Exception as exc:
        logger.warning(f"Descriptor lookup failed for process {process.pid} ({process.name}): {exc}")
        return None
    if value is None:
        return None
    text = str(value).strip()
    return text or None
