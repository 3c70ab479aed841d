"""Kernel orchestration of one tick: start, run, then shutdown.

The host driver builds a fresh :class:`TickContext` for every tick and calls
the three entry points exactly once each, in order. Nothing about the tick is
kept on the kernel itself; cross-tick state lives in the durable store
(deployment marker, scheduler queue, performance stats).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
import logging

from .budget import BudgetController
from .config import KernelSettings, get_settings
from .logging import TRACE
from .models import DeploymentMarker, ProcessOutcome, TickContext, TickSummary
from .performance import PerformanceTracker
from .runner import ProcessRunner
from .scheduler import ProcessScheduler
from .store.base import DurableStore

logger = logging.getLogger(__name__)

DEPLOYMENT_MARKER_KEY = "qos.deployment"
QUEUE_EMPTY = "queue_empty"

MaintenanceHook = Callable[[TickContext], None]
FlushHook = Callable[[], None]


class Kernel:
    """Budget-aware cooperative process kernel."""

    def __init__(
        self,
        scheduler: ProcessScheduler,
        performance: PerformanceTracker,
        store: DurableStore,
        *,
        settings: KernelSettings | None = None,
        budget: BudgetController | None = None,
        runner: ProcessRunner | None = None,
        script_version: str | None = None,
        maintenance_hooks: Sequence[MaintenanceHook] = (),
        flush_hooks: Sequence[FlushHook] = (),
    ) -> None:
        self._settings = settings or get_settings()
        self._scheduler = scheduler
        self._performance = performance
        self._store = store
        self._budget = budget or BudgetController(self._settings)
        self._runner = runner or ProcessRunner(performance)
        self._script_version = script_version or self._settings.script_version
        self._maintenance_hooks = tuple(maintenance_hooks)
        self._flush_hooks = tuple(flush_hooks)

    @property
    def budget(self) -> BudgetController:
        return self._budget

    @property
    def scheduler(self) -> ProcessScheduler:
        return self._scheduler

    @property
    def performance(self) -> PerformanceTracker:
        return self._performance

    # ── start ────────────────────────────────────────────────────────────

    def start(self, tick: TickContext) -> None:
        logger.log(TRACE, f"Initializing Kernel for tick {tick.tick}")
        self.check_deployment(tick)

        if tick.tick % self._settings.maintenance_interval == 0:
            self.clean_memory(tick)

        self._scheduler.advance()

        if self._scheduler.get_process_count() <= 0:
            self._scheduler.launch_process(self._settings.root_process_kind)

    def check_deployment(self, tick: TickContext) -> bool:
        """Record a new script version once; return True when one was detected."""
        marker = self.get_deployment_marker()
        if marker is not None and marker.script_version == self._script_version:
            return False

        logger.warning(f"New script upload detected: {self._script_version}")
        self._store.set(
            DEPLOYMENT_MARKER_KEY,
            {"script_version": self._script_version, "script_upload": tick.tick},
        )
        return True

    def get_deployment_marker(self) -> DeploymentMarker | None:
        raw = self._store.get(DEPLOYMENT_MARKER_KEY)
        if not isinstance(raw, dict) or not raw.get("script_version"):
            return None
        return DeploymentMarker(
            script_version=str(raw["script_version"]),
            script_upload=int(raw.get("script_upload", 0)),
        )

    def clean_memory(self, tick: TickContext) -> int:
        logger.log(TRACE, "Cleaning memory")
        pruned = self._scheduler.clean()
        for hook in self._maintenance_hooks:
            hook(tick)
        return pruned

    # ── run ──────────────────────────────────────────────────────────────

    def run(self, tick: TickContext) -> list[ProcessOutcome]:
        while True:
            decision = self._budget.evaluate(tick, self._scheduler)
            if not decision.proceed:
                tick.stop_reason = decision.reason.value
                break

            process = self._scheduler.get_next_process()
            if process is None:
                tick.stop_reason = QUEUE_EMPTY
                break

            tick.outcomes.append(self._runner.execute(process, tick.host))

        return tick.outcomes

    # ── shutdown ─────────────────────────────────────────────────────────

    def shutdown(self, tick: TickContext) -> TickSummary:
        self._flush()

        host = tick.host
        process_count = self._scheduler.get_process_count()
        completed_count = self._scheduler.get_completed_process_count()
        allowance = self._budget.get_allowance(tick)
        cpu_used = host.used()

        logger.info(f"Processes Run: {completed_count}/{process_count}")
        logger.info(f"Tick Limit: {host.tick_limit}")
        logger.info(f"Kernel Limit: {allowance}")
        logger.info(f"CPU Used: {cpu_used}")
        logger.info(f"Bucket: {host.reserve}")

        report_rendered = False
        stats_reset = False
        if tick.tick % self._settings.report_interval == 0:
            self._performance.report_html()
            report_rendered = True
        if tick.tick % self._settings.reset_interval == 0:
            self._performance.clear(since_tick=tick.tick)
            self._performance.flush()
            self._store.flush()
            stats_reset = True

        return TickSummary(
            tick=tick.tick,
            processes_run=completed_count,
            process_count=process_count,
            tick_limit=host.tick_limit,
            allowance=allowance,
            cpu_used=cpu_used,
            reserve=host.reserve,
            faults=len(tick.faults),
            stop_reason=tick.stop_reason,
            report_rendered=report_rendered,
            stats_reset=stats_reset,
        )

    def _flush(self) -> None:
        self._scheduler.flush()
        self._performance.flush()
        for hook in self._flush_hooks:
            hook()
        self._store.flush()
