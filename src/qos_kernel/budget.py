"""Per-tick compute allowance and the continuation predicate.

The allowance is derived from the host reserve ("bucket") only:

* above the ceiling the kernel may spend up to the hard tick limit minus a
  safety buffer;
* below the emergency threshold nothing discretionary runs;
* below the floor a fixed trickle of the baseline rate is allowed;
* in between, a skewed logistic curve interpolates between the trickle and
  the full baseline rate, shrunk by a conservative adjustment.

The allowance is memoized on the :class:`TickContext`, so it is computed at
most once per tick and never outlives it.
"""

from __future__ import annotations

import logging
import math
from typing import Protocol

from .config import KernelSettings, get_settings
from .models import BudgetDecision, ContinueReason, HostContext, TickContext

logger = logging.getLogger(__name__)


class ProgressSource(Protocol):
    def get_process_count(self) -> int:
        """Return the number of live processes."""

    def get_completed_process_count(self) -> int:
        """Return the number of processes dispatched so far this tick."""


def sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def sigmoid_skewed(x: float) -> float:
    """Map a [0, 1] position onto the steep middle of the logistic curve."""
    return sigmoid((x * 12.0) - 6.0)


def hard_ceiling(host: HostContext, settings: KernelSettings) -> float:
    return max(0.0, host.tick_limit - settings.cpu_buffer)


def compute_allowance(host: HostContext, settings: KernelSettings) -> float:
    """Return the spendable compute for this tick without touching any cache."""
    reserve = host.reserve
    if reserve >= settings.bucket_ceiling:
        return hard_ceiling(host, settings)

    if reserve < settings.bucket_emergency:
        return 0.0

    min_to_allocate = host.baseline_rate * settings.cpu_minimum
    if reserve < settings.bucket_floor:
        return min(min_to_allocate, hard_ceiling(host, settings))

    depth_in_range = (reserve - settings.bucket_floor) / settings.bucket_range
    max_to_allocate = host.baseline_rate
    allowance = (
        min_to_allocate + sigmoid_skewed(depth_in_range) * (max_to_allocate - min_to_allocate)
    ) * (1 - settings.cpu_adjust)
    if host.cold_start:
        allowance += settings.cpu_global_boost
    return min(allowance, hard_ceiling(host, settings))


class BudgetController:
    """Decide how much compute a tick may spend and whether to keep scheduling."""

    def __init__(self, settings: KernelSettings | None = None) -> None:
        self._settings = settings or get_settings()

    def get_allowance(self, tick: TickContext) -> float:
        if tick.allowance is None:
            tick.allowance = compute_allowance(tick.host, self._settings)
            logger.debug(
                "Tick %s allowance %.2f (reserve %.0f, cold_start=%s)",
                tick.tick,
                tick.allowance,
                tick.host.reserve,
                tick.host.cold_start,
            )
        return tick.allowance

    def evaluate(self, tick: TickContext, progress: ProgressSource) -> BudgetDecision:
        """Return the continuation decision along with the rule that produced it."""
        host = tick.host
        used = host.used()
        if host.detached:
            return BudgetDecision(True, ContinueReason.DETACHED, used)

        # Never run into the host's own overrun penalty, whatever the allowance says.
        if used >= hard_ceiling(host, self._settings):
            return BudgetDecision(False, ContinueReason.HARD_LIMIT, used)

        allowance = self.get_allowance(tick)
        if used < allowance:
            return BudgetDecision(True, ContinueReason.WITHIN_ALLOWANCE, used, allowance)

        # Guarantee a minimum share of processes per tick while the reserve is healthy.
        if host.reserve > self._settings.bucket_floor:
            total = progress.get_process_count()
            if total > 0:
                completed = progress.get_completed_process_count()
                if completed / total < self._settings.minimum_programs:
                    if used < allowance * self._settings.program_normalizing_burst:
                        return BudgetDecision(True, ContinueReason.FAIRNESS_BURST, used, allowance)

        return BudgetDecision(False, ContinueReason.EXHAUSTED, used, allowance)

    def should_continue(self, tick: TickContext, progress: ProgressSource) -> bool:
        return self.evaluate(tick, progress).proceed
