"""Allowance curve and continuation predicate behavior."""

from __future__ import annotations

import math

import pytest

from conftest import FakeProgress, make_tick
from qos_kernel import budget as budget_module
from qos_kernel.budget import BudgetController, compute_allowance, sigmoid, sigmoid_skewed
from qos_kernel.models import ContinueReason


def test_sigmoid_skewed_is_centered_on_the_unit_interval() -> None:
    assert sigmoid(0.0) == pytest.approx(0.5)
    assert sigmoid_skewed(0.5) == pytest.approx(0.5)
    assert sigmoid_skewed(0.0) == pytest.approx(1 / (1 + math.exp(6)))
    assert sigmoid_skewed(1.0) == pytest.approx(1 / (1 + math.exp(-6)))


class TestAllowanceBands:
    @pytest.mark.parametrize("reserve", [9500, 9500.5, 10000])
    def test_abundant_reserve_spends_up_to_the_safety_margin(self, settings, reserve) -> None:
        tick = make_tick(reserve, tick_limit=500)
        assert compute_allowance(tick.host, settings) == 370

    @pytest.mark.parametrize("reserve", [0, 500, 999.9])
    def test_emergency_reserve_allows_nothing(self, settings, reserve) -> None:
        assert compute_allowance(make_tick(reserve).host, settings) == 0

    @pytest.mark.parametrize("reserve", [1000, 1500, 1999.9])
    def test_floor_band_trickles_minimum_fraction(self, settings, reserve) -> None:
        tick = make_tick(reserve, baseline_rate=100)
        assert compute_allowance(tick.host, settings) == pytest.approx(50)

    def test_midpoint_of_band_lands_halfway_then_shrinks(self, settings) -> None:
        tick = make_tick(5750, baseline_rate=100)
        assert compute_allowance(tick.host, settings) == pytest.approx((50 + 0.5 * 50) * 0.95)

    def test_interpolated_band_is_monotonic_and_bounded(self, settings) -> None:
        lower = 100 * settings.cpu_minimum * (1 - settings.cpu_adjust)
        upper = 100 * (1 - settings.cpu_adjust)
        previous = -1.0
        for reserve in range(2000, 9500, 125):
            value = compute_allowance(make_tick(reserve, baseline_rate=100).host, settings)
            assert lower < value < upper
            assert value >= previous
            previous = value

    def test_cold_start_adds_one_time_boost_inside_the_band(self, settings) -> None:
        warm = compute_allowance(make_tick(5750).host, settings)
        cold = compute_allowance(make_tick(5750, cold_start=True).host, settings)
        assert cold == pytest.approx(warm + settings.cpu_global_boost)
        assert cold < 100 * (1 - settings.cpu_adjust) + settings.cpu_global_boost

    def test_cold_start_does_not_change_other_bands(self, settings) -> None:
        assert compute_allowance(make_tick(10000, cold_start=True).host, settings) == 370
        assert compute_allowance(make_tick(1500, cold_start=True).host, settings) == pytest.approx(50)

    def test_allowance_never_exceeds_hard_ceiling(self, settings) -> None:
        tick = make_tick(5750, tick_limit=150, baseline_rate=100, cold_start=True)
        assert compute_allowance(tick.host, settings) == 20

    def test_tick_limit_below_buffer_yields_zero_not_negative(self, settings) -> None:
        assert compute_allowance(make_tick(10000, tick_limit=100).host, settings) == 0


class TestMemoization:
    def test_allowance_is_computed_once_per_tick(self, settings, monkeypatch) -> None:
        calls = []
        real = budget_module.compute_allowance

        def counting(host, resolved_settings):
            calls.append(host.tick)
            return real(host, resolved_settings)

        monkeypatch.setattr(budget_module, "compute_allowance", counting)
        controller = BudgetController(settings)
        tick = make_tick(5000)

        first = controller.get_allowance(tick)
        second = controller.get_allowance(tick)

        assert first == second
        assert calls == [1]
        assert tick.allowance == first

    def test_fresh_tick_context_starts_without_memo(self, settings) -> None:
        controller = BudgetController(settings)
        first = make_tick(5000, tick=1)
        controller.get_allowance(first)

        second = make_tick(9000, tick=2)
        assert second.allowance is None
        assert controller.get_allowance(second) > first.allowance


class TestShouldContinue:
    def test_detached_mode_always_continues(self, settings) -> None:
        controller = BudgetController(settings)
        tick = make_tick(0, used=10_000, detached=True)

        decision = controller.evaluate(tick, FakeProgress(total=5, completed=5))

        assert decision.proceed is True
        assert decision.reason is ContinueReason.DETACHED
        assert tick.allowance is None

    def test_hard_limit_stops_even_when_allowance_not_reached(self, settings) -> None:
        controller = BudgetController(settings)
        tick = make_tick(10000, used=370, tick_limit=500)
        tick.allowance = 1000.0

        decision = controller.evaluate(tick, FakeProgress(total=10, completed=0))

        assert decision.proceed is False
        assert decision.reason is ContinueReason.HARD_LIMIT

    def test_continues_while_under_allowance(self, settings) -> None:
        controller = BudgetController(settings)
        tick = make_tick(10000, used=100)

        assert controller.should_continue(tick, FakeProgress(total=1)) is True
        assert controller.evaluate(tick, FakeProgress(total=1)).reason is ContinueReason.WITHIN_ALLOWANCE

    def test_fairness_override_allows_burst_for_lagging_progress(self, settings) -> None:
        controller = BudgetController(settings)
        tick = make_tick(settings.bucket_floor + 1, baseline_rate=100)
        allowance = controller.get_allowance(tick)
        tick = make_tick(settings.bucket_floor + 1, baseline_rate=100, used=allowance * 1.5)

        decision = controller.evaluate(tick, FakeProgress(total=10, completed=2))

        assert decision.proceed is True
        assert decision.reason is ContinueReason.FAIRNESS_BURST

    def test_fairness_override_is_capped_by_burst_multiplier(self, settings) -> None:
        controller = BudgetController(settings)
        probe = make_tick(settings.bucket_floor + 1, baseline_rate=100)
        allowance = controller.get_allowance(probe)
        tick = make_tick(settings.bucket_floor + 1, baseline_rate=100, used=allowance * 2)

        decision = controller.evaluate(tick, FakeProgress(total=10, completed=2))

        assert decision.proceed is False
        assert decision.reason is ContinueReason.EXHAUSTED

    def test_fairness_override_requires_lagging_progress(self, settings) -> None:
        controller = BudgetController(settings)
        probe = make_tick(5000, baseline_rate=100)
        allowance = controller.get_allowance(probe)
        tick = make_tick(5000, baseline_rate=100, used=allowance + 1)

        assert controller.should_continue(tick, FakeProgress(total=10, completed=3)) is False

    def test_emergency_reserve_stops_immediately(self, settings) -> None:
        controller = BudgetController(settings)
        tick = make_tick(settings.bucket_emergency - 1, used=0)

        decision = controller.evaluate(tick, FakeProgress(total=10, completed=0))

        assert controller.get_allowance(tick) == 0
        assert decision.proceed is False
        assert decision.reason is ContinueReason.EXHAUSTED

    def test_floor_band_gets_no_fairness_burst(self, settings) -> None:
        controller = BudgetController(settings)
        tick = make_tick(1500, baseline_rate=100, used=60)

        assert controller.should_continue(tick, FakeProgress(total=10, completed=0)) is False

    def test_empty_scheduler_skips_fairness_check(self, settings) -> None:
        controller = BudgetController(settings)
        tick = make_tick(5000, baseline_rate=100, used=99)

        decision = controller.evaluate(tick, FakeProgress(total=0, completed=0))

        assert decision.proceed is False
        assert decision.reason is ContinueReason.EXHAUSTED
