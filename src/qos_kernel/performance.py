"""Per-program compute cost accounting and periodic HTML reports."""

from __future__ import annotations

from dataclasses import dataclass
import html
import logging
from typing import Any

from .store.base import DurableStore

logger = logging.getLogger(__name__)

PERFORMANCE_STATE_KEY = "qos.performance"


@dataclass(frozen=True)
class ProgramStats:
    name: str
    count: int
    total: float
    max: float
    last: float

    @property
    def average(self) -> float:
        if self.count <= 0:
            return 0.0
        return self.total / self.count


class PerformanceTracker:
    """Accumulate compute cost per program name across ticks."""

    def __init__(self, store: DurableStore, *, state_key: str = PERFORMANCE_STATE_KEY):
        self._store = store
        self._state_key = state_key
        raw = store.get(state_key)
        self._programs: dict[str, dict[str, Any]] = dict(raw.get("programs", {})) if isinstance(raw, dict) else {}
        self._since_tick: int | None = raw.get("since_tick") if isinstance(raw, dict) else None

    def add_program_stats(self, name: str, cost: float) -> None:
        cost = max(0.0, float(cost))
        entry = self._programs.get(name)
        if entry is None:
            self._programs[name] = {"count": 1, "total": cost, "max": cost, "last": cost}
            return
        entry["count"] += 1
        entry["total"] += cost
        entry["max"] = max(entry["max"], cost)
        entry["last"] = cost

    def get(self, name: str) -> ProgramStats | None:
        entry = self._programs.get(name)
        if entry is None:
            return None
        return ProgramStats(name=name, **entry)

    def report_rows(self) -> tuple[ProgramStats, ...]:
        """Return all program stats, most expensive overall first."""
        rows = [ProgramStats(name=name, **entry) for name, entry in self._programs.items()]
        rows.sort(key=lambda row: (-row.total, row.name))
        return tuple(rows)

    def report_html(self) -> str:
        rows = self.report_rows()
        lines = [
            "<table>",
            "<tr><th>Program</th><th>Runs</th><th>Average</th><th>Max</th><th>Total</th></tr>",
        ]
        for row in rows:
            lines.append(
                "<tr>"
                f"<td>{html.escape(row.name)}</td>"
                f"<td>{row.count}</td>"
                f"<td>{row.average:.2f}</td>"
                f"<td>{row.max:.2f}</td>"
                f"<td>{row.total:.2f}</td>"
                "</tr>"
            )
        lines.append("</table>")
        report = "\n".join(lines)
        logger.info(f"Performance report ({len(rows)} programs)\n{report}")
        return report

    def clear(self, since_tick: int | None = None) -> None:
        self._programs = {}
        self._since_tick = since_tick
        logger.info("Performance statistics cleared")

    @property
    def since_tick(self) -> int | None:
        return self._since_tick

    def flush(self) -> None:
        self._store.set(
            self._state_key,
            {"since_tick": self._since_tick, "programs": self._programs},
        )
