"""Store-backed process queue consumed by the kernel run loop."""

from __future__ import annotations

import logging
from typing import Any

from .errors import ProcessRegistryError, SchedulerError
from .logging import TRACE
from .process import Process, ProcessRegistry
from .store.base import DurableStore

logger = logging.getLogger(__name__)

SCHEDULER_STATE_KEY = "qos.scheduler"


def _empty_state() -> dict[str, Any]:
    return {"next_pid": 1, "processes": {}, "queue": [], "completed": []}


class ProcessScheduler:
    """
    Ordered process queue persisted through a durable store.

    Queue entries that are not dispatched during a tick stay queued, unchanged,
    for the next tick. A new round (every live process queued in pid order)
    only starts once the previous queue has drained.
    """

    def __init__(
        self,
        store: DurableStore,
        registry: ProcessRegistry,
        *,
        state_key: str = SCHEDULER_STATE_KEY,
    ):
        self._store = store
        self._registry = registry
        self._state_key = state_key
        self._state = self._load()
        self._dispatched: list[Process] = []

    def advance(self) -> None:
        """Prepare the queue for a new tick."""
        processes = self._state["processes"]
        self._state["completed"] = []
        self._state["queue"] = [pid for pid in self._state["queue"] if str(pid) in processes]
        if not self._state["queue"]:
            self._state["queue"] = sorted(int(pid) for pid in processes)
            logger.log(TRACE, f"Starting new scheduler round with {len(self._state['queue'])} process(es)")

    def get_process_count(self) -> int:
        return len(self._state["processes"])

    def get_completed_process_count(self) -> int:
        return len(self._state["completed"])

    def get_queue_length(self) -> int:
        return len(self._state["queue"])

    def is_alive(self, pid: int) -> bool:
        return str(pid) in self._state["processes"]

    def get_next_process(self) -> Process | None:
        queue = self._state["queue"]
        while queue:
            pid = queue.pop(0)
            record = self._state["processes"].get(str(pid))
            if record is None:
                continue
            try:
                process = self._instantiate(pid, record)
            except ProcessRegistryError as exc:
                logger.error(f"Dropping process {pid}: {exc}")
                del self._state["processes"][str(pid)]
                continue
            self._state["completed"].append(pid)
            self._dispatched.append(process)
            return process
        return None

    def launch_process(
        self,
        kind: str,
        data: dict[str, Any] | None = None,
        parent: int | None = None,
    ) -> Process:
        if kind not in self._registry:
            raise ProcessRegistryError(f"Cannot launch unknown process kind '{kind}'.")
        pid = int(self._state["next_pid"])
        self._state["next_pid"] = pid + 1
        record = {"kind": kind, "data": dict(data or {}), "parent": parent}
        self._state["processes"][str(pid)] = record
        self._state["queue"].append(pid)
        logger.info(f"Launched process {pid} ({kind})")
        return self._instantiate(pid, record)

    def kill(self, pid: int) -> bool:
        removed = self._state["processes"].pop(str(pid), None) is not None
        if removed:
            logger.info(f"Killed process {pid}")
        return removed

    def flush(self) -> None:
        """Reap completed processes and persist data and queue state."""
        processes = self._state["processes"]
        for process in self._dispatched:
            key = str(process.pid)
            if key not in processes:
                continue
            if process.completed:
                del processes[key]
                logger.log(TRACE, f"Reaped completed process {process.pid} ({process.name})")
            else:
                processes[key]["data"] = process.data
        self._dispatched = []
        self._store.set(self._state_key, self._state)

    def clean(self) -> int:
        """Prune queue entries and child records that point at missing processes."""
        processes = self._state["processes"]
        pruned = 0

        orphaned = True
        while orphaned:
            orphaned = [
                pid
                for pid, record in processes.items()
                if record.get("parent") is not None and str(record["parent"]) not in processes
            ]
            for pid in orphaned:
                del processes[pid]
                pruned += 1

        for field in ("queue", "completed"):
            kept = [pid for pid in self._state[field] if str(pid) in processes]
            pruned += len(self._state[field]) - len(kept)
            self._state[field] = kept

        if pruned:
            logger.log(TRACE, f"Scheduler clean pruned {pruned} stale entries")
        return pruned

    def _instantiate(self, pid: int, record: dict[str, Any]) -> Process:
        return self._registry.create(
            record["kind"],
            pid,
            record.get("data") or {},
            parent=record.get("parent"),
            launcher=self.launch_process,
        )

    def _load(self) -> dict[str, Any]:
        raw = self._store.get(self._state_key)
        if raw is None:
            return _empty_state()
        if not isinstance(raw, dict):
            raise SchedulerError(f"Scheduler state under '{self._state_key}' must be an object.")
        state = _empty_state()
        state.update(raw)
        if not isinstance(state["processes"], dict):
            raise SchedulerError("Scheduler state 'processes' must be an object keyed by pid.")
        for field in ("queue", "completed"):
            if not isinstance(state[field], list):
                raise SchedulerError(f"Scheduler state '{field}' must be a list of pids.")
        return state
