"""Schedulable processes and the kind registry used to instantiate them."""

from __future__ import annotations

import abc
from collections.abc import Callable
from typing import Any

from .errors import ProcessRegistryError

LaunchFn = Callable[..., "Process"]


class Process(abc.ABC):
    """A unit of work with identity, executed at most once per tick.

    Subclasses implement :meth:`main`. ``data`` is persisted by the scheduler
    between ticks; call :meth:`complete` to have the process reaped when the
    tick is flushed.
    """

    def __init__(
        self,
        pid: int,
        name: str,
        data: dict[str, Any] | None = None,
        *,
        parent: int | None = None,
        launcher: LaunchFn | None = None,
    ) -> None:
        self.pid = pid
        self.name = name
        self.data: dict[str, Any] = data if data is not None else {}
        self.parent = parent
        self.completed = False
        self._launcher = launcher

    def run(self) -> None:
        self.main()

    @abc.abstractmethod
    def main(self) -> None:
        ...

    def get_descriptor(self) -> str | None:
        """Human readable detail appended to the process name in logs."""
        return None

    def get_performance_descriptor(self) -> str | None:
        """Detail appended to the name when attributing compute cost."""
        return None

    def complete(self) -> None:
        self.completed = True

    def launch_child(self, kind: str, data: dict[str, Any] | None = None) -> "Process":
        if self._launcher is None:
            raise ProcessRegistryError(f"Process {self.pid} ({self.name}) cannot launch children.")
        return self._launcher(kind, data, parent=self.pid)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} pid={self.pid} name={self.name!r}>"


class RootProcess(Process):
    """Resident root process seeded when the queue is empty."""

    def main(self) -> None:
        self.data["runs"] = int(self.data.get("runs", 0)) + 1


class ProcessRegistry:
    """Map process kind names to Process subclasses."""

    def __init__(self) -> None:
        self._kinds: dict[str, type[Process]] = {}

    def register(self, kind: str, process_cls: type[Process]) -> None:
        if not kind or not kind.strip():
            raise ProcessRegistryError("Process kind must be a non-empty string.")
        if not (isinstance(process_cls, type) and issubclass(process_cls, Process)):
            raise ProcessRegistryError(f"Process kind '{kind}' must map to a Process subclass.")
        self._kinds[kind] = process_cls

    def kinds(self) -> tuple[str, ...]:
        return tuple(sorted(self._kinds))

    def __contains__(self, kind: object) -> bool:
        return kind in self._kinds

    def create(
        self,
        kind: str,
        pid: int,
        data: dict[str, Any] | None = None,
        *,
        parent: int | None = None,
        launcher: LaunchFn | None = None,
    ) -> Process:
        process_cls = self._kinds.get(kind)
        if process_cls is None:
            known = ", ".join(self.kinds()) or "none"
            raise ProcessRegistryError(f"Unknown process kind '{kind}' (registered: {known}).")
        return process_cls(pid, kind, data, parent=parent, launcher=launcher)


def default_registry(root_kind: str = "player") -> ProcessRegistry:
    registry = ProcessRegistry()
    registry.register(root_kind, RootProcess)
    return registry
