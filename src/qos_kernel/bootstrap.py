"""Wiring: the single place that binds collaborators to the kernel.

Tests and the CLI build kernels through :func:`build_kernel`; nothing else
constructs the scheduler, tracker and store by hand.
"""

from __future__ import annotations

from collections.abc import Sequence

from .config import KernelSettings, get_settings
from .kernel import FlushHook, Kernel, MaintenanceHook
from .performance import PerformanceTracker
from .process import ProcessRegistry, RootProcess, default_registry
from .scheduler import ProcessScheduler
from .store import DurableStore, open_store


def build_kernel(
    settings: KernelSettings | None = None,
    *,
    store: DurableStore | None = None,
    registry: ProcessRegistry | None = None,
    script_version: str | None = None,
    maintenance_hooks: Sequence[MaintenanceHook] = (),
    flush_hooks: Sequence[FlushHook] = (),
) -> Kernel:
    resolved = settings or get_settings()
    resolved_store = store if store is not None else open_store(resolved)
    resolved_registry = registry or default_registry(resolved.root_process_kind)
    if resolved.root_process_kind not in resolved_registry:
        resolved_registry.register(resolved.root_process_kind, RootProcess)

    scheduler = ProcessScheduler(resolved_store, resolved_registry)
    performance = PerformanceTracker(resolved_store)
    return Kernel(
        scheduler,
        performance,
        resolved_store,
        settings=resolved,
        script_version=script_version,
        maintenance_hooks=maintenance_hooks,
        flush_hooks=flush_hooks,
    )

