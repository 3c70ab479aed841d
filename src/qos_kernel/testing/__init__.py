"""Test-only utilities for deterministic kernel assertions."""

from .cpu_control import ManualCpuClock, scripted_process_class

__all__ = [
    "ManualCpuClock",
    "scripted_process_class",
]
