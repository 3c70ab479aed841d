"""qos_kernel: budget-aware cooperative process scheduling for bounded ticks."""

from .budget import BudgetController, compute_allowance, sigmoid, sigmoid_skewed
from .config import KernelSettings, get_settings, load_settings, settings_to_dict
from .kernel import DEPLOYMENT_MARKER_KEY, Kernel
from .models import (
    BudgetDecision,
    ContinueReason,
    DeploymentMarker,
    HostContext,
    ProcessOutcome,
    TickContext,
    TickSummary,
)
from .performance import PerformanceTracker, ProgramStats
from .process import Process, ProcessRegistry, RootProcess, default_registry
from .runner import ProcessRunner
from .scheduler import ProcessScheduler

__all__ = [
    "BudgetController",
    "BudgetDecision",
    "ContinueReason",
    "DEPLOYMENT_MARKER_KEY",
    "DeploymentMarker",
    "HostContext",
    "Kernel",
    "KernelSettings",
    "PerformanceTracker",
    "Process",
    "ProcessOutcome",
    "ProcessRegistry",
    "ProcessRunner",
    "ProcessScheduler",
    "ProgramStats",
    "RootProcess",
    "TickContext",
    "TickSummary",
    "compute_allowance",
    "default_registry",
    "get_settings",
    "load_settings",
    "settings_to_dict",
    "sigmoid",
    "sigmoid_skewed",
]

__version__ = "0.1.0"
