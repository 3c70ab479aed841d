"""Error taxonomy for stable module boundaries."""


class QosKernelError(Exception):
    """Base exception for qos-kernel."""


class ConfigError(QosKernelError):
    """Raised when kernel settings are invalid or inconsistent."""


class StoreError(QosKernelError):
    """Raised for durable store read/write/flush failures."""


class SchedulerError(QosKernelError):
    """Raised when scheduler state is corrupt or an operation is unsafe."""


class ProcessRegistryError(QosKernelError):
    """Raised when a process kind cannot be resolved or instantiated."""
