from typing import Optional
from pydantic import BaseModel

class SupervisorDiagnostic(BaseModel):
    """
    Standardized record for recoverable supervisor failures (spawn, collect, signal).
    """
    error_code: str
    message: str
    severity: str = "error" # 'error', 'warning', 'critical'
    pid: Optional[int] = None
    slot: Optional[int] = None

    def __str__(self) -> str:
        loc = []
        if self.slot is not None:
            loc.append(f"slot {self.slot}")
        if self.pid is not None:
            loc.append(f"pid {self.pid}")
        suffix = f" ({', '.join(loc)})" if loc else ""
        return f"[{self.error_code}] {self.message}{suffix}"

class JobctlError(Exception):
    """
    Base class for supervisor errors. Each subclass carries a stable error code.
    """
    error_code = "ERR_JOBCTL"
    severity = "error"

    def __init__(self, message: str, pid: int = None, slot: int = None):
        self.message = message
        self.pid = pid
        self.slot = slot
        super().__init__(message)

    def to_diagnostic(self) -> SupervisorDiagnostic:
        return SupervisorDiagnostic(
            error_code=self.error_code,
            message=self.message,
            severity=self.severity,
            pid=self.pid,
            slot=self.slot,
        )

class SetupError(JobctlError):
    """Fatal startup failure: signal bridge or slot table could not be set up."""
    error_code = "ERR_SETUP"
    severity = "critical"

class ConfigError(JobctlError):
    """Configuration file could not be read or validated."""
    error_code = "ERR_CONFIG"
    severity = "critical"

class SpawnError(JobctlError):
    """A worker process could not be created."""
    error_code = "ERR_SPAWN"

class CollectionError(JobctlError):
    """Waiting on child processes failed for a reason other than no children."""
    error_code = "ERR_COLLECT"

class SignalDeliveryError(JobctlError):
    """A termination request could not be delivered to a worker."""
    error_code = "ERR_SIGNAL"
    severity = "warning"
