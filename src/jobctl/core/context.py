from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict
from jobctl.core.models import FrameworkSettings, SupervisorSettings, WorkerSettings


class JobctlContext(BaseModel):
    """
    Resolved configuration handed to the supervisor at startup.
    """
    model_config = ConfigDict(extra="forbid")

    # Framework Settings (Maps to 'jobctl' section)
    settings: FrameworkSettings = Field(default_factory=FrameworkSettings)

    # Controller Settings (Maps to 'supervisor' section)
    supervisor: SupervisorSettings = Field(default_factory=SupervisorSettings)

    # Worker Payload Settings (Maps to 'worker' section)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, **data: Any):
        """
        Initialize the context, optionally with a configuration dictionary.
        """
        if config_dict:
            # Seed fields from config_dict if not explicitly provided in data
            if 'settings' not in data:
                data['settings'] = FrameworkSettings(**(config_dict.get('jobctl') or {}))
            if 'supervisor' not in data:
                data['supervisor'] = SupervisorSettings(**(config_dict.get('supervisor') or {}))
            if 'worker' not in data:
                data['worker'] = WorkerSettings(**(config_dict.get('worker') or {}))

        super().__init__(**data)

    def with_overrides(
        self,
        tick_interval: Optional[float] = None,
        heartbeat_interval: Optional[float] = None,
        preempt_restart_drain: Optional[bool] = None,
        log_level: Optional[str] = None,
    ) -> "JobctlContext":
        """Return a copy with command-line overrides applied and re-validated."""
        supervisor = self.supervisor.model_dump()
        worker = self.worker.model_dump()
        settings = self.settings.model_dump()

        if tick_interval is not None:
            supervisor["tick_interval"] = tick_interval
        if preempt_restart_drain is not None:
            supervisor["preempt_restart_drain"] = preempt_restart_drain
        if heartbeat_interval is not None:
            worker["heartbeat_interval"] = heartbeat_interval
        if log_level is not None:
            settings["log_level"] = log_level

        return JobctlContext(
            settings=FrameworkSettings(**settings),
            supervisor=SupervisorSettings(**supervisor),
            worker=WorkerSettings(**worker),
        )
