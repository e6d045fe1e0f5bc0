from typing import Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FrameworkSettings(BaseSettings):
    """
    Framework-level settings (the 'jobctl' section in jobctl.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='JOBCTL_', extra='ignore')

    app_name: str = "jobctl"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class SupervisorSettings(BaseModel):
    """
    Lifecycle controller settings (the 'supervisor' section in jobctl.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    # Idle wait per RUNNING tick; bounds crash reaction latency.
    tick_interval: float = Field(default=1.0, gt=0)
    # Upper bound on one wait inside a preemptible drain.
    drain_poll_interval: float = Field(default=0.5, gt=0)
    preempt_restart_drain: bool = False


class WorkerSettings(BaseModel):
    """
    Worker payload settings (the 'worker' section in jobctl.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    heartbeat_interval: float = Field(default=3.0, gt=0)
