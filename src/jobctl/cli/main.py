import typer
from pathlib import Path
from typing import Optional
from pydantic import ValidationError

from jobctl.cli.formatter import OutputFormatter
from jobctl.config.loader import load_config
from jobctl.core.context import JobctlContext
from jobctl.runtime import ForkLauncher, LifecycleController, NotificationBridge
from jobctl.runtime.worker import make_heartbeat_payload
from jobctl.utils.diagnostics import ConfigError, SetupError

app = typer.Typer(
    name="jobctl",
    help="Keep a fixed pool of worker processes alive. SIGHUP restarts the pool; SIGINT/SIGTERM stop it.",
    rich_markup_mode=None,
    add_completion=False,
)

DEFAULT_CONFIG_PATH = Path("jobctl.yaml")


def _coerce_bool_like(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off", ""}:
            return False
    return bool(value)


def _resolve_optional_bool_flag(enabled: object, disabled: object, flag_name: str) -> Optional[bool]:
    enabled_bool = _coerce_bool_like(enabled)
    disabled_bool = _coerce_bool_like(disabled)
    if enabled_bool and disabled_bool:
        raise typer.BadParameter(f"Cannot use --{flag_name} and --no-{flag_name} together.")
    if enabled_bool:
        return True
    if disabled_bool:
        return False
    return None


def _build_context(
    config_path: Path,
    tick: Optional[float],
    heartbeat_interval: Optional[float],
    preempt_drain: Optional[bool],
    verbose: bool,
) -> JobctlContext:
    config_data = load_config(config_path)
    try:
        context = JobctlContext(config_dict=config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in '{config_path}': {e}") from e

    try:
        return context.with_overrides(
            tick_interval=tick,
            heartbeat_interval=heartbeat_interval,
            preempt_restart_drain=preempt_drain,
            log_level="DEBUG" if verbose else None,
        )
    except ValidationError as e:
        raise typer.BadParameter(str(e)) from e


@app.command()
def run(
    workers: int = typer.Argument(..., min=1, help="Number of worker processes to keep alive (N > 0)."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to jobctl.yaml."),
    tick: Optional[float] = typer.Option(None, "--tick", help="Idle wait per control-loop tick, in seconds."),
    heartbeat_interval: Optional[float] = typer.Option(
        None, "--heartbeat-interval", help="Seconds between worker heartbeats."
    ),
    preempt_drain: bool = typer.Option(
        False, "--preempt-drain", help="Let a terminate request abandon an in-progress restart drain."
    ),
    no_preempt_drain: bool = typer.Option(
        False, "--no-preempt-drain", help="Finish restart drains before handling terminate requests."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print debug-level system logs."),
):
    """
    Start the supervisor with a pool of WORKERS processes.
    """
    preempt_override = _resolve_optional_bool_flag(preempt_drain, no_preempt_drain, "preempt-drain")

    try:
        context = _build_context(config, tick, heartbeat_interval, preempt_override, verbose)
    except ConfigError as e:
        OutputFormatter.print_diagnostic(e.to_diagnostic())
        raise typer.Exit(code=1)

    OutputFormatter.set_level(context.settings.log_level)
    OutputFormatter.log(
        f"{context.settings.app_name}: tick={context.supervisor.tick_interval}s, "
        f"heartbeat={context.worker.heartbeat_interval}s, "
        f"preempt_restart_drain={context.supervisor.preempt_restart_drain}",
        severity="debug",
    )

    launcher = ForkLauncher(payload=make_heartbeat_payload(context.worker.heartbeat_interval))
    try:
        with NotificationBridge() as bridge:
            controller = LifecycleController(
                workers,
                bridge,
                launcher,
                settings=context.supervisor,
            )
            exit_code = controller.run()
    except SetupError as e:
        OutputFormatter.print_diagnostic(e.to_diagnostic())
        raise typer.Exit(code=1)

    raise typer.Exit(code=exit_code)

if __name__ == "__main__":
    app()
