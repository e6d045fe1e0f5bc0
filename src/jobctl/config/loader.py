import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict

from jobctl.utils.diagnostics import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]+))?\}")

ALLOWED_SECTIONS = {"jobctl", "supervisor", "worker"}

def interpolate_env_vars(content: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variables."""
    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, content)

def load_config(path: Path) -> Dict[str, Any]:
    """
    Load jobctl.yaml with environment variable interpolation.

    Keeps only the sections: jobctl, supervisor, worker.
    A missing file is not an error; an unreadable or malformed one is.
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text()
        interpolated_content = interpolate_env_vars(content)
        full_config = yaml.safe_load(interpolated_content) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not load config file '{path}': {e}") from e

    if not isinstance(full_config, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")

    filtered_config = {k: v for k, v in full_config.items() if k in ALLOWED_SECTIONS}

    return filtered_config
