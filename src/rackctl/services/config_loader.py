"""Configuration loader for rackctl."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rackctl.errors import ConfigError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    DEFAULT_FILENAME = ".rackctl.yml"

    SUPPORTED_KEYS = {
        "host",
        "password",
        "rack",
        "registry_url",
        "request_timeout",
        "poll_interval_seconds",
        "wait_timeout_minutes",
        "grace_seconds",
        "settle_polls",
        "noop_is_error",
        "verbose",
        "log_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigError(f"Unknown configuration keys: {unknown_list}")

        return parsed
