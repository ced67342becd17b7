"""Sink config loader with YAML parsing and template rendering."""

from pathlib import Path
from typing import Dict

import yaml
from pydantic import ValidationError

from spannerload.core.exceptions import ConfigError
from spannerload.models.sink_config import SinkConfig
from spannerload.models.templates import render_templates


def load_sink_config(path: str, cli_vars: Dict[str, str] | None = None) -> SinkConfig:
    """
    Load a sink config from a YAML file.

    Args:
        path: Path to the YAML config file
        cli_vars: Variables passed via CLI (e.g., --vars key=value)

    Returns:
        Validated SinkConfig instance

    Raises:
        ConfigError: If the file is missing, the YAML is invalid, a template
            cannot be rendered, or validation fails
    """
    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}", context={"path": str(path)})
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in config file: {e}", context={"path": str(path)}
        ) from e

    if not isinstance(config_dict, dict):
        raise ConfigError(
            "Config file must contain a YAML dictionary",
            context={"path": str(path)},
        )

    config_dict = render_templates(config_dict, cli_vars)

    try:
        return SinkConfig.from_dict(config_dict)
    except ValidationError as e:
        raise ConfigError(
            f"Config validation failed: {e}", context={"path": str(path)}
        ) from e
