"""Template rendering for config values with Jinja2-style syntax."""

import os
import re
from typing import Any, Dict

from spannerload.core.exceptions import ConfigError

_TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^}]+)\s*\}\}")
_FUNC_PATTERN = re.compile(r"(\w+)\(['\"]([^'\"]+)['\"]\)")


def render_templates(
    config_dict: Dict[str, Any], cli_vars: Dict[str, str] | None = None
) -> Dict[str, Any]:
    """
    Render Jinja2-style templates in a config dictionary.

    Supports:
    - {{ env_var('VAR_NAME') }} - environment variable lookup
    - {{ var('VAR_NAME') }} - CLI variable lookup
    - {{ sink.name }} - sink metadata

    Args:
        config_dict: Config dictionary (may contain template expressions)
        cli_vars: Variables passed via CLI (e.g., --vars key=value)

    Returns:
        Config dictionary with templates rendered
    """
    context = {
        "sink": {"name": config_dict.get("name", "")},
        "env_var": _get_env_var,
        "var": lambda key: _get_cli_var(key, cli_vars or {}),
    }
    return _render_value(config_dict, context)


def _get_env_var(key: str) -> str:
    value = os.environ.get(key)
    if value is None:
        raise ConfigError(
            f"Environment variable '{key}' not found",
            context={"key": key},
        )
    return value


def _get_cli_var(key: str, cli_vars: Dict[str, str]) -> str:
    if key not in cli_vars:
        raise ConfigError(
            f"CLI variable '{key}' not provided",
            context={"key": key, "available": list(cli_vars.keys())},
        )
    return cli_vars[key]


def _render_value(value: Any, context: Dict[str, Any]) -> Any:
    if isinstance(value, dict):
        return {key: _render_value(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [_render_value(item, context) for item in value]
    if isinstance(value, str):
        return _render_string(value, context)
    return value


def _render_string(text: str, context: Dict[str, Any]) -> str:
    def replace(match):
        expr = match.group(1).strip()
        try:
            func_match = _FUNC_PATTERN.match(expr)
            if func_match:
                func_name, arg = func_match.group(1), func_match.group(2)
                if func_name in context and callable(context[func_name]):
                    return str(context[func_name](arg))
                raise ConfigError(
                    f"Unknown function: {func_name}",
                    context={"expression": expr, "available": list(context.keys())},
                )

            result = context
            for part in expr.split("."):
                result = result[part]
            return str(result)
        except (KeyError, TypeError) as e:
            raise ConfigError(
                f"Template rendering failed: {expr}",
                context={"expression": expr, "error": str(e)},
            ) from e

    return _TEMPLATE_PATTERN.sub(replace, text)
