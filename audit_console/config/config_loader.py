"""Load runtime configuration for the audit console."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..clients.logging import log_config_load
from .settings import ConsoleSettings

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).with_name("console.yaml")

# Matches env("VAR_NAME") and env("VAR_NAME", "default")
ENV_PATTERN = re.compile(r'env\("([^"]+)"(?:\s*,\s*"([^"]*)")?\)')


def _resolve_env_placeholders(value: Any) -> Any:
    """Recursively resolve env("VAR") placeholders in YAML values."""
    if isinstance(value, str):
        match = ENV_PATTERN.search(value)
        if match:
            var_name, default = match.group(1), match.group(2)
            env_value = os.getenv(var_name)
            if env_value is None:
                if default is None:
                    raise ValueError(f"Environment variable {var_name} not set (required by config)")
                env_value = default
            return value[: match.start()] + env_value + value[match.end():]
        return value
    elif isinstance(value, dict):
        return {k: _resolve_env_placeholders(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_placeholders(item) for item in value]
    else:
        return value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge override dict into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _compute_config_version(yaml_content: str, override_content: Dict[str, Any]) -> str:
    """Compute SHA256 hash of YAML content + override content for version tracking."""
    combined = {
        "yaml": yaml_content,
        "override": json.dumps(override_content, sort_keys=True),
    }
    combined_str = json.dumps(combined, sort_keys=True)
    return hashlib.sha256(combined_str.encode("utf-8")).hexdigest()[:16]


def load_console_settings(
    path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ConsoleSettings:
    """Load console settings from YAML with optional overrides.

    Args:
        path: Optional path to a settings file. Defaults to CONFIG_PATH.
        overrides: Optional mapping deep-merged over the file contents.

    Returns:
        ConsoleSettings instance with resolved env placeholders and merged overrides.
    """
    start = time.time()
    target = path or CONFIG_PATH

    with target.open("r", encoding="utf-8") as handle:
        yaml_content = handle.read()
        data = yaml.safe_load(yaml_content) or {}

    data = _resolve_env_placeholders(data)

    overrides = overrides or {}
    if overrides:
        data = _deep_merge(data, overrides)

    config_version = _compute_config_version(yaml_content, overrides)
    data.setdefault("metadata", {})
    data["metadata"]["config_version"] = config_version

    settings = ConsoleSettings.model_validate(data)
    log_config_load(logger, int((time.time() - start) * 1000), config_version)
    return settings
