"""
Build configuration for assetpipe.

Run settings, tool commands and the optional assetpipe.yaml overrides.
Manifest locations are fixed (see assetpipe.core.utils) and are not part of
the configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from assetpipe.core.utils import CONFIG_FILENAME, log

# Target browsers for the autoprefixer pass
DEFAULT_BROWSERS = ["last 2 versions"]

DEFAULT_DEBOUNCE_SECONDS = 0.2

# Keys accepted in assetpipe.yaml, mapped to BuildConfig field names
_CONFIG_KEYS = {
    "tsc": "tsc_command",
    "postcss": "postcss_command",
    "browsers": "browsers",
    "debounce": "debounce_seconds",
}


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class BuildConfig:
    """Configuration for a build, rebuild or watch run."""

    project_root: Path = field(default_factory=Path.cwd)
    verbose: bool = False
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    tsc_command: list[str] = field(default_factory=lambda: ["tsc"])
    postcss_command: list[str] = field(default_factory=lambda: ["postcss"])
    browsers: list[str] = field(default_factory=lambda: list(DEFAULT_BROWSERS))


# =============================================================================
# Loading
# =============================================================================


def _as_command(value: Any, key: str) -> list[str]:
    if isinstance(value, str):
        return value.split()
    if isinstance(value, list) and all(isinstance(part, str) for part in value):
        return list(value)
    raise ValueError(f"'{key}' must be a string or a list of strings")


def load_config(
    project_root: Path,
    config_path: Optional[Path] = None,
    verbose: bool = False,
) -> BuildConfig:
    """Build a BuildConfig, applying assetpipe.yaml overrides when present.

    An explicit `config_path` must exist; the implicit project-root file is
    optional.
    """
    config = BuildConfig(project_root=project_root, verbose=verbose)

    if config_path is None:
        candidate = project_root / CONFIG_FILENAME
        if not candidate.exists():
            return config
        config_path = candidate
    elif not config_path.exists():
        raise ValueError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a mapping")

    unknown = sorted(set(data) - set(_CONFIG_KEYS))
    if unknown:
        raise ValueError(f"Unknown keys in {config_path}: {', '.join(unknown)}")

    for key, value in data.items():
        attr = _CONFIG_KEYS[key]
        if attr in ("tsc_command", "postcss_command"):
            value = _as_command(value, key)
        elif attr == "browsers":
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, list) or not value:
                raise ValueError("'browsers' must be a non-empty list")
        elif attr == "debounce_seconds":
            value = float(value)
        setattr(config, attr, value)

    log.dim(f"Loaded config overrides from {config_path}")
    return config
