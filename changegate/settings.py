"""TOML configuration loader.

Loads gate defaults from changegate/config/defaults.toml and merges an
optional project-level changegate.toml on top.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from changegate.schemas.config import GateConfig

# Default config directory relative to the changegate package
_CONFIG_DIR = Path(__file__).parent / "config"

PROJECT_CONFIG_NAME = "changegate.toml"


def _read_gate_section(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Gate config not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    section = raw.get("gate")
    if not isinstance(section, dict):
        raise ValueError(f"No [gate] section found in {path}")
    return section


def _merge(base: dict, override: dict) -> dict:
    """Merge ``override`` into ``base``; tables merge, everything else replaces."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_gate_config(
    config_path: Path | None = None,
    defaults_path: Path | None = None,
) -> GateConfig:
    """Load gate configuration.

    Args:
        config_path: Optional project config whose [gate] section overrides
            the defaults. A [[gate.tools]] list replaces the default tools.
        defaults_path: Path to the defaults file. Defaults to
            changegate/config/defaults.toml.

    Returns:
        Validated GateConfig.

    Raises:
        FileNotFoundError: If either config file does not exist.
        ValueError: If a file has no [gate] section or fails validation.
    """
    section = _read_gate_section(defaults_path or _CONFIG_DIR / "defaults.toml")
    if config_path is not None:
        section = _merge(section, _read_gate_section(config_path))
    return GateConfig.model_validate(section)


def find_project_config(project_root: Path) -> Path | None:
    """Return the project's changegate.toml if it has one."""
    candidate = project_root / PROJECT_CONFIG_NAME
    return candidate if candidate.is_file() else None
