"""
Configuration Manager for goalboard.

All tunable engine constants live here and can be overridden from
config/runtime.yaml (or the file named by GOALBOARD_CONFIG).

Usage:
    from goalboard.config_manager import config
    lookback = config.LAST_NON_EMPTY_WEEK_LOOKBACK
"""
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from goalboard.exceptions import ConfigError
from goalboard.paths import get_config_path

logger = logging.getLogger("goalboard.config")


@dataclass
class SystemConfig:
    """
    Runtime constants.

    Values are defaults; runtime.yaml keys with the same name replace them.
    """

    # === Period transfer ===

    # Weeks searched backwards for the last week that still has movable goals.
    # One quarter holds 13 ISO weeks (14 in long quarters).
    LAST_NON_EMPTY_WEEK_LOOKBACK: int = 13

    # Day pulls only take incomplete daily goals unless turned off.
    MOVE_ONLY_INCOMPLETE: bool = True

    # Whole-week pulls also move incomplete adhoc goals of the source week.
    PULL_ADHOC_GOALS: bool = True

    # === Mutation coordinator ===

    # Send a notification (toast) for every failed background commit.
    NOTIFY_PERSISTENCE_FAILURES: bool = True

    # === Logging ===

    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 3


def _load_runtime_config(path: Optional[Path] = None) -> dict:
    """Load runtime overrides if the file exists."""
    path = path or get_config_path()
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Ignoring unreadable runtime config %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Ignoring runtime config %s: top level is not a mapping", path)
        return {}
    return data


def get_config(path: Optional[Path] = None) -> SystemConfig:
    """
    Build a config instance.

    Priority: runtime.yaml > defaults

    Raises:
        ConfigError: a known key holds a value of the wrong type
    """
    base = SystemConfig()
    overrides = _load_runtime_config(path)
    known = {f.name for f in fields(SystemConfig)}

    for key, value in overrides.items():
        if key not in known:
            logger.debug("Unknown config key ignored: %s", key)
            continue
        expected = type(getattr(base, key))
        # bool is an int subclass
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ConfigError(
                f"{key} must be {expected.__name__}, got {value!r}",
                config_path=str(path or get_config_path()),
            )
        setattr(base, key, value)

    return base


config = get_config()
