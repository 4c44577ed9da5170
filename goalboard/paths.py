"""
Centralized filesystem paths for runtime data.
"""
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent


def get_data_dir() -> Path:
    """
    Return runtime data directory.

    Priority:
    1. GOALBOARD_DATA_DIR env var
    2. <project_root>/data
    """
    raw = os.getenv("GOALBOARD_DATA_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return PROJECT_ROOT / "data"


def get_config_path() -> Path:
    """
    Return the runtime config override file.

    Priority:
    1. GOALBOARD_CONFIG env var
    2. <project_root>/config/runtime.yaml
    """
    raw = os.getenv("GOALBOARD_CONFIG", "").strip()
    if raw:
        return Path(raw).expanduser()
    return PROJECT_ROOT / "config" / "runtime.yaml"


DATA_DIR = get_data_dir()
LOGS_DIR = DATA_DIR / "logs"
