import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

BUILTIN_PLUGINS_DIR = Path(__file__).resolve().parent.parent / "plugins" / "builtin"
BUILTIN_PLUGINS_PACKAGE = "adpa.plugins.builtin"

APP_ENV = os.getenv("APP_ENV", "production").lower()
DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"
LOG_DRIVER: str = os.getenv("LOG_DRIVER", "console")
VALID_LOG_DRIVERS = ["console", "file", "syslog"]
if LOG_DRIVER not in VALID_LOG_DRIVERS:
    raise ValueError(
        f"Invalid LOG_DRIVER: {LOG_DRIVER}. Must be one of {VALID_LOG_DRIVERS}"
    )

LOG_FILE: str = os.getenv("LOG_FILE", "adpa.log")

PLUGIN_DIRECTORIES: List[Path] = [
    Path(p)
    for p in os.getenv("PLUGIN_DIRECTORIES", str(BUILTIN_PLUGINS_DIR)).split(
        os.pathsep
    )
    if p.strip()
]
PLUGIN_ENTRYPOINT_GROUP = os.getenv("PLUGIN_ENTRYPOINT_GROUP", "adpa.plugins")
PLUGIN_CONFIG_FILE: Optional[str] = os.getenv("PLUGIN_CONFIG_FILE") or None


def load_plugin_configs(path: Optional[str]) -> Dict[str, Dict[str, Any]]:
    """
    Read per-plugin configuration overrides from a JSON file.

    The file holds an object mapping plugin names to configuration objects.
    A missing path yields no overrides.
    """
    if not path:
        return {}

    config_path = Path(path)
    if not config_path.exists():
        raise ValueError(f"PLUGIN_CONFIG_FILE does not exist: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict) or not all(
        isinstance(value, dict) for value in data.values()
    ):
        raise ValueError(
            f"Invalid PLUGIN_CONFIG_FILE: {config_path}. "
            "Must map plugin names to configuration objects"
        )
    return data
