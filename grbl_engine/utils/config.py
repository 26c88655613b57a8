"""Engine settings.

Settings live in one JSON object on disk. Missing keys fall back to
``DEFAULT_SETTINGS`` (merged recursively), writes go through a temp file and
keep the previous file as a ``.bak`` copy.
"""

import copy
import json
import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from .constants import (
    BAUD_DEFAULT,
    BED_AXIS_CHOICES,
    BED_AXIS_DEFAULT,
    HOLD_POLL_INTERVAL,
    HOME_RESPONSE_TIMEOUT,
    IO_WORKERS_DEFAULT,
    LINE_RESPONSE_TIMEOUT,
    PROBE_RESPONSE_TIMEOUT,
    SETTINGS_BACKUP_SUFFIX,
    SETTINGS_DIR_ENV,
    SETTINGS_DIRNAME,
    SETTINGS_FILENAME,
    SETTINGS_TEMP_SUFFIX,
    STATUS_BROADCAST_CAPACITY,
    STATUS_POLL_DEFAULT,
    STATUS_POLL_INTERVAL_MIN,
    STATUS_READ_TIMEOUT,
    VALID_BAUD_RATES,
)
from .exceptions import SettingsLoadError, SettingsSaveError, SettingsValidationError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "baud_rate": BAUD_DEFAULT,
    "hold_poll_interval": HOLD_POLL_INTERVAL,
    "home_response_timeout": HOME_RESPONSE_TIMEOUT,
    "io_workers": IO_WORKERS_DEFAULT,
    "last_port": "",
    "line_response_timeout": LINE_RESPONSE_TIMEOUT,
    "motion": {
        "bed_axis": BED_AXIS_DEFAULT,
        "y_limit": None,
    },
    "probe_response_timeout": PROBE_RESPONSE_TIMEOUT,
    "status_broadcast_capacity": STATUS_BROADCAST_CAPACITY,
    "status_poll_interval": STATUS_POLL_DEFAULT,
    "status_read_timeout": STATUS_READ_TIMEOUT,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _positive(value: Any) -> bool:
    return _is_number(value) and value > 0


def _count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


# key -> (check, message)
_RULES: Tuple[Tuple[str, Callable[[Any], bool], str], ...] = (
    ("baud_rate", lambda v: v in VALID_BAUD_RATES, "Invalid baud rate"),
    ("status_poll_interval", lambda v: _is_number(v) and v >= STATUS_POLL_INTERVAL_MIN,
     "Invalid poll interval"),
    ("status_read_timeout", _positive, "Invalid status read timeout"),
    ("line_response_timeout", _positive, "Invalid line_response_timeout"),
    ("probe_response_timeout", _positive, "Invalid probe_response_timeout"),
    ("home_response_timeout", _positive, "Invalid home_response_timeout"),
    ("hold_poll_interval", _positive, "Invalid hold_poll_interval"),
    ("status_broadcast_capacity", _count, "Invalid status_broadcast_capacity"),
    ("io_workers", _count, "Invalid io_workers"),
    ("motion.y_limit", lambda v: v is None or _positive(v), "Invalid Y limit"),
    ("motion.bed_axis", lambda v: v in BED_AXIS_CHOICES, "Invalid bed axis"),
)


def merge_with_defaults(defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ``loaded`` on ``defaults`` recursively; unknown keys are kept."""
    merged = copy.deepcopy(defaults)
    for key, value in loaded.items():
        base = merged.get(key)
        if isinstance(base, dict) and isinstance(value, dict):
            merged[key] = merge_with_defaults(base, value)
        else:
            merged[key] = value
    return merged


def get_default_settings_dir() -> Path:
    """``$GRBL_ENGINE_CONFIG_DIR``, else the platform config dir plus ``GrblEngine``."""
    override = os.getenv(SETTINGS_DIR_ENV)
    if override:
        return Path(override)
    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
    else:
        base = os.getenv("XDG_CONFIG_HOME")
    return Path(base or Path.home()) / SETTINGS_DIRNAME


def get_settings_path() -> str:
    """Path of the settings file; its directory is created on demand."""
    candidates = (get_default_settings_dir(), Path.home() / ".grbl_engine")
    for directory in candidates:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            return str(directory / SETTINGS_FILENAME)
        except OSError as e:
            logger.warning(f"Cannot use settings directory {directory}: {e}")
    return str(Path.cwd() / SETTINGS_FILENAME)


class Settings:
    """Engine settings backed by a JSON file.

    Keys may be nested and are addressed with dots::

        settings = Settings()
        settings.load()
        settings.set("motion.y_limit", 600.0)
        settings.save()
    """

    def __init__(self, filepath: Optional[str] = None):
        self.filepath = filepath or get_settings_path()
        self.data: Dict[str, Any] = copy.deepcopy(DEFAULT_SETTINGS)
        logger.debug(f"Settings file: {self.filepath}")

    def load(self) -> bool:
        """Read the file over the defaults.

        Returns:
            False when there is no file (defaults stay in place)

        Raises:
            SettingsLoadError: If the file is unreadable or not a JSON object
        """
        path = Path(self.filepath)
        if not path.exists():
            logger.info(f"No settings file at {path}, using defaults")
            return False
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"Settings file {path} is not valid JSON: {e}")
            raise SettingsLoadError(f"Invalid JSON: {e}")
        except OSError as e:
            logger.error(f"Cannot read settings file {path}: {e}")
            raise SettingsLoadError(f"Failed to read file: {e}")
        if not isinstance(loaded, dict):
            raise SettingsLoadError("Settings file must contain a JSON object")
        self.data = merge_with_defaults(DEFAULT_SETTINGS, loaded)
        logger.info(f"Settings loaded from {path}")
        return True

    def save(self) -> None:
        """Write the file atomically, keeping the previous one as a backup.

        Raises:
            SettingsSaveError: If the file cannot be written
        """
        path = Path(self.filepath)
        temp = path.with_name(path.name + SETTINGS_TEMP_SUFFIX)
        backup = path.with_name(path.name + SETTINGS_BACKUP_SUFFIX)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp.write_text(json.dumps(self.data, indent=2, sort_keys=True), encoding="utf-8")
            if path.exists():
                shutil.copy2(path, backup)
            temp.replace(path)
        except OSError as e:
            logger.error(f"Cannot write settings file {path}: {e}")
            raise SettingsSaveError(f"Failed to save: {e}")
        finally:
            temp.unlink(missing_ok=True)
        logger.info(f"Settings saved to {path}")

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self.data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        *parents, leaf = key.split(".")
        node = self.data
        for part in parents:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[leaf] = value

    def get_all(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    def reset_to_defaults(self) -> None:
        self.data = copy.deepcopy(DEFAULT_SETTINGS)
        logger.info("Settings reset to defaults")

    def validate(self) -> bool:
        """Check every known key.

        Raises:
            SettingsValidationError: On the first invalid value
        """
        for key, check, message in _RULES:
            value = self.get(key)
            if not check(value):
                raise SettingsValidationError(f"{message}: {value}")
        if self.get("status_read_timeout") >= self.get("status_poll_interval"):
            raise SettingsValidationError(
                "Status read timeout must be shorter than the poll interval"
            )
        return True
