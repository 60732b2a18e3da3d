"""Load optional board configuration from `.taskdeck/config.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .constants import CONFIG_FILE, STATE_DIR_NAME
from .io_utils import _load_data_with_error

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
VALID_SORTS = {"manual", "dueDate", "priority", "newest"}


def load_board_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional board config file.

    Args:
        project_dir: Directory holding the `.taskdeck/` state directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def get_log_level(config: dict[str, Any], default: str = "INFO") -> str:
    raw = config.get("log_level")
    if isinstance(raw, str) and raw.upper() in VALID_LOG_LEVELS:
        return raw.upper()
    return default


def get_week_starts_on(config: dict[str, Any]) -> int:
    """First weekday of the `this-week` filter (0 = Monday ... 6 = Sunday)."""
    raw = config.get("week_starts_on")
    if isinstance(raw, int) and not isinstance(raw, bool) and 0 <= raw <= 6:
        return raw
    return 0


def get_anchor_undated_recurrence(config: dict[str, Any]) -> bool:
    return _get_nested(config, "recurrence", "anchor_undated") is True


def get_default_sort(config: dict[str, Any]) -> str:
    raw = config.get("default_sort")
    if isinstance(raw, str) and raw in VALID_SORTS:
        return raw
    return "manual"
