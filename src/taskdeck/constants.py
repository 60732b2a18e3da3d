"""Shared constants for the task board."""

from __future__ import annotations

STATE_DIR_NAME = ".taskdeck"
CONFIG_FILE = "config.yaml"

TASKS_FILE = "tasks.yaml"
PROJECTS_FILE = "projects.yaml"
TAGS_FILE = "tags.yaml"
STATE_SCHEMA_VERSION = 1

EXPORT_VERSION = "1.0.0"

WINDOWS_LOCK_BYTES = 1

PROJECT_COLORS = (
    "#FF7A00", "#3B82F6", "#10B981", "#8B5CF6", "#EC4899",
    "#F59E0B", "#06B6D4", "#6366F1", "#EF4444", "#84CC16",
)

TAG_COLORS = (
    "#3B82F6", "#10B981", "#8B5CF6", "#EC4899", "#F59E0B",
    "#06B6D4", "#6366F1", "#EF4444", "#84CC16", "#FF7A00",
)
