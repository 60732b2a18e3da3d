"""Test packaging metadata: dependencies, extras and the console script."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _load_pyproject() -> dict[str, Any]:
    raw = (PROJECT_ROOT / "pyproject.toml").read_text(encoding="utf-8")
    if sys.version_info >= (3, 11):
        import tomllib

        return tomllib.loads(raw)

    import tomli

    return tomli.loads(raw)


def _names(requirements: list[str]) -> set[str]:
    out = set()
    for item in requirements:
        name = str(item).split(";")[0]
        for sep in ("<", ">", "=", "!", "~", "["):
            name = name.split(sep)[0]
        out.add(name.strip().lower())
    return out


def test_runtime_dependencies_cover_imports() -> None:
    deps = _names(_load_pyproject()["project"]["dependencies"])
    assert {"loguru", "pyyaml", "pydantic", "fastapi", "rich"} <= deps


def test_extras() -> None:
    extras = _load_pyproject()["project"]["optional-dependencies"]
    assert "uvicorn" in _names(extras["server"])
    assert {"pytest", "httpx", "anyio"} <= _names(extras["test"])


def test_console_script_points_at_cli() -> None:
    scripts = _load_pyproject()["project"]["scripts"]
    assert scripts["taskdeck"] == "taskdeck.cli:main"
