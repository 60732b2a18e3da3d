"""FastAPI application factory for the task board."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .. import __version__
from ..engine import TaskBoard
from ..errors import PersistenceError, ValidationError
from .board_api import create_board_router


def create_app(
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
    board: Optional[TaskBoard] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        project_dir: Directory whose ``.taskdeck`` state the board serves.
        enable_cors: Whether to enable CORS.
        board: Pre-built board (tests pass an in-memory one).

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Taskdeck",
        description="Task board with projects, tags, recurrence and manual ordering",
        version=__version__,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.board = board or TaskBoard.open(project_dir or Path.cwd())
    if not app.state.board.store.initialized:
        logger.warning("Board state failed to load: {}", app.state.board.store.load_error)

    def _get_board() -> TaskBoard:
        return app.state.board

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.errors})

    @app.exception_handler(PersistenceError)
    async def _persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Taskdeck",
            "version": __version__,
            "status": "running",
            "loaded": app.state.board.store.initialized,
        }

    app.include_router(create_board_router(_get_board))
    return app
