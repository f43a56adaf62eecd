# src/task_planner/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store and the LLM client into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.dispatcher import Dispatcher
from ..core.ports import LLMClient
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..storage.store import SQLiteStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.export_dir.mkdir(parents=True, exist_ok=True)
    if settings.matrix_enabled:
        settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def create_llm_client(settings) -> LLMClient:
    try:
        return OpenRouterLLMClient(settings)
    except RuntimeError as e:
        # Demos / local runs without an API key still get AI subtasks.
        logger.info("Using offline AI client: %s", e)
        return OfflineLLMClient()


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Settings are injectable for tests; None falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    return AppState(
        settings=settings,
        store=SQLiteStore(settings.db_path),
        llm=create_llm_client(settings),
    )


def create_dispatcher(*, settings=None) -> Dispatcher:
    return Dispatcher(create_initial_state(settings=settings))
