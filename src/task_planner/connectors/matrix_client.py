# src/task_planner/connectors/matrix_client.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)


def _session_path(store_dir: Path) -> Path:
    return store_dir / "session.json"


def _load_json(path: Path) -> dict[str, Any]:
    val = json.loads(path.read_text("utf-8"))
    if isinstance(val, dict):
        return val
    raise ValueError("Expected JSON object")


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        os.chmod(path, 0o600)


def _restore_session(client: AsyncClient, session_file: Path) -> bool:
    try:
        data = _load_json(session_file)
    except (OSError, ValueError) as e:
        logger.warning("Failed to read Matrix session.json, will try password login: %r", e)
        return False

    access_token = data.get("access_token")
    user_id = data.get("user_id")
    device_id = data.get("device_id")
    if not access_token or not user_id or not device_id:
        logger.warning("Matrix session.json is missing required fields, will try password login.")
        return False

    client.access_token = str(access_token)
    client.user_id = str(user_id)
    client.device_id = str(device_id)
    logger.info("Matrix session restored for %s", client.user_id)
    return True


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a Matrix AsyncClient and authenticate it.

    The access token is kept in <matrix_store_path>/session.json so restarts
    reuse the device instead of logging in again. The file holds a secret and
    lives under the gitignored data dir. Rooms are unencrypted: the bot never
    enables E2EE.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/planner/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set PLANNER_MATRIX_HOMESERVER and PLANNER_MATRIX_USER_ID")
        return None

    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = _session_path(store_dir)

    config = AsyncClientConfig(encryption_enabled=False, store_sync_tokens=True)
    client = AsyncClient(homeserver, user_id, config=config)

    if session_file.exists() and _restore_session(client, session_file):
        return client

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set PLANNER_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'task-planner')} (Python)"
    logger.info("Logging in to Matrix to bootstrap a new session (device_name=%r)...", device_name)

    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        _atomic_write_json(
            session_file,
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
        )
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError as e:
        # The client is logged in; it just logs in again on the next start.
        logger.warning("Failed to write Matrix session.json (%s): %r", session_file, e)

    return client
