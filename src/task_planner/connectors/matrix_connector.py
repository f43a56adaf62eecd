# src/task_planner/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import io
import logging
import time

from nio import (
    AsyncClient,
    DownloadResponse,
    MatrixRoom,
    RoomMessageFile,
    RoomMessageText,
    UploadResponse,
    exceptions,
)

from ..core.dispatcher import Dispatcher
from ..core.models import Attachment, BotResponse, UserKey
from .background import BackgroundRunner, start_in_background
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)

PLATFORM = "matrix"
MAX_IMPORT_BYTES = 1_000_000


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
    )


async def _send_file(client: AsyncClient, *, room_id: str, attachment: Attachment) -> None:
    resp, _keys = await client.upload(
        io.BytesIO(attachment.data),
        content_type="application/json",
        filename=attachment.filename,
        filesize=len(attachment.data),
    )
    if not isinstance(resp, UploadResponse):
        logger.error("Matrix upload of %s failed: %r", attachment.filename, resp)
        return
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={
            "msgtype": "m.file",
            "body": attachment.filename,
            "url": resp.content_uri,
            "info": {"mimetype": "application/json", "size": len(attachment.data)},
        },
    )


async def send_response(client: AsyncClient, room_id: str, response: BotResponse) -> None:
    await _send_text(client, room_id=room_id, text=response.text)
    if response.file is not None:
        await _send_file(client, room_id=room_id, attachment=response.file)


async def _download(client: AsyncClient, event: RoomMessageFile) -> Attachment | None:
    resp = await client.download(mxc=event.url)
    if not isinstance(resp, DownloadResponse):
        logger.warning("Matrix download of %s failed: %r", event.url, resp)
        return None
    if len(resp.body) > MAX_IMPORT_BYTES:
        logger.info("Matrix import rejected: %d bytes", len(resp.body))
        return None
    return Attachment(filename=resp.filename or event.body or "tasks.json", data=resp.body)


async def run_matrix_bot(dispatcher: Dispatcher, settings, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async): init -> callbacks -> sync loop.

    Each room message is one delivery for UserKey("matrix", sender). The
    dispatcher is synchronous, so it runs in a worker thread and the sync loop
    keeps going while the store is busy.
    """
    if not settings.matrix_homeserver or not settings.matrix_user_id:
        logger.error("Matrix is enabled but not configured (homeserver/user_id).")
        return

    startup_ts = _ms_now()
    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    def accept(room: MatrixRoom, event) -> bool:
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return False
        if event.sender == client.user_id:
            return False
        return allowed_rooms is None or room.room_id in allowed_rooms

    async def deliver(room: MatrixRoom, sender: str, text: str, attachment: Attachment | None) -> None:
        key = UserKey(PLATFORM, sender)
        response = await asyncio.to_thread(dispatcher.handle, key, text, attachment)
        try:
            await send_response(client, room.room_id, response)
        except exceptions.LocalProtocolError:
            logger.exception("Failed to send reply in %s.", room.room_id)

    async def on_text(room: MatrixRoom, event: RoomMessageText) -> None:
        if not accept(room, event):
            return
        body = event.body or ""
        if not body.strip():
            return
        # Free text may be a password: only its size is logged.
        logger.info("Matrix <%s> %s: message (%d chars)", room.display_name, event.sender, len(body))
        await deliver(room, event.sender, body, None)

    async def on_file(room: MatrixRoom, event: RoomMessageFile) -> None:
        if not accept(room, event):
            return
        logger.info("Matrix <%s> %s sent file %r", room.display_name, event.sender, event.body)
        attachment = await _download(client, event)
        if attachment is None:
            await _send_text(client, room_id=room.room_id, text="Could not download the file, please try again.")
            return
        await deliver(room, event.sender, "", attachment)

    client.add_event_callback(on_text, RoomMessageText)
    client.add_event_callback(on_file, RoomMessageFile)

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        while not stop_event.is_set():
            sync = asyncio.create_task(client.sync(timeout=30000, full_state=False))
            stopper = asyncio.create_task(stop_event.wait())
            await asyncio.wait({sync, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for t in (sync, stopper):
                if not t.done():
                    t.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await t
            if not sync.cancelled() and sync.exception() is not None:
                logger.warning("Matrix sync failed: %r", sync.exception())
                await asyncio.sleep(5.0)
    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    finally:
        await client.close()
        logger.info("Matrix connector stopped.")


def start_matrix_in_background(dispatcher: Dispatcher, settings) -> BackgroundRunner | None:
    if not settings.matrix_enabled:
        logger.info("Matrix connector disabled, not starting.")
        return None
    return start_in_background("Matrix", lambda stop: run_matrix_bot(dispatcher, settings, stop))
