"""
WebSocket front end for the bridge.

Translates a FastAPI/Starlette WebSocket into BridgeSession events:

- accept                -> on_established
- each received message -> on_message, split into buffer_size chunks
- every poll tick       -> on_writable (immediately again after data)
- disconnect            -> on_closed
"""

import asyncio

import anyio
from fastapi import WebSocket, WebSocketDisconnect, status

from wsbridge.servers.bridge_server import BridgeServer
from wsbridge.servers.bridge_session import BridgeSession
from wsbridge.util.logging_helper import get_logger

logger = get_logger(__name__)


def _peer_label(websocket: WebSocket) -> str:
    client = websocket.client
    if client is None:
        return "unknown"
    return f"{client.host}:{client.port}"


async def serve_frontend(websocket: WebSocket, bridge: BridgeServer):
    """Run one front-end WebSocket connection until either side goes away."""
    peer = _peer_label(websocket)
    await websocket.accept()

    session = bridge.open_session(websocket, label=peer)
    if session is None:
        logger.warning("Rejecting WebSocket client %s: another session is active", peer)
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    logger.info("WebSocket connection established: %s", peer)

    try:
        await session.on_established()

        # Whichever loop ends first cancels the other
        async with anyio.create_task_group() as tg:
            tg.start_soon(
                _run_until_done, tg.cancel_scope, peer, _receive_loop, websocket, session, bridge.settings.buffer_size
            )
            tg.start_soon(_run_until_done, tg.cancel_scope, peer, _poll_loop, websocket, session, bridge)

    finally:
        bridge.close_session(session)
        logger.info("WebSocket connection closed: %s", peer)


async def _run_until_done(scope: anyio.CancelScope, peer: str, loop, *args):
    try:
        await loop(*args)
    except WebSocketDisconnect:
        logger.debug("WebSocket client %s went away", peer)
    except Exception as e:
        logger.error("WebSocket session %s ended with error: %s", peer, e)
    finally:
        scope.cancel()


async def _receive_loop(websocket: WebSocket, session: BridgeSession, chunk_size: int):
    """Forward front-end messages to IN until the client disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return

        data = message.get("bytes")
        if data is None:
            text = message.get("text")
            data = text.encode("utf-8") if text else b""
        if not data:
            continue

        # Oversized messages become several writes; stop at the first failed chunk
        for offset in range(0, len(data), chunk_size):
            if not await session.on_message(data[offset : offset + chunk_size]):
                break


async def _poll_loop(websocket: WebSocket, session: BridgeSession, bridge: BridgeServer):
    """Drain OUT into the front end until the session ends or shutdown is requested."""
    interval = bridge.settings.poll_interval

    while session.active and not bridge.shutdown.is_set():
        forwarded = await session.on_writable()
        await asyncio.sleep(0 if forwarded else interval)

    if bridge.shutdown.is_set():
        logger.info("Shutdown requested, closing WebSocket session %s", session.label)
        await websocket.close(code=status.WS_1001_GOING_AWAY)
