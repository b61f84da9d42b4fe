import base64

from fastapi import APIRouter, Request, WebSocket

from wsbridge.servers.bridge_server import BridgeServer
from wsbridge.servers.ws_frontend import serve_frontend

# The router prefix will be /api, so these endpoints will be
# /api/ws, /api/history and /api/status
router = APIRouter(tags=["Bridge"])


def _bridge(app) -> BridgeServer:
    return app.state.bridge


@router.websocket("/ws")
async def bridge_websocket(websocket: WebSocket):
    """Front-end session: binary/text in -> IN leg, OUT leg -> binary out."""
    await serve_frontend(websocket, _bridge(websocket.app))


@router.get("/history")
async def receive_history(request: Request):
    """
    Chunks recently forwarded from the OUT server to the front end,
    oldest first, base64-encoded.
    """
    return [
        {"type": "Outbound", "data": base64.b64encode(chunk).decode("ascii")}
        for chunk in _bridge(request.app).history_snapshot()
    ]


@router.get("/status")
async def bridge_status(request: Request):
    return _bridge(request.app).status()
