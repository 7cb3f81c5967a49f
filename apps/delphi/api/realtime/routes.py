from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket

from delphi.core.dependencies import get_realtime_gateway
from delphi.core.settings import settings
from delphi.realtime.gateway import RealtimeGateway

router = APIRouter(tags=["realtime"])


@router.websocket(settings.ws_path)
async def realtime_ws(
    websocket: WebSocket,
    gateway: RealtimeGateway = Depends(get_realtime_gateway),
) -> None:
    await gateway.serve(websocket)
