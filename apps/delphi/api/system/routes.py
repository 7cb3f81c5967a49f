from __future__ import annotations

from fastapi import APIRouter, Depends

from delphi.core.dependencies import get_connection_registry
from delphi.realtime.registry import ConnectionRegistry

router = APIRouter(tags=["system"])


@router.get("/healthz")
def healthz() -> dict[str, bool]:
    return {"ok": True}


@router.get("/healthz/realtime")
def realtime_health(
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> dict[str, int]:
    return {"connections": len(registry)}
