from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from stockdesk.app.api.deps import get_bridge
from stockdesk.app.bridge import Bridge

router = APIRouter()


class InvokeRequest(BaseModel):
    args: list[Any] = Field(default_factory=list)


@router.get("/channels")
def list_channels(bridge: Bridge = Depends(get_bridge)):
    return [{"name": name, "authenticated": bridge.is_authenticated(name)} for name in bridge.channels()]


@router.post("/invoke/{channel}")
def invoke(channel: str, payload: InvokeRequest | None = None, bridge: Bridge = Depends(get_bridge)):
    if channel not in bridge.channels():
        raise HTTPException(status_code=404, detail=f"Unknown operation: {channel}")
    args = payload.args if payload is not None else []
    return jsonable_encoder(bridge.invoke(channel, *args))
