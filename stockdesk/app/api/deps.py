from __future__ import annotations

from fastapi import Request

from stockdesk.app.bridge import Bridge


def get_bridge(request: Request) -> Bridge:
    return request.app.state.bridge
