from __future__ import annotations

import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from stockdesk.app.api.v1.router import router as v1_router
from stockdesk.app.bridge import Bridge
from stockdesk.app.core.log_config import setup_logging
from stockdesk.app.db.session import Database


def create_app(database: Database | None = None) -> FastAPI:
    db = database or Database()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        db.init()
        yield
        db.dispose()

    app = FastAPI(title="Stockdesk", version="0.1.0", lifespan=lifespan)
    app.state.bridge = Bridge(db)
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()


def run() -> None:
    uvicorn.run(
        "stockdesk.app.main:app",
        host=os.getenv("STOCKDESK_HOST", "127.0.0.1"),
        port=int(os.getenv("STOCKDESK_PORT", "8000")),
    )


if __name__ == "__main__":
    run()
