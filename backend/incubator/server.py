"""ASGI entrypoint wiring the incubator bridge components together."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import router
from .config import configure_logging
from .services.bridge_service import BridgeService
from .services.dependencies import (
    service,
    shutdown_service,
    startup_service,
)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    await startup_service()
    try:
        yield
    finally:
        await shutdown_service()


app = FastAPI(title="Incubator Bridge", version="0.1.0", lifespan=_lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:  # pragma: no cover - manual execution helper
    """Launch the FastAPI app using uvicorn."""

    import uvicorn  # type: ignore

    settings = service.settings
    configure_logging(settings.log_level)
    uvicorn.run(
        "backend.incubator.server:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


__all__ = [
    "BridgeService",
    "app",
    "run",
    "service",
]


if __name__ == "__main__":  # pragma: no cover - manual execution path
    run()
