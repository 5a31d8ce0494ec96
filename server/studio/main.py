"""FastAPI application entrypoint for the avatar studio."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .routers import proxy, workflows

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.heygen_api_key:
        logger.warning("HEYGEN_KEY is not set; generation requests will be rejected")
    yield
    await workflows.manager.shutdown()


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    application = FastAPI(
        title="Avatar Studio",
        description="Submit a script to HeyGen, follow the render and fetch the resulting video.",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.include_router(proxy.router)
    application.include_router(workflows.router)

    @application.get("/")
    async def root() -> dict[str, str]:
        """Lightweight health endpoint for service discovery."""
        return {"service": "avatar-studio", "status": "ok"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
