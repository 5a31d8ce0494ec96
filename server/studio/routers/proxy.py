"""Pass-through endpoints that forward to HeyGen with the server-held key."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ..services.errors import ConfigurationError
from ..services.heygen import HeyGenAPIError, HeyGenClient, HeyGenReply, InvalidResponseError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["proxy"])


def get_heygen_client() -> HeyGenClient:
    return HeyGenClient()


def _error(message: str, status_code: int = 500, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": {"message": message}, **extra}, status_code=status_code)


async def _forward(call: Callable[[], Awaitable[HeyGenReply]], route: str) -> JSONResponse:
    try:
        reply = await call()
    except ConfigurationError as exc:
        return _error(exc.message)
    except InvalidResponseError as exc:
        return _error("Invalid JSON response from HeyGen", raw=exc.raw)
    except HeyGenAPIError as exc:
        return JSONResponse({"error": exc.error}, status_code=exc.status_code)
    except Exception as exc:
        logger.exception("Error in %s", route)
        return _error(f"Server error: {str(exc) or 'Unknown server error'}")
    return JSONResponse(reply.data, status_code=reply.status_code)


@router.post("/generate")
async def generate_video(
    payload: Dict[str, Any] = Body(...),
    client: HeyGenClient = Depends(get_heygen_client),
) -> JSONResponse:
    """Forward a raw HeyGen generate body and relay the answer."""

    video_inputs = payload.get("video_inputs")
    count = len(video_inputs) if isinstance(video_inputs, list) else 0
    logger.info("POST /api/generate called with %d video input(s)", count)
    return await _forward(lambda: client.create_video(payload), "/api/generate")


@router.get("/status/{video_id}")
async def video_status(video_id: str, client: HeyGenClient = Depends(get_heygen_client)) -> JSONResponse:
    logger.info("GET /api/status/%s called", video_id)
    return await _forward(lambda: client.get_video_status(video_id), f"/api/status/{video_id}")
