from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import httpx

from ..config import settings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

GENERATE_PATH = "/v2/video/generate"
STATUS_PATH = "/v1/video_status.get"


@dataclass
class HeyGenReply:
    status_code: int
    data: dict[str, Any]


@dataclass(eq=False)
class HeyGenAPIError(Exception):
    """HeyGen answered with a non-success status code."""

    status_code: int
    error: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def message(self) -> Optional[str]:
        value = self.error.get("message")
        return str(value) if value else None


@dataclass(eq=False)
class InvalidResponseError(Exception):
    """HeyGen answered with a body that is not a JSON object."""

    status_code: int
    raw: str

    def __post_init__(self) -> None:
        super().__init__("Invalid JSON response from HeyGen")


class HeyGenClient:
    """Thin async wrapper around the two HeyGen endpoints the studio needs."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        raw_base = (base_url or settings.heygen_base_url or "").strip()
        if not raw_base.startswith(("http://", "https://")):
            raise RuntimeError("HEYGEN_BASE_URL must include http/https scheme")
        self._base_url = raw_base.rstrip("/")
        self._api_key = api_key if api_key is not None else settings.heygen_api_key
        self._timeout = timeout or settings.heygen_timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self._timeout, transport=self._transport)

    def _headers(self, **extra: str) -> dict[str, str]:
        if not self._api_key:
            logger.error("HEYGEN_KEY is not set in environment variables")
            raise ConfigurationError()
        return {"X-Api-Key": self._api_key, **extra}

    @staticmethod
    def _decode(resp: httpx.Response, default_message: str) -> HeyGenReply:
        text = resp.text
        try:
            data = json.loads(text)
        except ValueError:
            logger.error("Invalid JSON from HeyGen (status %s): %.200s", resp.status_code, text)
            raise InvalidResponseError(resp.status_code, text) from None
        if not isinstance(data, dict):
            raise InvalidResponseError(resp.status_code, text)

        if not resp.is_success:
            logger.error("HeyGen API error %s: %s", resp.status_code, data)
            error = data.get("error")
            if isinstance(error, str):
                error = {"message": error}
            if not isinstance(error, dict) or not error:
                error = {"message": default_message}
            raise HeyGenAPIError(resp.status_code, error)
        return HeyGenReply(resp.status_code, data)

    async def create_video(self, payload: dict[str, Any]) -> HeyGenReply:
        headers = self._headers(**{"Content-Type": "application/json"})
        logger.info("Posting video generation request to %s%s", self._base_url, GENERATE_PATH)
        async with self._client() as client:
            resp = await client.post(f"{self._base_url}{GENERATE_PATH}", json=payload, headers=headers)
        reply = self._decode(resp, "HeyGen API request failed")
        logger.info("HeyGen generate response keys: %s", list(reply.data.keys()))
        return reply

    async def get_video_status(self, video_id: str) -> HeyGenReply:
        headers = self._headers(Accept="application/json")
        async with self._client() as client:
            resp = await client.get(
                f"{self._base_url}{STATUS_PATH}",
                params={"video_id": video_id},
                headers=headers,
            )
        reply = self._decode(resp, "HeyGen status API request failed")
        logger.debug("HeyGen status for %s: %s", video_id, reply.data)
        return reply

    async def download_video(self, url: str, destination: Path, timeout: float = 120.0) -> Path:
        """Copy the hosted video bytes to ``destination`` unchanged."""

        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        try:
            async with self._client(timeout) as client:
                async with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    with partial.open("wb") as fh:
                        async for chunk in resp.aiter_bytes():
                            fh.write(chunk)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        partial.replace(destination)
        logger.info("Saved video to %s", destination)
        return destination
