"""Fixed-interval status polling for HeyGen video jobs."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from .errors import CheckFailed, MissingResultUrl, PollCancelled, PollTimeout, RemoteFailure
from .generation import VideoService
from .heygen import HeyGenAPIError, InvalidResponseError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]
AttemptCallback = Callable[[int, int], None]
Sleep = Callable[[float], Awaitable[Any]]

DEFAULT_INTERVAL_SECONDS = 3.0
DEFAULT_MAX_ATTEMPTS = 100


def estimate_progress(attempts: int) -> int:
    """Cosmetic percentage for an in-flight job.

    HeyGen does not report real progress, so this interpolates from 30 and
    saturates at 90 until a terminal state is observed.
    """

    return min(30 + attempts * 2, 90)


def extract_video_url(data: dict[str, Any]) -> Optional[str]:
    url = data.get("video_url")
    if not url:
        output = data.get("output")
        if isinstance(output, dict):
            url = output.get("video_url")
    return str(url) if url else None


def _failure_message(data: dict[str, Any]) -> Optional[str]:
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message") or None
    if isinstance(error, str):
        return error or None
    return None


class StatusPoller:
    def __init__(
        self,
        service: VideoService,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._service = service
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def _check(self, video_id: str) -> dict[str, Any]:
        try:
            reply = await self._service.get_video_status(video_id)
        except HeyGenAPIError as exc:
            raise CheckFailed(exc.message) from exc
        except InvalidResponseError as exc:
            raise CheckFailed(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise CheckFailed(f"Server error: {exc}") from exc
        data = reply.data.get("data")
        return data if isinstance(data, dict) else {}

    async def poll(
        self,
        video_id: str,
        on_progress: Optional[ProgressCallback] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        on_attempt: Optional[AttemptCallback] = None,
    ) -> str:
        """Wait for ``video_id`` to finish and return its result URL.

        One status query is outstanding at a time. Only a non-terminal state is
        retried; every other outcome ends the loop with a :class:`PollError`.
        ``on_attempt`` receives the 1-based attempt number and the budget right
        before each query.
        """

        attempts = 0
        while attempts < self.max_attempts:
            if cancel_event is not None and cancel_event.is_set():
                raise PollCancelled()

            logger.info("Checking video status for %s (attempt %d/%d)", video_id, attempts + 1, self.max_attempts)
            if on_attempt is not None:
                on_attempt(attempts + 1, self.max_attempts)
            data = await self._check(video_id)
            progress = estimate_progress(attempts)
            status = data.get("status")

            if status == "completed":
                url = extract_video_url(data)
                if not url:
                    raise MissingResultUrl()
                logger.info("Video %s completed after %d checks", video_id, attempts + 1)
                return url
            if status == "failed":
                raise RemoteFailure(_failure_message(data))

            if on_progress is not None:
                on_progress(progress, str(status or "processing"))
            await self._sleep(self.interval)
            attempts += 1

        logger.warning("Video %s not finished after %d checks", video_id, self.max_attempts)
        raise PollTimeout()
