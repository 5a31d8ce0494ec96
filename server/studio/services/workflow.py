"""Caller-owned state for one avatar video generation at a time."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..models import schemas
from .errors import (
    DownloadError,
    InvalidPrompt,
    PollCancelled,
    PollTimeout,
    VideoWorkflowError,
    WorkflowBusy,
    WorkflowReset,
)
from .generation import DEFAULT_PRESET, AvatarPreset, GenerationRequest, JobSubmitter, VideoService
from .heygen import HeyGenClient
from .polling import DEFAULT_INTERVAL_SECONDS, DEFAULT_MAX_ATTEMPTS, StatusPoller

logger = logging.getLogger(__name__)

# HeyGen keeps generated videos for a week; after that the URL stops working.
RESULT_RETENTION = timedelta(days=7)


class WorkflowState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"


class LogSeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class LogEntry:
    severity: LogSeverity
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


class VideoWorkflow:
    """Drive submit -> poll -> result for a single session.

    All state lives on the instance and is only mutated from the task running
    the current attempt. ``reset`` bumps the attempt counter so any late result
    from an abandoned attempt is dropped.
    """

    def __init__(
        self,
        service: VideoService,
        *,
        preset: AvatarPreset = DEFAULT_PRESET,
        poll_interval: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self._service = service
        self._preset = preset
        self._submitter = JobSubmitter(service, preset=preset)
        self._poller = StatusPoller(
            service,
            interval=poll_interval,
            max_attempts=max_attempts,
            sleep=sleep or asyncio.sleep,
        )
        self._attempt = 0
        self._cancel_event: Optional[asyncio.Event] = None
        self.logs: list[LogEntry] = []
        self._clear()

    def _clear(self) -> None:
        self.state = WorkflowState.IDLE
        self.progress = 0
        self.video_id: Optional[str] = None
        self.video_url: Optional[str] = None
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None
        self.completed_at: Optional[datetime] = None

    @property
    def busy(self) -> bool:
        return self.state in (WorkflowState.SUBMITTING, WorkflowState.POLLING)

    @property
    def preset(self) -> AvatarPreset:
        return self._preset

    def log(self, severity: LogSeverity, message: str) -> LogEntry:
        entry = LogEntry(severity=severity, message=message)
        self.logs.insert(0, entry)
        return entry

    def _fail(self, exc: BaseException, *, log_message: Optional[str] = None, severity: LogSeverity = LogSeverity.ERROR) -> None:
        message = exc.message if isinstance(exc, VideoWorkflowError) else (str(exc) or "Unknown error occurred")
        self.state = WorkflowState.FAILED
        self.error = message
        self.error_kind = type(exc).__name__
        self.log(severity, log_message or message)

    async def submit(self, prompt: str) -> str:
        if self.busy:
            raise WorkflowBusy()
        try:
            request = GenerationRequest.from_prompt(prompt, self._preset)
        except InvalidPrompt as exc:
            self.log(LogSeverity.ERROR, exc.message)
            raise

        self._attempt += 1
        attempt = self._attempt
        self._cancel_event = asyncio.Event()
        self._clear()
        self.state = WorkflowState.SUBMITTING
        self.progress = 10
        self.log(LogSeverity.INFO, "Starting video generation...")
        self.log(LogSeverity.INFO, "Sending request to HeyGen API...")

        try:
            video_id = await self._submitter.submit(request)
        except Exception as exc:
            if attempt != self._attempt:
                raise WorkflowReset() from exc
            message = exc.message if isinstance(exc, VideoWorkflowError) else str(exc)
            self._fail(exc, log_message=f"Generation failed: {message}")
            raise

        if attempt != self._attempt:
            raise WorkflowReset()
        self.state = WorkflowState.POLLING
        self.video_id = video_id
        self.progress = 30
        self.log(LogSeverity.SUCCESS, f"Video generation started! ID: {video_id}")
        return video_id

    async def track(self) -> str:
        if self.state is not WorkflowState.POLLING or not self.video_id:
            raise VideoWorkflowError("No video generation in progress")
        attempt = self._attempt
        video_id = self.video_id

        def on_progress(percent: int, label: str) -> None:
            if attempt != self._attempt:
                return
            self.progress = max(self.progress, percent)
            self.log(LogSeverity.INFO, f"Status: {label}...")

        def on_attempt(number: int, budget: int) -> None:
            if attempt == self._attempt:
                self.log(LogSeverity.INFO, f"Checking video status... (Attempt {number}/{budget})")

        try:
            url = await self._poller.poll(
                video_id,
                on_progress,
                cancel_event=self._cancel_event,
                on_attempt=on_attempt,
            )
        except Exception as exc:
            if attempt != self._attempt:
                raise WorkflowReset() from exc
            if isinstance(exc, PollCancelled):
                self._fail(exc, severity=LogSeverity.WARNING)
            elif isinstance(exc, PollTimeout):
                self._fail(exc, log_message="Video generation timed out after maximum attempts")
            else:
                self._fail(exc)
            raise

        if attempt != self._attempt:
            raise WorkflowReset()
        self.state = WorkflowState.COMPLETED
        self.progress = 100
        self.video_url = url
        self.completed_at = datetime.now(timezone.utc)
        self.log(LogSeverity.SUCCESS, "Video generation completed successfully!")
        return url

    async def generate(self, prompt: str) -> str:
        await self.submit(prompt)
        return await self.track()

    def cancel(self) -> bool:
        if not self.busy or self._cancel_event is None:
            return False
        self._cancel_event.set()
        self.log(LogSeverity.WARNING, "Cancellation requested")
        return True

    def reset(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()
        self._attempt += 1
        self._cancel_event = None
        self._clear()
        self.logs.clear()

    async def download(self, directory: Path | str) -> Path:
        """Save the finished video under ``directory`` and return its path."""

        if self.state is not WorkflowState.COMPLETED or not self.video_url:
            raise DownloadError("No completed video to download")
        destination = Path(directory) / f"heygen-video-{self.video_id}.mp4"
        self.log(LogSeverity.INFO, "Starting video download...")
        try:
            path = await self._service.download_video(self.video_url, destination)
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("Download of %s failed: %s", self.video_id, exc)
            self.log(LogSeverity.ERROR, "Failed to download video")
            raise DownloadError() from exc
        self.log(LogSeverity.SUCCESS, "Video downloaded successfully!")
        return path

    def snapshot(self) -> schemas.WorkflowSnapshot:
        expires_at = self.completed_at + RESULT_RETENTION if self.completed_at else None
        return schemas.WorkflowSnapshot(
            state=self.state.value,
            progress=self.progress,
            video_id=self.video_id,
            video_url=self.video_url,
            error=self.error,
            error_kind=self.error_kind,
            completed_at=self.completed_at,
            video_expires_at=expires_at,
            logs=[
                schemas.LogEntryModel(
                    id=entry.id,
                    timestamp=entry.timestamp,
                    severity=entry.severity.value,
                    message=entry.message,
                )
                for entry in self.logs
            ],
        )


class WorkflowManager:
    """One workflow and at most one tracking task per session."""

    def __init__(
        self,
        service_factory: Optional[Callable[[], VideoService]] = None,
        *,
        poll_interval: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._service_factory = service_factory
        self._service_instance: Optional[VideoService] = None
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self.workflows: dict[str, VideoWorkflow] = {}
        self.tasks: dict[str, asyncio.Task[Any]] = {}

    def _service(self) -> VideoService:
        if self._service_instance is None:
            if self._service_factory is None:
                self._service_instance = HeyGenClient()
            else:
                self._service_instance = self._service_factory()
        return self._service_instance

    def get(self, session_id: str) -> Optional[VideoWorkflow]:
        return self.workflows.get(session_id)

    def workflow(self, session_id: str) -> VideoWorkflow:
        wf = self.workflows.get(session_id)
        if wf is None:
            wf = VideoWorkflow(
                self._service(),
                poll_interval=self._poll_interval,
                max_attempts=self._max_attempts,
            )
            self.workflows[session_id] = wf
        return wf

    async def start(self, session_id: str, prompt: str) -> VideoWorkflow:
        task = self.tasks.get(session_id)
        if task is not None and not task.done():
            raise WorkflowBusy()
        wf = self.workflow(session_id)
        await wf.submit(prompt)
        self.tasks[session_id] = asyncio.create_task(self._track(session_id, wf))
        return wf

    async def _track(self, session_id: str, wf: VideoWorkflow) -> None:
        try:
            url = await wf.track()
            logger.info("[Session %s] video ready at %s", session_id, url)
        except VideoWorkflowError as exc:
            logger.info("[Session %s] video generation ended: %s (%s)", session_id, exc.message, exc.kind)
        except Exception:
            logger.exception("[Session %s] video tracking crashed", session_id)

    async def wait(self, session_id: str) -> None:
        task = self.tasks.get(session_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def cancel(self, session_id: str) -> bool:
        wf = self.workflows.get(session_id)
        return wf.cancel() if wf is not None else False

    def _drop_task(self, session_id: str) -> None:
        task = self.tasks.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()

    def reset(self, session_id: str) -> Optional[VideoWorkflow]:
        wf = self.workflows.get(session_id)
        if wf is None:
            return None
        wf.reset()
        self._drop_task(session_id)
        return wf

    def discard(self, session_id: str) -> bool:
        """Forget a session entirely, stopping any generation it still runs."""

        wf = self.workflows.pop(session_id, None)
        if wf is not None:
            wf.reset()
        self._drop_task(session_id)
        return wf is not None

    async def shutdown(self) -> None:
        tasks = [task for task in self.tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.tasks.clear()
