"""Session-scoped video generation endpoints."""
from __future__ import annotations

import re
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from ..config import settings
from ..models import schemas
from ..services.errors import (
    ConfigurationError,
    DownloadError,
    InvalidPrompt,
    SubmissionError,
    VideoWorkflowError,
    WorkflowBusy,
    WorkflowReset,
)
from ..services.generation import DEFAULT_PRESET, MAX_PROMPT_LENGTH
from ..services.workflow import VideoWorkflow, WorkflowManager, WorkflowState

router = APIRouter(prefix="/workflows", tags=["workflows"])

_SAFE_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

manager = WorkflowManager(
    poll_interval=settings.poll_interval_seconds,
    max_attempts=settings.poll_max_attempts,
)


def get_manager() -> WorkflowManager:
    return manager


def _existing(manager: WorkflowManager, session_id: str) -> VideoWorkflow:
    wf = manager.get(session_id)
    if wf is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return wf


@router.get("/settings", response_model=schemas.StudioSettingsResponse)
async def studio_settings() -> schemas.StudioSettingsResponse:
    return schemas.StudioSettingsResponse(preset=DEFAULT_PRESET.describe(), max_prompt_length=MAX_PROMPT_LENGTH)


@router.post("/{session_id}/generate", status_code=202, response_model=schemas.WorkflowSnapshot)
async def start_generation(
    session_id: str,
    payload: schemas.GenerateVideoRequest,
    manager: WorkflowManager = Depends(get_manager),
) -> schemas.WorkflowSnapshot:
    """Submit the prompt and keep polling HeyGen in the background."""

    try:
        wf = await manager.start(session_id, payload.prompt)
    except InvalidPrompt as exc:
        raise HTTPException(status_code=422, detail=exc.message)
    except WorkflowBusy as exc:
        raise HTTPException(status_code=409, detail=exc.message)
    except WorkflowReset as exc:
        raise HTTPException(status_code=409, detail=exc.message)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=exc.message)
    except SubmissionError:
        snapshot = manager.workflow(session_id).snapshot()
        raise HTTPException(status_code=502, detail=snapshot.model_dump(mode="json"))
    except VideoWorkflowError as exc:
        raise HTTPException(status_code=409, detail=exc.message)
    return wf.snapshot()


@router.get("/{session_id}", response_model=schemas.WorkflowSnapshot)
async def get_workflow(session_id: str, manager: WorkflowManager = Depends(get_manager)) -> schemas.WorkflowSnapshot:
    return _existing(manager, session_id).snapshot()


@router.post("/{session_id}/cancel", response_model=schemas.WorkflowSnapshot)
async def cancel_workflow(session_id: str, manager: WorkflowManager = Depends(get_manager)) -> schemas.WorkflowSnapshot:
    wf = _existing(manager, session_id)
    manager.cancel(session_id)
    return wf.snapshot()


@router.post("/{session_id}/reset", response_model=schemas.WorkflowSnapshot)
async def reset_workflow(session_id: str, manager: WorkflowManager = Depends(get_manager)) -> schemas.WorkflowSnapshot:
    wf = _existing(manager, session_id)
    manager.reset(session_id)
    return wf.snapshot()


@router.delete("/{session_id}", status_code=204)
async def delete_workflow(session_id: str, manager: WorkflowManager = Depends(get_manager)) -> None:
    if not manager.discard(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")


@router.get("/{session_id}/video")
async def download_video(session_id: str, manager: WorkflowManager = Depends(get_manager)) -> FileResponse:
    """Copy the hosted result locally and serve it as an mp4 attachment."""

    wf = _existing(manager, session_id)
    if not _SAFE_SESSION_ID.match(session_id):
        raise HTTPException(status_code=400, detail="Session id not usable as a download folder")
    if wf.state is not WorkflowState.COMPLETED:
        raise HTTPException(status_code=409, detail="No completed video to download")
    try:
        path = await wf.download(Path(settings.download_dir) / session_id)
    except DownloadError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    return FileResponse(path, media_type="video/mp4", filename=path.name)
