"""Pydantic models describing request and response payloads."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class GenerateVideoRequest(BaseModel):
    """Incoming payload for starting a workflow-driven generation."""

    prompt: str = Field(..., description="Script the avatar should speak")


class LogEntryModel(BaseModel):
    id: str
    timestamp: datetime
    severity: str = Field(..., description="info, success, warning or error")
    message: str


class WorkflowSnapshot(BaseModel):
    """Represents the current state of a session's video workflow."""

    state: str = Field(..., description="idle, submitting, polling, completed or failed")
    progress: int = Field(default=0, ge=0, le=100, description="Estimated completion percentage")
    video_id: Optional[str] = Field(default=None, description="HeyGen video identifier")
    video_url: Optional[str] = Field(default=None, description="Hosted result once completed")
    error: Optional[str] = None
    error_kind: Optional[str] = None
    completed_at: Optional[datetime] = None
    video_expires_at: Optional[datetime] = Field(
        default=None, description="When the hosted result URL is expected to stop working"
    )
    logs: List[LogEntryModel] = Field(default_factory=list, description="Newest entries first")


class StudioSettingsResponse(BaseModel):
    """Presentation settings applied to every generation."""

    preset: Dict[str, str]
    max_prompt_length: int
