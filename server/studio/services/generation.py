"""Prompt validation and job submission for avatar videos."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, Union

import httpx

from .errors import InvalidPrompt, MalformedResponse, MissingJobId, ServiceError
from .heygen import HeyGenAPIError, HeyGenReply, InvalidResponseError

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 1500


class VideoService(Protocol):
    async def create_video(self, payload: dict[str, Any]) -> HeyGenReply: ...

    async def get_video_status(self, video_id: str) -> HeyGenReply: ...

    async def download_video(self, url: str, destination: Path) -> Path: ...


@dataclass(frozen=True, slots=True)
class AvatarPreset:
    """Fixed presentation parameters applied to every prompt."""

    avatar_id: str
    avatar_label: str
    voice_id: str
    voice_label: str
    avatar_style: str = "normal"
    speed: float = 1.0
    width: int = 720
    height: int = 720
    background_color: str = "#FFFFFF"

    def describe(self) -> dict[str, str]:
        return {
            "Avatar": self.avatar_label,
            "Voice": self.voice_label,
            "Resolution": f"{self.width}x{self.height}",
            "Speed": f"{self.speed:.1f}x",
        }


DEFAULT_PRESET = AvatarPreset(
    avatar_id="Abigail_sitting_sofa_front",
    avatar_label="Abigail",
    voice_id="119caed25533477ba63822d5d1552d25",
    voice_label="Female",
)


def validate_prompt(prompt: str) -> str:
    """Return the prompt untouched or raise :class:`InvalidPrompt`."""

    if not (prompt or "").strip():
        raise InvalidPrompt("Please enter a prompt")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise InvalidPrompt(f"Prompt must be less than {MAX_PROMPT_LENGTH} characters")
    return prompt


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    prompt: str
    preset: AvatarPreset = DEFAULT_PRESET

    @classmethod
    def from_prompt(cls, prompt: str, preset: AvatarPreset = DEFAULT_PRESET) -> "GenerationRequest":
        return cls(prompt=validate_prompt(prompt), preset=preset)

    def to_payload(self) -> dict[str, Any]:
        preset = self.preset
        return {
            "video_inputs": [
                {
                    "character": {
                        "type": "avatar",
                        "avatar_id": preset.avatar_id,
                        "avatar_style": preset.avatar_style,
                    },
                    "voice": {
                        "type": "text",
                        "input_text": self.prompt,
                        "voice_id": preset.voice_id,
                        "speed": preset.speed,
                    },
                    "background": {"type": "color", "value": preset.background_color},
                }
            ],
            "dimension": {"width": preset.width, "height": preset.height},
        }


class JobSubmitter:
    """Create one remote generation job and hand back its identifier."""

    def __init__(self, service: VideoService, *, preset: AvatarPreset = DEFAULT_PRESET) -> None:
        self._service = service
        self._preset = preset

    async def submit(self, prompt: Union[str, GenerationRequest]) -> str:
        if isinstance(prompt, GenerationRequest):
            request = prompt
        else:
            request = GenerationRequest.from_prompt(prompt, self._preset)

        try:
            reply = await self._service.create_video(request.to_payload())
        except HeyGenAPIError as exc:
            raise ServiceError(exc.message) from exc
        except InvalidResponseError as exc:
            raise MalformedResponse() from exc
        except httpx.HTTPError as exc:
            logger.warning("HeyGen generate request failed: %s", exc)
            raise ServiceError(f"Server error: {exc}") from exc

        data = reply.data.get("data")
        video_id = data.get("video_id") if isinstance(data, dict) else None
        if not video_id:
            error = reply.data.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise MissingJobId(message)
        logger.info("HeyGen accepted video job %s", video_id)
        return str(video_id)
