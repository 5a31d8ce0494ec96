"""Error kinds raised by the video generation workflow.

Every error carries the message shown to the user. Nothing here is retried
automatically; the only retryable condition is a job that is still processing,
which is not an error at all.
"""
from __future__ import annotations


class VideoWorkflowError(Exception):
    """Base class for all workflow failures."""

    default_message = "Unknown error occurred"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidPrompt(VideoWorkflowError):
    default_message = "Please enter a prompt"


class WorkflowBusy(VideoWorkflowError):
    default_message = "A video generation is already in progress"


class WorkflowReset(VideoWorkflowError):
    """The attempt was reset before it could finish; its results are dropped."""

    default_message = "Video generation was reset"


class ConfigurationError(VideoWorkflowError):
    default_message = "HeyGen API key not configured"


class SubmissionError(VideoWorkflowError):
    """Creating the remote job did not yield a usable identifier."""

    default_message = "Failed to generate video"


class ServiceError(SubmissionError):
    pass


class MalformedResponse(SubmissionError):
    default_message = "Invalid JSON response from HeyGen"


class MissingJobId(SubmissionError):
    pass


class PollError(VideoWorkflowError):
    """The status loop ended without a result URL."""

    default_message = "Status check failed"


class CheckFailed(PollError):
    default_message = "Failed to check status"


class RemoteFailure(PollError):
    default_message = "Video generation failed"


class MissingResultUrl(PollError):
    default_message = "Video URL not found in response"


class PollTimeout(PollError):
    default_message = "Video generation timed out"


class PollCancelled(PollError):
    default_message = "Video generation cancelled"


class DownloadError(VideoWorkflowError):
    default_message = "Failed to download video"
