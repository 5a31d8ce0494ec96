from __future__ import annotations

import asyncio

import httpx
import pytest

from fakes import FakeVideoService, SleepRecorder, status
from studio.services.errors import CheckFailed, MissingResultUrl, PollCancelled, PollTimeout, RemoteFailure
from studio.services.heygen import HeyGenAPIError, InvalidResponseError
from studio.services.polling import StatusPoller, estimate_progress


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


def _poller(service: FakeVideoService, sleeper: SleepRecorder, **kwargs) -> StatusPoller:  # noqa: ANN003
    return StatusPoller(service, sleep=sleeper, **kwargs)


def test_estimate_progress_saturates_at_ninety() -> None:
    assert [estimate_progress(n) for n in range(4)] == [30, 32, 34, 36]
    assert estimate_progress(30) == 90
    assert estimate_progress(99) == 90


def test_processing_then_completed(sleeper: SleepRecorder) -> None:
    url = "https://files.heygen.ai/video.mp4"
    service = FakeVideoService(statuses=[status("processing")] * 5 + [status("completed", video_url=url)])
    seen: list[tuple[int, str]] = []

    result = _run(_poller(service, sleeper).poll("vid_1", lambda pct, label: seen.append((pct, label))))

    assert result == url
    assert seen == [(30, "processing"), (32, "processing"), (34, "processing"), (36, "processing"), (38, "processing")]
    assert sleeper.calls == [3.0] * 5
    assert service.status_calls == ["vid_1"] * 6


def test_attempt_callback_precedes_each_query(sleeper: SleepRecorder) -> None:
    service = FakeVideoService(statuses=[status("processing")] * 2 + [status("completed", video_url="u")])
    attempts: list[tuple[int, int, int]] = []

    _run(
        _poller(service, sleeper, max_attempts=5).poll(
            "vid_1",
            on_attempt=lambda number, budget: attempts.append((number, budget, len(service.status_calls))),
        )
    )

    assert attempts == [(1, 5, 0), (2, 5, 1), (3, 5, 2)]


def test_missing_status_is_reported_as_processing(sleeper: SleepRecorder) -> None:
    service = FakeVideoService(
        statuses=[status(None), status("pending"), status("completed", video_url="https://x/v.mp4")]
    )
    seen: list[str] = []
    _run(_poller(service, sleeper).poll("vid_1", lambda pct, label: seen.append(label)))
    assert seen == ["processing", "pending"]


def test_remote_failure_stops_immediately(sleeper: SleepRecorder) -> None:
    service = FakeVideoService(statuses=[status("failed", error={"message": "synthesis error"})])
    with pytest.raises(RemoteFailure) as info:
        _run(_poller(service, sleeper).poll("vid_1"))
    assert info.value.message == "synthesis error"
    assert len(service.status_calls) == 1
    assert sleeper.calls == []


def test_remote_failure_without_reason(sleeper: SleepRecorder) -> None:
    service = FakeVideoService(statuses=[status("failed")])
    with pytest.raises(RemoteFailure, match="Video generation failed"):
        _run(_poller(service, sleeper).poll("vid_1"))


def test_timeout_after_exactly_max_attempts(sleeper: SleepRecorder) -> None:
    service = FakeVideoService(statuses=[status("processing")])
    seen: list[int] = []
    with pytest.raises(PollTimeout, match="Video generation timed out"):
        _run(_poller(service, sleeper).poll("vid_1", lambda pct, label: seen.append(pct)))
    assert len(service.status_calls) == 100
    assert sleeper.calls == [3.0] * 100
    assert seen[-1] == 90
    assert seen == sorted(seen)


def test_custom_interval_and_budget(sleeper: SleepRecorder) -> None:
    service = FakeVideoService(statuses=[status("waiting")])
    with pytest.raises(PollTimeout):
        _run(_poller(service, sleeper, interval=0.5, max_attempts=3).poll("vid_1"))
    assert sleeper.calls == [0.5, 0.5, 0.5]


def test_completed_uses_nested_fallback_url(sleeper: SleepRecorder) -> None:
    service = FakeVideoService(statuses=[status("completed", output={"video_url": "https://fallback/v.mp4"})])
    assert _run(_poller(service, sleeper).poll("vid_1")) == "https://fallback/v.mp4"


def test_completed_without_any_url(sleeper: SleepRecorder) -> None:
    service = FakeVideoService(statuses=[status("completed", output={})])
    with pytest.raises(MissingResultUrl, match="Video URL not found in response"):
        _run(_poller(service, sleeper).poll("vid_1"))


@pytest.mark.parametrize(
    ("failure", "message"),
    [
        (HeyGenAPIError(401, {"message": "Unauthorized"}), "Unauthorized"),
        (HeyGenAPIError(500, {}), "Failed to check status"),
        (InvalidResponseError(502, "Bad Gateway"), "Invalid JSON response from HeyGen"),
        (httpx.ReadTimeout("timed out"), "Server error: timed out"),
    ],
)
def test_failed_check_is_not_retried(sleeper: SleepRecorder, failure: Exception, message: str) -> None:
    service = FakeVideoService(statuses=[status("processing"), failure, status("completed", video_url="u")])
    with pytest.raises(CheckFailed) as info:
        _run(_poller(service, sleeper).poll("vid_1"))
    assert info.value.message == message
    assert len(service.status_calls) == 2


def test_cancel_before_first_query(sleeper: SleepRecorder) -> None:
    service = FakeVideoService()

    async def scenario() -> None:
        event = asyncio.Event()
        event.set()
        await _poller(service, sleeper).poll("vid_1", cancel_event=event)

    with pytest.raises(PollCancelled):
        _run(scenario())
    assert service.status_calls == []


def test_cancel_checked_at_top_of_each_iteration() -> None:
    service = FakeVideoService(statuses=[status("processing")])

    async def scenario() -> None:
        event = asyncio.Event()
        sleeper = SleepRecorder(hook=lambda count: event.set() if count == 2 else None)
        await StatusPoller(service, sleep=sleeper).poll("vid_1", cancel_event=event)

    with pytest.raises(PollCancelled):
        _run(scenario())
    assert len(service.status_calls) == 2
