import json

import httpx
import pytest

from src.core.errors import NotificationError
from src.core.send_eval import send_evaluation

PAYLOAD = {
    "email": "student@example.com",
    "task": "sample-task-123",
    "round": 1,
    "nonce": "n-1",
    "repo_url": "https://github.com/octo/project-sample-task-123",
    "commit_sha": "abc",
    "pages_url": "https://octo.github.io/project-sample-task-123/",
}


def _client(statuses, seen):
    """Answer with the given statuses in order; an Exception entry raises instead"""
    queue = list(statuses)

    def handler(request):
        seen.append(json.loads(request.content))
        status = queue.pop(0)
        if isinstance(status, Exception):
            raise status
        return httpx.Response(status, json={"ok": status == 200})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_stops_after_success_on_third_attempt(fake_sleep, sleeps):
    seen = []
    async with _client([500, httpx.ConnectError("refused"), 200, 200, 200], seen) as client:
        attempt = await send_evaluation(
            "https://example.com/notify", PAYLOAD, max_retries=5, base_delay=1.0, client=client, sleep=fake_sleep
        )

    assert attempt == 3
    assert len(seen) == 3
    assert all(body == PAYLOAD for body in seen)
    assert sleeps == [1.0, 2.0]


async def test_raises_only_after_ceiling(fake_sleep, sleeps):
    seen = []
    async with _client([503] * 5, seen) as client:
        with pytest.raises(NotificationError):
            await send_evaluation(
                "https://example.com/notify", PAYLOAD, max_retries=5, base_delay=0.5, client=client, sleep=fake_sleep
            )

    assert len(seen) == 5
    assert sleeps == [0.5, 1.0, 2.0, 4.0]
    assert all(a < b for a, b in zip(sleeps, sleeps[1:]))


async def test_timeouts_are_retried(fake_sleep):
    seen = []
    async with _client([httpx.ReadTimeout("slow"), 200], seen) as client:
        attempt = await send_evaluation("https://example.com/notify", PAYLOAD, client=client, sleep=fake_sleep)
    assert attempt == 2
