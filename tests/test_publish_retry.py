from __future__ import annotations

import asyncio

from core.config import PublishConfig
from core.retry import retry_publish


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FlakyPublish:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("503 Service Unavailable")


def test_succeeds_on_third_attempt() -> None:
    sleep = FakeSleep()
    publish = FlakyPublish(failures=2)
    assert asyncio.run(retry_publish(publish, "notice", PublishConfig(), sleep)) is True
    assert publish.calls == 3
    assert sleep.delays == [5.0, 10.0]


def test_gives_up_after_max_attempts() -> None:
    sleep = FakeSleep()
    publish = FlakyPublish(failures=10)
    assert asyncio.run(retry_publish(publish, "notice", PublishConfig(max_attempts=3), sleep)) is False
    assert publish.calls == 3
    assert sleep.delays == [5.0, 10.0]


def test_first_attempt_success_never_sleeps() -> None:
    sleep = FakeSleep()
    publish = FlakyPublish(failures=0)
    assert asyncio.run(retry_publish(publish, sleep=sleep)) is True
    assert sleep.delays == []
