"""Tests for readiness polling and human pacing."""

import asyncio
import time

import pytest

from pagelens.config.settings import PacingConfig
from pagelens.pipeline.pacing import human_pause, settle
from pagelens.pipeline.readiness import wait_until_ready


class TestWaitUntilReady:
    @pytest.mark.asyncio
    async def test_ready_immediately(self):
        async def ready():
            return True

        assert await wait_until_ready(ready, timeout_ms=500, poll_interval_ms=5, stabilization_ms=0)

    @pytest.mark.asyncio
    async def test_becomes_ready_after_polls(self):
        calls = {"n": 0}

        async def ready():
            calls["n"] += 1
            return calls["n"] >= 3

        assert await wait_until_ready(ready, timeout_ms=1000, poll_interval_ms=5, stabilization_ms=0)
        assert calls["n"] == 3

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self):
        async def never():
            return False

        started = time.monotonic()
        assert not await wait_until_ready(never, timeout_ms=50, poll_interval_ms=10, stabilization_ms=0)
        assert time.monotonic() - started >= 0.05

    @pytest.mark.asyncio
    async def test_stabilization_wait(self):
        async def ready():
            return True

        started = time.monotonic()
        await wait_until_ready(ready, timeout_ms=500, poll_interval_ms=5, stabilization_ms=30)
        assert time.monotonic() - started >= 0.03


class TestPacing:
    @pytest.mark.asyncio
    async def test_disabled_pacing_does_not_sleep(self, monkeypatch):
        slept = []

        async def fake_sleep(delay):
            slept.append(delay)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        config = PacingConfig(enabled=False)
        await human_pause(1000, 2000, config)
        await settle(800, config)
        assert slept == []

    @pytest.mark.asyncio
    async def test_pause_within_scaled_bounds(self, monkeypatch):
        slept = []

        async def fake_sleep(delay):
            slept.append(delay)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        config = PacingConfig(enabled=True, scale=0.5)
        await human_pause(1000, 2000, config)
        await settle(800, config)
        assert 0.5 <= slept[0] <= 1.0
        assert slept[1] == pytest.approx(0.4)
