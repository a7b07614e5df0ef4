"""
Shared fixtures: a fake Clinic-AI backend, a fake clock and a recording sleep.
"""

import asyncio
import contextlib

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from clinicai_client.core.config import ApiSettings, reset_settings


class FakeClock:
    """Millisecond clock advanced only by RecordingSleep."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    """Records requested delays (ms) and advances the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        delay_ms = round(seconds * 1000)
        self.delays.append(delay_ms)
        self.clock.now += delay_ms
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep(clock):
    return RecordingSleep(clock)


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_backend():
    """Factory: `async with fake_backend(routes) as (session, api_settings)`."""

    @contextlib.asynccontextmanager
    async def _serve(routes, doctor_id=None):
        app = web.Application()
        app.add_routes(routes)
        async with TestServer(app) as server:
            settings = ApiSettings(
                base_url=str(server.make_url("")).rstrip("/"),
                timeout_seconds=5,
                doctor_id=doctor_id,
            )
            async with aiohttp.ClientSession() as session:
                yield session, settings

    return _serve
