from __future__ import annotations

import asyncio

import pytest

from weatherdesk.db import build_engine, build_session_factory
from weatherdesk.dispatch import UiDispatcher


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    return build_session_factory(build_engine("sqlite://"))


@pytest.fixture
async def dispatcher(anyio_backend):
    d = UiDispatcher()
    d.bind()
    runner = asyncio.get_running_loop().create_task(d.run())
    yield d
    d.cancel_background()
    runner.cancel()
    try:
        await runner
    except asyncio.CancelledError:
        pass
