"""
End-to-end sharing run against an in-process backend.
"""

import asyncio
import logging
import re

import pytest
from aiohttp import test_utils, web

from ridertrack.config import AgentConfig
from ridertrack.core.errors import PositionError, PositionErrorCode
from ridertrack.domain.models import ErrorKind, SessionState
from ridertrack.infrastructure.credentials import StaticCredentialProvider
from ridertrack.infrastructure.position import PositionSource, SimulatedPositionSource
from ridertrack.service import format_status, run_agent

pytestmark = pytest.mark.e2e


class DeniedSource(PositionSource):
    name = "denied"

    async def _watch(self, handle, options, on_success, on_error):
        await asyncio.sleep(0.01)
        handle.deliver(on_error, PositionError(PositionErrorCode.PERMISSION_DENIED, "denied"))
        while handle.active:
            await asyncio.sleep(0.01)


async def start_backend():
    received = []

    async def update_location(request):
        received.append((request.headers.get("Authorization"), await request.json()))
        return web.json_response({"ok": True})

    app = web.Application()
    app.router.add_put("/riders/{rider_id}/location", update_location)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server, received


def make_config(server) -> AgentConfig:
    return AgentConfig.model_validate(
        {
            "rider": {"rider_id": "r-42"},
            "backend": {"base_url": str(server.make_url("/")).rstrip("/")},
        }
    )


@pytest.mark.asyncio
async def test_simulated_run_reports_to_backend(caplog):
    caplog.set_level(logging.INFO, logger="ridertrack.service")
    server, received = await start_backend()
    events = []

    async def observer(event, snapshot):
        events.append(event.type.name)

    try:
        snapshot = await run_agent(
            make_config(server),
            duration=0.3,
            observer=observer,
            source=SimulatedPositionSource(interval=0.05),
            credentials=StaticCredentialProvider("tok"),
        )
    finally:
        await server.close()

    assert snapshot.is_sharing
    assert snapshot.last_sent_at is not None
    assert snapshot.last_error is None
    assert len(received) >= 2
    assert all(auth == "Bearer tok" for auth, _ in received)
    assert {"lat", "lng", "accuracy", "heading", "speed", "timestamp"} <= set(received[0][1])
    assert "SHARING_STARTED" in events
    assert "REPORT_SENT" in events
    assert any("Updates every 10 seconds" in line for line in format_status(snapshot))
    assert re.search(r"Sharing ended: [1-9]\d* reports sent, 0 failed", caplog.text)


@pytest.mark.asyncio
async def test_permission_loss_ends_run():
    server, received = await start_backend()
    try:
        snapshot = await asyncio.wait_for(
            run_agent(
                make_config(server),
                duration=5,
                source=DeniedSource(),
                credentials=StaticCredentialProvider("tok"),
            ),
            timeout=3,
        )
    finally:
        await server.close()

    assert snapshot.state is SessionState.ERROR
    assert not snapshot.is_sharing
    assert snapshot.last_error.kind is ErrorKind.PERMISSION_DENIED
    assert received == []
    assert "permission denied" in format_status(snapshot)[-1].lower()


@pytest.mark.asyncio
async def test_missing_rider_id_rejected():
    with pytest.raises(ValueError):
        await run_agent(AgentConfig(), duration=0.1)
