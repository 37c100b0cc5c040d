"""
Reporter Unit Tests
===================

Runs the reporter against an in-process aiohttp backend.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime

import pytest
from aiohttp import test_utils, web

from ridertrack.domain.models import PositionReading
from ridertrack.infrastructure.backend.reporter import (
    NETWORK_ERROR,
    NO_CREDENTIAL,
    REMOTE_REJECTED,
    BackendSettings,
    Reporter,
    build_payload,
)
from ridertrack.infrastructure.credentials import StaticCredentialProvider


@asynccontextmanager
async def backend(status: int = 200):
    """Fake rider backend recording every location update."""
    received: list[dict] = []

    async def update_location(request: web.Request) -> web.Response:
        received.append(
            {
                "rider_id": request.match_info["rider_id"],
                "auth": request.headers.get("Authorization"),
                "content_type": request.content_type,
                "body": await request.json(),
            }
        )
        return web.json_response({"ok": status < 300}, status=status)

    app = web.Application()
    app.router.add_put("/riders/{rider_id}/location", update_location)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield server, received
    finally:
        await server.close()


def settings_for(server: test_utils.TestServer) -> BackendSettings:
    return BackendSettings(base_url=str(server.make_url("/")), rider_id="r-42", timeout=5.0)


READING = PositionReading(
    latitude=1.0,
    longitude=2.0,
    accuracy_meters=5.0,
    heading_degrees=90.0,
    speed_mps=3.5,
)


class TestPayload:
    """JSON body layout."""

    def test_fields(self):
        sent_at = datetime(2025, 3, 1, 12, 0, 0, tzinfo=UTC)
        body = build_payload(READING, sent_at)

        assert body == {
            "lat": 1.0,
            "lng": 2.0,
            "accuracy": 5.0,
            "heading": 90.0,
            "speed": 3.5,
            "timestamp": "2025-03-01T12:00:00Z",
        }

    def test_missing_motion_is_null(self):
        reading = PositionReading(latitude=1.0, longitude=2.0, accuracy_meters=5.0)
        body = build_payload(reading)

        assert body["heading"] is None
        assert body["speed"] is None

    def test_zero_heading_is_kept(self):
        reading = PositionReading(
            latitude=1.0, longitude=2.0, accuracy_meters=5.0, heading_degrees=0.0, speed_mps=0.0
        )
        body = build_payload(reading)

        assert body["heading"] == 0.0
        assert body["speed"] == 0.0

    def test_location_url(self):
        settings = BackendSettings(base_url="https://api.example.com/", rider_id="abc")
        assert settings.location_url == "https://api.example.com/riders/abc/location"


class TestSend:
    """Outbound PUT behaviour."""

    @pytest.mark.asyncio
    async def test_success(self):
        async with backend() as (server, received):
            async with Reporter(settings_for(server), StaticCredentialProvider("tok")) as reporter:
                outcome = await reporter.report(READING)

        assert outcome.ok
        assert outcome.status == 200
        assert reporter.sent_total == 1
        assert len(received) == 1
        assert received[0]["rider_id"] == "r-42"
        assert received[0]["auth"] == "Bearer tok"
        assert received[0]["content_type"] == "application/json"
        assert received[0]["body"]["lat"] == 1.0
        assert received[0]["body"]["lng"] == 2.0
        assert received[0]["body"]["accuracy"] == 5.0

    @pytest.mark.asyncio
    async def test_no_credential_skips_network(self):
        async with backend() as (server, received):
            async with Reporter(settings_for(server), StaticCredentialProvider(None)) as reporter:
                outcome = await reporter.report(READING)

        assert not outcome.ok
        assert outcome.reason == NO_CREDENTIAL
        assert received == []
        assert reporter.failed_total == 1

    @pytest.mark.asyncio
    async def test_non_2xx_is_rejected(self):
        async with backend(status=401) as (server, received):
            async with Reporter(settings_for(server), StaticCredentialProvider("tok")) as reporter:
                outcome = await reporter.report(READING)

        assert not outcome.ok
        assert outcome.reason == REMOTE_REJECTED
        assert outcome.status == 401
        assert len(received) == 1  # single attempt, no retry

    @pytest.mark.asyncio
    async def test_unreachable_backend(self):
        async with backend() as (server, _):
            settings = settings_for(server)
        # server closed: connection refused
        async with Reporter(settings, StaticCredentialProvider("tok")) as reporter:
            outcome = await reporter.report(READING)

        assert not outcome.ok
        assert outcome.reason == NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_credential_read_on_every_send(self):
        provider = StaticCredentialProvider("first")
        async with backend() as (server, received):
            async with Reporter(settings_for(server), provider) as reporter:
                await reporter.report(READING)
                provider.token = "second"
                await reporter.report(READING)

        assert [r["auth"] for r in received] == ["Bearer first", "Bearer second"]

    @pytest.mark.asyncio
    async def test_session_reopened_after_close(self):
        provider = StaticCredentialProvider("tok")
        async with backend() as (server, received):
            reporter = Reporter(settings_for(server), provider)
            first = await reporter.report(READING)
            await reporter.close()
            second = await reporter.report(READING)
            await reporter.close()

        assert first.ok and second.ok
        assert len(received) == 2
