"""Agent wiring and the long-running sharing loop."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable, Callable

from .config import AgentConfig, PositionConfig, SourceEnum
from .core.events import Event, EventBus, EventType
from .domain.models import SessionSnapshot
from .infrastructure.backend.reporter import BackendSettings, Reporter
from .infrastructure.clock import ReportingClock
from .infrastructure.credentials import CredentialProvider, build_credential_provider
from .infrastructure.position import (
    GpsdConfig,
    GpsdPositionSource,
    PositionSource,
    SimulatedPositionSource,
)
from .session.controller import REPORT_PERIOD_MS, SessionController

logger = logging.getLogger(__name__)

StatusObserver = Callable[[Event, SessionSnapshot], Awaitable[None]]


def build_position_source(cfg: PositionConfig, simulate: bool = False) -> PositionSource:
    if simulate or cfg.source is SourceEnum.SIMULATED:
        return SimulatedPositionSource(
            start_lat=cfg.sim_lat,
            start_lon=cfg.sim_lon,
            interval=cfg.sim_interval,
        )
    return GpsdPositionSource(
        GpsdConfig(
            host=cfg.host,
            port=cfg.port,
            socket_path=cfg.socket_path,
            connect_timeout=cfg.connect_timeout,
            reconnect_delay=cfg.reconnect_delay,
        ),
        enabled=cfg.enabled,
    )


def backend_settings(cfg: AgentConfig) -> BackendSettings:
    return BackendSettings(
        base_url=cfg.backend.base_url,
        rider_id=cfg.rider.rider_id,
        location_path=cfg.backend.location_path,
        timeout=cfg.backend.timeout,
    )


def format_status(snapshot: SessionSnapshot) -> list[str]:
    """Human-readable status lines for a session snapshot."""
    lines = ["Sharing" if snapshot.is_sharing else "Not Sharing"]
    reading = snapshot.current_reading
    if reading is not None and snapshot.is_sharing:
        lines.append(f"Latitude: {reading.latitude:.6f}")
        lines.append(f"Longitude: {reading.longitude:.6f}")
        if snapshot.current_accuracy:
            lines.append(f"Accuracy: ±{snapshot.current_accuracy:.1f} meters")
        if snapshot.last_sent_at is not None:
            lines.append(f"Last sent: {snapshot.last_sent_at.astimezone().strftime('%H:%M:%S')}")
    if snapshot.last_error is not None:
        lines.append(snapshot.last_error.message or snapshot.last_error.kind.value)
    elif snapshot.is_sharing:
        lines.append(
            f"Your location is being shared. Updates every {REPORT_PERIOD_MS // 1000} seconds."
        )
    return lines


class Agent:
    """Owns every component of one sharing agent."""

    def __init__(
        self,
        cfg: AgentConfig,
        simulate: bool = False,
        credentials: CredentialProvider | None = None,
        source: PositionSource | None = None,
    ) -> None:
        self.cfg = cfg
        self.bus = EventBus()
        self.source = source or build_position_source(cfg.position, simulate=simulate)
        self.credentials = credentials or build_credential_provider(cfg.credentials)
        self.reporter = Reporter(backend_settings(cfg), self.credentials)
        self.controller = SessionController(self.source, ReportingClock(), self.reporter, self.bus)

    def observe(self, observer: StatusObserver) -> None:
        """Call observer with a fresh snapshot after every session event."""

        async def _forward(event: Event) -> None:
            await observer(event, self.controller.snapshot())

        _forward.__name__ = getattr(observer, "__name__", "observer")
        self.bus.subscribe_all(_forward)

    async def __aenter__(self) -> Agent:
        await self.bus.start()
        await self.reporter.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.controller.stop()
        logger.info(
            "Sharing ended: %d reports sent, %d failed",
            self.reporter.sent_total,
            self.reporter.failed_total,
        )
        await self.reporter.close()
        await self.bus.stop()


async def run_agent(
    cfg: AgentConfig,
    duration: float | None = None,
    simulate: bool = False,
    observer: StatusObserver | None = None,
    stop_event: asyncio.Event | None = None,
    source: PositionSource | None = None,
    credentials: CredentialProvider | None = None,
) -> SessionSnapshot:
    """
    Share location until stopped.

    Stops on SIGINT/SIGTERM, after ``duration`` seconds, when ``stop_event``
    is set, or when a fatal error ends the session.

    Returns:
        The last snapshot taken before sharing was stopped.
    """
    if not cfg.rider.rider_id:
        raise ValueError("rider.rider_id is not configured")

    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows / non-main thread
            pass

    try:
        async with Agent(cfg, simulate=simulate, credentials=credentials, source=source) as agent:
            if observer is not None:
                agent.observe(observer)

            async def _on_session_error(event: Event) -> None:
                stop_event.set()

            agent.bus.subscribe(EventType.SESSION_ERROR, _on_session_error, priority=200)

            await agent.controller.start()
            if agent.controller.is_sharing:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    logger.info("Sharing duration of %.0fs elapsed", duration)
                # Finish in-flight reports before taking the snapshot
                await agent.controller.drain()
            return agent.controller.snapshot()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
