"""Client bootstrap entrypoint for transport/manager wiring."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional, Sequence

from smaart_control.actions import ActionCatalogue
from smaart_control.config import ClientSettings, get_settings
from smaart_control.network.manager import ConnectionManager, TransportFactory
from smaart_control.network.transport.dummy import DummyTransport
from smaart_control.status import InstanceStatus

LOGGER = logging.getLogger(__name__)


def _log_status(status: InstanceStatus, message: Optional[str]) -> None:
    LOGGER.info("Status: %s%s", status.value, f" - {message}" if message else "")


def _transport_factory(settings: ClientSettings) -> Optional[TransportFactory]:
    if settings.transport == "dummy":
        return lambda url: DummyTransport(url)
    return None


async def setup(settings: ClientSettings | None = None) -> ConnectionManager:
    """Construct, wire, and start the connection manager."""

    settings = settings or get_settings()
    LOGGER.debug("Initialising Smaart client via %s transport", settings.transport)
    manager = ConnectionManager(
        settings,
        transport_factory=_transport_factory(settings),
        on_status=_log_status,
    )
    await manager.config_updated(settings)
    return manager


async def serve_forever(settings: ClientSettings | None = None) -> None:
    """Start the client and keep the session alive until cancelled."""

    manager = await setup(settings)
    LOGGER.debug("%s actions available", len(ActionCatalogue(manager).list_actions()))
    try:
        await asyncio.Future()  # block until cancelled
    except asyncio.CancelledError:
        LOGGER.info("Client shutdown requested")
        raise
    finally:
        await manager.shutdown()


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Keep a control session open to a Smaart v3 API server.")
    parser.add_argument("--host", help="Smaart host (overrides SMAART_HOST / config file)")
    parser.add_argument("--port", help="Smaart API port (overrides SMAART_PORT / config file)")
    parser.add_argument("--password", help="Smaart API password")
    parser.add_argument("--transport", choices=("websocket", "dummy"))
    parser.add_argument("--log-level", choices=("debug", "info", "warning", "error", "critical"))
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    overrides = {
        key: value
        for key, value in {
            "host": args.host,
            "port": args.port,
            "password": args.password,
            "transport": args.transport,
            "log_level": args.log_level,
        }.items()
        if value is not None
    }
    settings = ClientSettings(**overrides)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(serve_forever(settings))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")
