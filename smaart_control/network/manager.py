"""Connection manager for the Smaart v3 remote API.

This layer is responsible for:
- Transport lifecycle (connect, disconnect, fixed-backoff reconnect)
- Turning transport activity into tagged events handled in one ordered loop
- Interpreting inbound frames (server errors, authentication handshake)
- Building command payloads and handing them to the command queue

It never raises transport failures to callers; they surface as status reports.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Dict, Optional, Tuple, Union

from smaart_control.config import ClientSettings
from smaart_control.network.command_queue import CommandQueue
from smaart_control.network.events import (
    FrameReceived,
    TransportClosed,
    TransportEvent,
    TransportFailed,
    TransportOpened,
)
from smaart_control.network.sequence import HANDSHAKE_SEQUENCE
from smaart_control.network.session import Session, build_url
from smaart_control.network.session_state import ConnectionState
from smaart_control.network.transport.base import (
    ABNORMAL_CLOSURE,
    BaseTransport,
    TransportClosedError,
    TransportNotConnected,
    TransportState,
)
from smaart_control.network.transport.websocket import WebSocketTransport
from smaart_control.protocol.codec import Malformed, Parsed, decode_frame, encode_payload
from smaart_control.protocol.errors import lookup_error
from smaart_control.protocol.models import CommandRequest, TargetSelector
from smaart_control.status import InstanceStatus, StatusSink, StatusTracker

LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[str], BaseTransport]

DISCONNECT_MESSAGE = "Disconnected from Smaart"


class ConnectionManager:
    """Owns one Smaart session and drives its connect/monitor/reconnect cycle."""

    def __init__(
        self,
        settings: ClientSettings,
        transport_factory: Optional[TransportFactory] = None,
        *,
        on_status: Optional[StatusSink] = None,
        status_tracker: Optional[StatusTracker] = None,
    ) -> None:
        self._settings = settings
        self._transport_factory = transport_factory or self._websocket_factory
        self._status = status_tracker or StatusTracker(on_status)
        self.session = Session()
        self._queue = CommandQueue(
            self._transmit,
            sequence=self.session.sequence,
            interval=settings.queue_interval_ms / 1000.0,
            on_sent=self._arm_keepalive,
        )
        self._events: asyncio.Queue[TransportEvent] = asyncio.Queue()
        self._consumer_task: Optional[asyncio.Task[None]] = None
        self._pump_task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------ properties

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def state(self) -> ConnectionState:
        return self.session.state

    @property
    def status(self) -> Optional[Tuple[InstanceStatus, Optional[str]]]:
        return self._status.last

    @property
    def queue(self) -> CommandQueue:
        return self._queue

    @property
    def transport(self) -> Optional[BaseTransport]:
        return self.session.transport

    @property
    def is_connected(self) -> bool:
        transport = self.session.transport
        return transport is not None and transport.is_open

    # ------------------------------------------------------------------ lifecycle

    async def connect(
        self,
        host: Optional[str],
        port: Union[str, int, None],
        password: Optional[str] = None,
        *,
        retry: bool = True,
    ) -> bool:
        """Open a new transport to ``host:port``, replacing any existing one."""

        if not host or not port:
            LOGGER.error("Cannot connect to Smaart: host and port must be configured")
            return False
        try:
            url = build_url(host, port)
        except ValueError as exc:
            LOGGER.error("Cannot connect to Smaart: invalid port %r (%s)", port, exc)
            return False

        await self.disconnect()

        session = self.session
        session.host = host
        session.port = str(port)
        session.password = password
        session.closing = False
        session.retry = retry
        session.reconnect.cancel()
        session.sequence.reset()
        session.move_to(ConnectionState.CONNECTING)
        self._status.report(InstanceStatus.CONNECTING)

        transport = self._transport_factory(url)
        session.transport = transport
        self._ensure_consumer()
        self._pump_task = asyncio.create_task(self._pump(transport), name="transport-pump")
        LOGGER.info("Connecting to %s", url)
        return True

    async def disconnect(self) -> None:
        """Close the transport on purpose; safe to call when already disconnected."""

        session = self.session
        session.closing = True
        session.reconnect.cancel()
        session.keepalive.cancel()
        self._queue.clear()

        transport = session.transport
        pump = self._pump_task
        self._pump_task = None
        if transport is not None and transport.state in (TransportState.CONNECTING, TransportState.OPEN):
            try:
                await transport.close()
            except Exception:  # noqa: BLE001
                LOGGER.debug("Suppress transport close error", exc_info=True)
        session.transport = None
        if pump and not pump.done():
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
        if session.state not in (ConnectionState.IDLE, ConnectionState.CLOSED):
            session.move_to(ConnectionState.CLOSED)

    def schedule_reconnect(self, delay: Optional[float] = None, retry: bool = True) -> bool:
        """Arm the reconnect timer unless one is already pending.

        With ``retry=False`` only a single attempt is made: losing that
        connection again does not schedule another one.
        """

        session = self.session
        if session.closing:
            LOGGER.debug("Reconnect suppressed; session is closing")
            return False
        if session.reconnect.pending:
            return False
        delay = self._settings.reconnect_delay_seconds if delay is None else float(delay)
        LOGGER.info("Attempting to reconnect in %s seconds.", delay)
        session.reconnect.arm(delay, lambda: self._reconnect(retry))
        if session.tracker.can_transition(ConnectionState.RECONNECT_PENDING):
            session.move_to(ConnectionState.RECONNECT_PENDING)
        return True

    async def shutdown(self) -> None:
        """Tear down everything; nothing keeps running until the next connect."""

        LOGGER.debug("Shutting down Smaart connection")
        self.session.reconnect.cancel()
        self.session.keepalive.cancel()
        self._queue.clear()
        await self.disconnect()
        consumer = self._consumer_task
        self._consumer_task = None
        if consumer and not consumer.done():
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
        await self._queue.close()
        self._status.report(InstanceStatus.DISCONNECTED)

    async def config_updated(self, settings: ClientSettings) -> bool:
        """Apply new settings: drop queued work, then reconnect if possible."""

        self._settings = settings
        self._queue.clear()
        self._queue.interval = settings.queue_interval_ms / 1000.0
        self._status.report(InstanceStatus.CONNECTING)
        await self.disconnect()
        if not settings.is_configured:
            LOGGER.warning("Smaart host and port must be configured before connecting")
            self._status.report(InstanceStatus.BAD_CONFIG, "Missing host or port")
            return False
        return await self.connect(settings.host, settings.port, settings.password)

    async def _reconnect(self, retry: bool) -> None:
        session = self.session
        await self.connect(session.host, session.port, session.password, retry=retry)

    # ------------------------------------------------------------------ transport events

    def _websocket_factory(self, url: str) -> BaseTransport:
        return WebSocketTransport(url, open_timeout=self._settings.connect_timeout_seconds)

    def _ensure_consumer(self) -> None:
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = asyncio.create_task(self._consume(), name="transport-events")

    async def _pump(self, transport: BaseTransport) -> None:
        try:
            await transport.connect()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            await self._abandon(transport, exc)
            return
        self._events.put_nowait(TransportOpened(transport))
        while True:
            try:
                raw = await transport.receive()
            except asyncio.CancelledError:
                raise
            except TransportClosedError as exc:
                self._events.put_nowait(TransportClosed(transport, exc.code, exc.reason))
                return
            except Exception as exc:  # noqa: BLE001
                await self._abandon(transport, exc)
                return
            self._events.put_nowait(FrameReceived(transport, raw))

    async def _abandon(self, transport: BaseTransport, exc: Exception) -> None:
        # the socket must not outlive the events reporting it as lost
        self._events.put_nowait(TransportFailed(transport, exc))
        if transport.state in (TransportState.CONNECTING, TransportState.OPEN):
            try:
                await transport.close()
            except Exception:  # noqa: BLE001
                LOGGER.debug("Suppress transport close error", exc_info=True)
        self._events.put_nowait(TransportClosed(transport, ABNORMAL_CLOSURE, str(exc)))

    async def _consume(self) -> None:
        while True:
            event = await self._events.get()
            try:
                self._handle_event(event)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Failed to handle %s", type(event).__name__)

    def _handle_event(self, event: TransportEvent) -> None:
        if event.transport is not self.session.transport:
            LOGGER.debug("Ignoring %s from a replaced transport", type(event).__name__)
            return
        if isinstance(event, TransportOpened):
            self._on_open()
        elif isinstance(event, TransportFailed):
            self._on_error(event.error)
        elif isinstance(event, TransportClosed):
            self._on_close(event.code, event.reason)
        elif isinstance(event, FrameReceived):
            self._on_frame(event.raw)
        else:
            raise TypeError(f"Unhandled transport event {event!r}")

    def _on_open(self) -> None:
        self.session.move_to(ConnectionState.READY)
        self._status.report(InstanceStatus.OK)
        LOGGER.info("Connected to ws://%s:%s/", self.session.host, self.session.port)
        self._queue.enqueue(CommandRequest(action="get", sequence_number=HANDSHAKE_SEQUENCE))

    def _on_error(self, error: Exception) -> None:
        LOGGER.error("Smaart transport error: %s", error)
        self._status.report(InstanceStatus.CONNECTION_FAILURE, str(error) or type(error).__name__)

    def _on_close(self, code: int, reason: str) -> None:
        session = self.session
        LOGGER.warning("Socket closed %s %s", code, reason)
        session.keepalive.cancel()
        if session.closing:
            return
        self._status.report(InstanceStatus.CONNECTION_FAILURE, DISCONNECT_MESSAGE)
        if session.state is not ConnectionState.RECONNECT_PENDING:
            session.move_to(ConnectionState.CONNECTION_LOST)
        if not session.retry:
            LOGGER.warning("Connection to Smaart lost; not retrying")
            return
        self.schedule_reconnect(self._settings.reconnect_delay_seconds)

    def _on_frame(self, raw: Union[str, bytes]) -> None:
        result = decode_frame(raw)
        if isinstance(result, Malformed):
            self._status.report(InstanceStatus.UNKNOWN_WARNING, "Parsing Error")
            LOGGER.warning("Parsing error. Message: %s. Error: %s", result.raw, result.cause)
            return
        assert isinstance(result, Parsed)
        message = result.message
        if message.response.error is not None:
            self._on_server_error(message.response.error)
            return

        self._status.report(InstanceStatus.OK)
        session = self.session
        if session.state is ConnectionState.AUTHENTICATING:
            session.move_to(ConnectionState.READY)
        if message.sequence_number == HANDSHAKE_SEQUENCE and message.response.authentication_required:
            self._authenticate()

    def _on_server_error(self, error: str) -> None:
        descriptor = lookup_error(error)
        if descriptor is None:
            LOGGER.warning("Unknown error reported by Smaart: %s", error)
            self._status.report(InstanceStatus.UNKNOWN_WARNING, error)
            return
        LOGGER.log(descriptor.log_level, "Smaart reported '%s': %s", descriptor.id, descriptor.description)
        self._status.report(descriptor.status, descriptor.status_description)

    def _authenticate(self) -> None:
        password = self.session.password
        if not password:
            LOGGER.error("Smaart requires a password but none is configured")
            self._status.report(InstanceStatus.AUTHENTICATION_FAILURE, "Password required")
            return
        LOGGER.info("Authenticating")
        self.session.move_to(ConnectionState.AUTHENTICATING)
        self._queue.enqueue(CommandRequest(action="set", properties=[{"password": password}]))

    # ------------------------------------------------------------------ outbound

    async def _transmit(self, payload: Dict[str, Any]) -> bool:
        transport = self.session.transport
        if transport is None or not transport.is_open:
            LOGGER.error("Not connected! Dropping %s request", payload.get("action"))
            return False
        try:
            await transport.send(encode_payload(payload))
        except (TransportClosedError, TransportNotConnected) as exc:
            LOGGER.warning("Failed to send %s request: %s", payload.get("action"), exc)
            return False
        return True

    def _arm_keepalive(self) -> None:
        delay = self._settings.keepalive_seconds
        if not delay or self.session.closing:
            return
        self.session.keepalive.arm(delay, self._send_keepalive)

    async def _send_keepalive(self) -> None:
        if not self.is_connected:
            return
        LOGGER.debug("Sending keep-alive probe")
        self._queue.enqueue(CommandRequest(action="get"), sequenced=False)

    # ------------------------------------------------------------------ command API

    def send_command(self, request: CommandRequest) -> asyncio.Future[bool]:
        return self._queue.enqueue(request)

    def reset_avg(self) -> asyncio.Future[bool]:
        """Reset running averages of the active measurements."""

        return self.send_command(
            CommandRequest(action="set", target="activeMeasurements", properties=[{"runningAverage": 0}])
        )

    def select_tab(self, tab_name: str) -> asyncio.Future[bool]:
        return self.send_command(CommandRequest(action="set", target="tabs", properties=[{"activeTab": tab_name}]))

    def start_all_measurements(self, tab_name: str) -> asyncio.Future[bool]:
        """Start every measurement on ``tab_name``."""

        return self.send_command(
            CommandRequest(
                action="set",
                target=TargetSelector(tab_name=tab_name, measurement_name="allMeasurements"),
                properties=[{"active": True}],
            )
        )

    def generator_state(self, active: bool) -> asyncio.Future[bool]:
        return self.send_command(
            CommandRequest(action="set", target="signalGenerator", properties=[{"active": bool(active)}])
        )

    def set_generator_level(self, level: float) -> asyncio.Future[bool]:
        """Set the signal generator gain in dB FS."""

        return self.send_command(CommandRequest(action="set", target="signalGenerator", properties=[{"gain": level}]))

    def tracking_state(self, active: bool) -> asyncio.Future[bool]:
        """Turn delay tracking on or off for every transfer function measurement."""

        return self.send_command(
            CommandRequest(
                action="set",
                target=TargetSelector(measurement_name="allTransferFunctionMeasurements"),
                properties=[{"trackingDelay": bool(active)}],
            )
        )

    def issue_command(self, keypress: str) -> asyncio.Future[bool]:
        """Send a keyboard shortcut, e.g. ``"shift + command + H"``."""

        request = CommandRequest(action="issueCommand", properties=[{"keypress": keypress}])
        LOGGER.debug("issueCommand: %s", request.to_payload())
        return self.send_command(request)

    def capture_trace(self, trace_name: str) -> asyncio.Future[bool]:
        return self.send_command(CommandRequest(action="capture", properties=[{"traceName": trace_name}]))

    def rename_trace(self, trace_name: str, trace_file_path: str) -> asyncio.Future[bool]:
        """Rename the stored trace at ``trace_file_path`` to ``trace_name``."""

        return self.send_command(
            CommandRequest(
                action="set",
                target=TargetSelector(trace_file_path=trace_file_path),
                properties=[{"name": trace_name}],
            )
        )
