import asyncio
import logging

import pytest

from smaart_control.config import ClientSettings
from smaart_control.network.events import TransportClosed
from smaart_control.network.manager import ConnectionManager
from smaart_control.network.session_state import ConnectionState
from smaart_control.network.transport.dummy import DummyTransport
from smaart_control.status import InstanceStatus

PROBE = {"sequenceNumber": 1, "action": "get"}


class _Factory:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.transports: list[DummyTransport] = []

    def __call__(self, url: str) -> DummyTransport:
        transport = DummyTransport(url, **self.kwargs)
        self.transports.append(transport)
        return transport


def _settings(**overrides) -> ClientSettings:
    values = {
        "host": "10.0.0.5",
        "port": "26000",
        "password": None,
        "keepalive_seconds": 0,
        "queue_interval_ms": 1,
    }
    values.update(overrides)
    return ClientSettings(**values)


async def _wait_for(predicate, *, timeout: float = 1.0, interval: float = 0.01) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


async def _connected(manager: ConnectionManager, factory: _Factory, password=None) -> DummyTransport:
    assert await manager.connect("10.0.0.5", "26000", password)
    assert await _wait_for(lambda: factory.transports and factory.transports[-1].sent)
    return factory.transports[-1]


@pytest.mark.asyncio
async def test_open_sends_handshake_probe_and_no_password_when_not_required():
    factory = _Factory()
    statuses = []
    manager = ConnectionManager(_settings(), factory, on_status=lambda s, m: statuses.append((s, m)))
    try:
        transport = await _connected(manager, factory, password="")
        assert transport.url == "ws://10.0.0.5:26000/api/v3/"
        assert transport.sent_payloads == [PROBE]
        assert manager.state is ConnectionState.READY

        transport.feed({"sequenceNumber": 1, "response": {"authenticationRequired": False}})
        await asyncio.sleep(0.05)

        assert manager.status == (InstanceStatus.OK, None)
        assert transport.sent_payloads == [PROBE]
        assert statuses == [(InstanceStatus.CONNECTING, None), (InstanceStatus.OK, None)]
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_authentication_required_sends_password_once():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory, password="secret")
        transport.feed({"sequenceNumber": 1, "response": {"authenticationRequired": True}})

        assert await _wait_for(lambda: len(transport.sent) == 2)
        await asyncio.sleep(0.05)

        assert len(transport.sent) == 2
        auth = transport.sent_payloads[1]
        assert auth["action"] == "set"
        assert auth["properties"] == [{"password": "secret"}]
        assert auth["sequenceNumber"] == 2
        assert manager.state is ConnectionState.AUTHENTICATING

        transport.feed({"sequenceNumber": 2, "response": {}})
        assert await _wait_for(lambda: manager.state is ConnectionState.READY)
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_authentication_required_without_password_reports_failure():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory, password=None)
        transport.feed({"sequenceNumber": 1, "response": {"authenticationRequired": True}})

        assert await _wait_for(lambda: manager.status == (InstanceStatus.AUTHENTICATION_FAILURE, "Password required"))
        assert transport.sent_payloads == [PROBE]
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_incorrect_password_is_auth_failure_without_reconnect(caplog):
    caplog.set_level(logging.DEBUG)
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory, password="wrong")
        transport.feed({"response": {"error": "incorect password"}})

        assert await _wait_for(
            lambda: manager.status == (InstanceStatus.AUTHENTICATION_FAILURE, "Incorrect Password")
        )
        assert not manager.session.reconnect.pending
        errors = [r for r in caplog.records if r.levelno == logging.ERROR and "incorect password" in r.getMessage()]
        assert errors
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_unknown_server_error_reports_warning(caplog):
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory)
        transport.feed({"sequenceNumber": 5, "response": {"error": "flux capacitor"}})

        assert await _wait_for(lambda: manager.status == (InstanceStatus.UNKNOWN_WARNING, "flux capacitor"))
        assert any(r.levelno == logging.WARNING and "flux capacitor" in r.getMessage() for r in caplog.records)
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_malformed_frame_keeps_session_alive():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory)
        transport.feed("{not json")

        assert await _wait_for(lambda: manager.status == (InstanceStatus.UNKNOWN_WARNING, "Parsing Error"))
        assert manager.state is ConnectionState.READY

        transport.feed({"sequenceNumber": 1, "response": {}})
        assert await _wait_for(lambda: manager.status == (InstanceStatus.OK, None))
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_unexpected_close_arms_exactly_one_reconnect_timer():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory)
        transport.drop(1006, "gone")

        assert await _wait_for(lambda: manager.session.reconnect.pending)
        assert manager.session.reconnect.delay == 10.0
        assert manager.state is ConnectionState.RECONNECT_PENDING
        assert manager.status == (InstanceStatus.CONNECTION_FAILURE, "Disconnected from Smaart")
        armed = manager.session.reconnect._task

        manager._on_close(1006, "gone again")

        assert manager.session.reconnect._task is armed
        assert manager.schedule_reconnect() is False
    finally:
        await manager.shutdown()
    assert not manager.session.reconnect.pending


@pytest.mark.asyncio
async def test_connect_failure_reports_and_schedules_reconnect():
    factory = _Factory(connect_error=OSError("connection refused"))
    statuses = []
    manager = ConnectionManager(_settings(), factory, on_status=lambda s, m: statuses.append((s, m)))
    try:
        assert await manager.connect("10.0.0.5", "26000")
        assert await _wait_for(lambda: manager.session.reconnect.pending)
        assert (InstanceStatus.CONNECTION_FAILURE, "connection refused") in statuses
        assert statuses[-1] == (InstanceStatus.CONNECTION_FAILURE, "Disconnected from Smaart")
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_reconnect_timer_reopens_session():
    factory = _Factory()
    manager = ConnectionManager(_settings(reconnect_delay_seconds=0.05), factory)
    try:
        first = await _connected(manager, factory, password="pw")
        manager.select_tab("Main")
        assert await _wait_for(lambda: len(first.sent) == 2)
        first.drop()

        assert await _wait_for(lambda: len(factory.transports) == 2 and factory.transports[1].sent)
        second = factory.transports[1]
        assert second.sent_payloads == [PROBE]
        assert manager.state is ConnectionState.READY
        assert manager.session.password == "pw"

        # sequence numbers restart with the new epoch
        manager.select_tab("Other")
        assert await _wait_for(lambda: len(second.sent) == 2)
        assert second.sent_payloads[1]["sequenceNumber"] == 2
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_single_attempt_reconnect_does_not_retry():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        assert await manager.connect("10.0.0.5", "26000", retry=False)
        assert await _wait_for(lambda: factory.transports and factory.transports[0].sent)
        factory.transports[0].drop()

        assert await _wait_for(lambda: manager.state is ConnectionState.CONNECTION_LOST)
        assert not manager.session.reconnect.pending
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_disconnect_cancels_timers_and_blocks_commands():
    factory = _Factory()
    manager = ConnectionManager(_settings(keepalive_seconds=0.05), factory)
    try:
        transport = await _connected(manager, factory)
        assert await _wait_for(lambda: manager.session.keepalive.pending)

        await manager.disconnect()

        assert not manager.session.keepalive.pending
        assert not manager.session.reconnect.pending
        assert manager.transport is None
        assert manager.state is ConnectionState.CLOSED
        sent_before = list(transport.sent)

        assert await manager.reset_avg() is False
        await asyncio.sleep(0.1)
        assert transport.sent == sent_before
        assert manager.schedule_reconnect(0.01) is False

        await manager.disconnect()  # idempotent
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_keepalive_probe_sent_when_idle():
    factory = _Factory()
    manager = ConnectionManager(_settings(keepalive_seconds=0.03), factory)
    try:
        transport = await _connected(manager, factory)
        assert await _wait_for(lambda: {"action": "get"} in transport.sent_payloads)
    finally:
        await manager.shutdown()
    assert not manager.session.keepalive.pending


@pytest.mark.asyncio
async def test_config_update_discards_queued_commands():
    factory = _Factory()
    manager = ConnectionManager(_settings(queue_interval_ms=200), factory)
    try:
        first = await _connected(manager, factory)
        pending = [manager.select_tab(f"tab-{i}") for i in range(3)]

        assert await manager.config_updated(_settings(host="10.0.0.6", queue_interval_ms=200))

        assert [await future for future in pending] == [False, False, False]
        assert await _wait_for(lambda: len(factory.transports) == 2 and factory.transports[1].sent)
        await asyncio.sleep(0.5)

        second = factory.transports[1]
        assert second.url == "ws://10.0.0.6:26000/api/v3/"
        assert second.sent_payloads == [PROBE]
        assert first.sent_payloads == [PROBE]
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_config_update_without_host_reports_bad_config():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        assert await manager.config_updated(_settings(host=None)) is False
        assert manager.status == (InstanceStatus.BAD_CONFIG, "Missing host or port")
        assert factory.transports == []
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_connect_precondition_violations_are_ignored(caplog):
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        assert await manager.connect(None, "26000") is False
        assert await manager.connect("10.0.0.5", "") is False
        assert await manager.connect("10.0.0.5", "not-a-port") is False
        assert factory.transports == []
        assert manager.state is ConnectionState.IDLE
        assert any("Cannot connect" in r.getMessage() for r in caplog.records)
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_events_from_replaced_transport_are_ignored():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        old = await _connected(manager, factory)
        await _connected(manager, factory)

        manager._handle_event(TransportClosed(old, 1006, "late"))

        assert not manager.session.reconnect.pending
        assert manager.state is ConnectionState.READY
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_command_api_payloads():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory)
        results = await asyncio.gather(
            manager.reset_avg(),
            manager.start_all_measurements("Main"),
            manager.generator_state(True),
            manager.set_generator_level(-12),
            manager.tracking_state(False),
            manager.issue_command("shift + E"),
            manager.capture_trace("Ref"),
            manager.rename_trace("New", "/traces/old.trc"),
        )
        assert all(results)

        payloads = transport.sent_payloads[1:]
        for payload in payloads:
            payload.pop("sequenceNumber")
        assert payloads == [
            {"action": "set", "target": "activeMeasurements", "properties": [{"runningAverage": 0}]},
            {
                "action": "set",
                "target": {"tabName": "Main", "measurementName": "allMeasurements"},
                "properties": [{"active": True}],
            },
            {"action": "set", "target": "signalGenerator", "properties": [{"active": True}]},
            {"action": "set", "target": "signalGenerator", "properties": [{"gain": -12}]},
            {
                "action": "set",
                "target": {"measurementName": "allTransferFunctionMeasurements"},
                "properties": [{"trackingDelay": False}],
            },
            {"action": "issueCommand", "properties": [{"keypress": "shift + E"}]},
            {"action": "capture", "properties": [{"traceName": "Ref"}]},
            {"action": "set", "target": {"traceFilePath": "/traces/old.trc"}, "properties": [{"name": "New"}]},
        ]
    finally:
        await manager.shutdown()


class _SlowCloseTransport(DummyTransport):
    async def close(self, code: int = 1000) -> None:
        await asyncio.sleep(0.1)
        await super().close(code)


@pytest.mark.asyncio
async def test_undecodable_binary_frame_is_a_parsing_warning():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory)
        transport.feed(b"\xff\xfe")

        assert await _wait_for(lambda: manager.status == (InstanceStatus.UNKNOWN_WARNING, "Parsing Error"))
        assert transport.is_open
        assert manager.state is ConnectionState.READY
        assert not manager.session.reconnect.pending
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_receive_error_closes_transport_before_reconnecting():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory)
        transport.fail(RuntimeError("socket exploded"))

        assert await _wait_for(lambda: manager.session.reconnect.pending)
        assert not transport.is_open
        assert manager.status == (InstanceStatus.CONNECTION_FAILURE, "Disconnected from Smaart")
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_disconnect_stops_reconnect_already_in_progress():
    transports = []

    def _factory(url):
        transport = _SlowCloseTransport(url)
        transports.append(transport)
        return transport

    manager = ConnectionManager(_settings(), _factory)
    try:
        assert await manager.connect("10.0.0.5", "26000")
        assert await _wait_for(lambda: transports and transports[0].sent)

        assert manager.schedule_reconnect(0.01)
        # the reconnect is now waiting on the slow close of the current transport
        await asyncio.sleep(0.03)
        await manager.disconnect()
        await asyncio.sleep(0.2)

        assert len(transports) == 1
        assert manager.session.closing is True
        assert manager.transport is None
        assert manager.state is ConnectionState.CLOSED
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_loosely_typed_handshake_reply_does_not_send_password():
    factory = _Factory()
    manager = ConnectionManager(_settings(), factory)
    try:
        transport = await _connected(manager, factory, password="secret")
        transport.feed({"sequenceNumber": True, "response": {"authenticationRequired": "yes"}})

        assert await _wait_for(lambda: manager.status == (InstanceStatus.UNKNOWN_WARNING, "Parsing Error"))
        assert transport.sent_payloads == [PROBE]
    finally:
        await manager.shutdown()


@pytest.mark.asyncio
async def test_config_update_applies_new_queue_interval():
    factory = _Factory()
    manager = ConnectionManager(_settings(queue_interval_ms=10), factory)
    try:
        assert manager.queue.interval == 0.01
        await manager.config_updated(_settings(queue_interval_ms=250))
        assert manager.queue.interval == 0.25
    finally:
        await manager.shutdown()
