# tests/pytest/openplc_node/test_openplc_node_connection.py
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymodbus.exceptions import ConnectionException, ModbusException, ModbusIOException

from openplc_node.openplc_node_connection import PymodbusClientAdapter
from openplc_node.openplc_node_types import FunctionKind, LifecycleEvent, ReadRequest, WriteRequest

MODULE = "openplc_node.openplc_node_connection"


@pytest.fixture
def fake_modbus_client(monkeypatch):
    """Patch AsyncModbusTcpClient to avoid real network activity."""
    mock_client = MagicMock()
    mock_client.connected = True
    mock_client.connect = AsyncMock(return_value=True)
    mock_client.close.return_value = None
    monkeypatch.setattr(f"{MODULE}.AsyncModbusTcpClient", lambda *a, **kw: mock_client)
    return mock_client


@pytest.fixture
def adapter():
    plc_adapter = PymodbusClientAdapter("127.0.0.1", 1502, 2000)
    plc_adapter.retry_delay_current = 0.0
    return plc_adapter


@pytest.fixture
def events(adapter):
    seen = []
    for event in LifecycleEvent:
        adapter.on(event, lambda *args, _event=event: seen.append((_event, args)))
    return seen


def ok_response(**fields):
    response = MagicMock()
    response.isError.return_value = False
    for name, value in fields.items():
        setattr(response, name, value)
    return response


async def connected(adapter):
    assert await adapter.connect_with_retry() is True
    return adapter


# ---------------------------------------------------------------------
# CONNECT
# ---------------------------------------------------------------------
@pytest.mark.asyncio
async def test_connect_with_retry_success(adapter, fake_modbus_client, events):
    await connected(adapter)
    assert adapter.is_connected is True
    assert adapter.is_client_alive()
    fake_modbus_client.connect.assert_awaited()
    assert [e for e, _ in events] == [LifecycleEvent.INITIALIZING, LifecycleEvent.CONNECTED]


@pytest.mark.asyncio
async def test_connect_retries_until_success(adapter, fake_modbus_client, events):
    fake_modbus_client.connect.side_effect = [False, False, True]
    await connected(adapter)
    assert fake_modbus_client.connect.await_count == 3
    errors = [args for e, args in events if e is LifecycleEvent.ERROR]
    assert errors == [("Connection to 127.0.0.1:1502 failed",)]
    assert events[-1][0] is LifecycleEvent.CONNECTED


@pytest.mark.asyncio
async def test_connect_stops_when_closed(adapter, fake_modbus_client):
    adapter.close()
    assert await adapter.connect_with_retry() is False
    fake_modbus_client.connect.assert_not_awaited()


def test_not_alive_before_connect(adapter):
    assert adapter.is_client_alive() is False


# ---------------------------------------------------------------------
# READ / WRITE
# ---------------------------------------------------------------------
@pytest.mark.asyncio
async def test_read_coils_truncates_padding(adapter, fake_modbus_client, events):
    await connected(adapter)
    fake_modbus_client.read_coils = AsyncMock(
        return_value=ok_response(bits=[True, False, True, False, False, False, False, False])
    )
    values = await adapter.read(ReadRequest(FunctionKind.READ_COILS, address=4, quantity=3))

    assert values == [True, False, True]
    fake_modbus_client.read_coils.assert_awaited_with(4, count=3, device_id=1)
    assert events[-1][0] is LifecycleEvent.ACTIVITY


@pytest.mark.asyncio
async def test_read_holding_registers(adapter, fake_modbus_client):
    await connected(adapter)
    fake_modbus_client.read_holding_registers = AsyncMock(return_value=ok_response(registers=[17, 18]))
    values = await adapter.read(ReadRequest(FunctionKind.READ_HOLDING_REGISTERS, address=0, quantity=2))

    assert values == [17, 18]
    fake_modbus_client.read_holding_registers.assert_awaited_with(0, count=2, device_id=1)


@pytest.mark.asyncio
async def test_read_io_error_becomes_timeout(adapter, fake_modbus_client):
    await connected(adapter)
    fake_modbus_client.read_coils = AsyncMock(side_effect=ModbusIOException("no response"))
    with pytest.raises(TimeoutError, match="Timed out"):
        await adapter.read(ReadRequest(FunctionKind.READ_COILS, address=0, quantity=1))


@pytest.mark.asyncio
async def test_read_exception_response_raises(adapter, fake_modbus_client):
    await connected(adapter)
    response = MagicMock()
    response.isError.return_value = True
    fake_modbus_client.read_holding_registers = AsyncMock(return_value=response)
    with pytest.raises(ModbusException):
        await adapter.read(ReadRequest(FunctionKind.READ_HOLDING_REGISTERS, address=0, quantity=1))


@pytest.mark.asyncio
async def test_read_without_connection_raises_port_not_open(adapter):
    with pytest.raises(ConnectionException, match="Port Not Open"):
        await adapter.read(ReadRequest(FunctionKind.READ_COILS, address=0, quantity=1))


@pytest.mark.asyncio
async def test_write_coil_and_register(adapter, fake_modbus_client):
    await connected(adapter)
    fake_modbus_client.write_coil = AsyncMock(return_value=ok_response())
    fake_modbus_client.write_register = AsyncMock(return_value=ok_response())

    await adapter.write(WriteRequest(FunctionKind.WRITE_SINGLE_COIL, address=29, value=1))
    await adapter.write(WriteRequest(FunctionKind.WRITE_SINGLE_REGISTER, address=7, value=300))

    fake_modbus_client.write_coil.assert_awaited_with(29, True, device_id=1)
    fake_modbus_client.write_register.assert_awaited_with(7, 300, device_id=1)


@pytest.mark.asyncio
async def test_write_error_response_raises(adapter, fake_modbus_client):
    await connected(adapter)
    response = MagicMock()
    response.isError.return_value = True
    fake_modbus_client.write_coil = AsyncMock(return_value=response)
    with pytest.raises(ModbusException):
        await adapter.write(WriteRequest(FunctionKind.WRITE_SINGLE_COIL, address=0, value=True))


# ---------------------------------------------------------------------
# RECONNECT / CLOSE
# ---------------------------------------------------------------------
@pytest.mark.asyncio
async def test_reconnect_drops_client_and_connects_again(adapter, fake_modbus_client, events):
    await connected(adapter)
    adapter.reconnect()
    assert adapter.is_connected is False
    fake_modbus_client.close.assert_called()

    await adapter._connect_task
    assert adapter.is_client_alive()
    assert [e for e, _ in events].count(LifecycleEvent.CONNECTED) == 2


@pytest.mark.asyncio
async def test_reconnect_is_noop_while_connecting(adapter, fake_modbus_client):
    gate = asyncio.Event()

    async def slow_connect():
        await gate.wait()
        return True

    fake_modbus_client.connect = AsyncMock(side_effect=slow_connect)
    adapter.start()
    task = adapter._connect_task
    await asyncio.sleep(0)

    adapter.reconnect()
    assert adapter._connect_task is task

    gate.set()
    await task
    assert fake_modbus_client.connect.await_count == 1


@pytest.mark.asyncio
async def test_close_emits_closed_once(adapter, fake_modbus_client, events):
    await connected(adapter)
    adapter.close()
    adapter.close()

    assert [e for e, _ in events].count(LifecycleEvent.CLOSED) == 1
    assert adapter.client is None
    assert not adapter.is_client_alive()
    adapter.reconnect()
    assert adapter._connect_task is None


def test_off_removes_listener(adapter):
    seen = []
    adapter.on(LifecycleEvent.ACTIVITY, seen.append)
    adapter.off(LifecycleEvent.ACTIVITY, seen.append)
    adapter.emit(LifecycleEvent.ACTIVITY)
    assert seen == []


# ---------------------------------------------------------------------
# DROPPED CONNECTION
# ---------------------------------------------------------------------
def server_comes_back(fake_modbus_client):
    async def connect():
        fake_modbus_client.connected = True
        return True
    return AsyncMock(side_effect=connect)


@pytest.mark.asyncio
async def test_dropped_socket_forces_reconnect(adapter, fake_modbus_client, events):
    await connected(adapter)
    fake_modbus_client.connected = False
    fake_modbus_client.connect = server_comes_back(fake_modbus_client)

    assert adapter.is_client_alive() is False
    assert adapter.is_connected is False
    assert (LifecycleEvent.ERROR, ("Port Not Open",)) in events
    fake_modbus_client.close.assert_called()

    await adapter._connect_task
    fake_modbus_client.connect.assert_awaited_once()
    assert adapter.is_client_alive()
    assert events[-1][0] is LifecycleEvent.CONNECTED


@pytest.mark.asyncio
async def test_dropped_socket_reported_once(adapter, fake_modbus_client, events):
    await connected(adapter)
    gate = asyncio.Event()

    async def slow_connect():
        await gate.wait()
        fake_modbus_client.connected = True
        return True

    fake_modbus_client.connected = False
    fake_modbus_client.connect = AsyncMock(side_effect=slow_connect)
    adapter.is_client_alive()
    adapter.is_client_alive()

    assert [e for e, _ in events].count(LifecycleEvent.ERROR) == 1
    gate.set()
    await adapter._connect_task
    assert fake_modbus_client.connect.await_count == 1


@pytest.mark.asyncio
async def test_node_recovers_after_server_drops_connection(adapter, fake_modbus_client):
    from openplc_node.openplc_node_plugin import OpenPLCNode
    from openplc_node.openplc_node_status import ConnectionStatus
    from openplc_node.plugin_config_decode import PollConfig

    config = PollConfig(digital_count=0, digital_offset=0, analog_count=0, analog_offset=0, period=0.01)
    node = OpenPLCNode(config, adapter)
    await connected(adapter)
    assert node.state.status is ConnectionStatus.CONNECTED

    fake_modbus_client.connected = False
    fake_modbus_client.connect = server_comes_back(fake_modbus_client)
    await asyncio.sleep(0.1)

    fake_modbus_client.connect.assert_awaited_once()
    assert node.state.status is ConnectionStatus.CONNECTED
    assert node.scheduler.is_running
    node.close()
    adapter.close()
