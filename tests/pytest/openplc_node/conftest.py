# tests/pytest/openplc_node/conftest.py
import asyncio

import pytest
from unittest.mock import AsyncMock

from openplc_node.openplc_node_connection import ProtocolClientAdapter
from openplc_node.openplc_node_plugin import OpenPLCNode
from openplc_node.openplc_node_types import FunctionKind
from openplc_node.plugin_config_decode import PollConfig


class FakeAdapter(ProtocolClientAdapter):
    """In-memory adapter: reads and writes go to AsyncMocks."""

    def __init__(self):
        super().__init__()
        self.alive = True
        self.read_mock = AsyncMock(side_effect=self._default_read)
        self.write_mock = AsyncMock(return_value=None)
        self.reconnect_calls = 0

    @staticmethod
    async def _default_read(request):
        if request.function is FunctionKind.READ_COILS:
            return [True, False, True][:request.quantity]
        return [10, 20][:request.quantity]

    def is_client_alive(self):
        return self.alive

    async def read(self, request):
        return await self.read_mock(request)

    async def write(self, request):
        return await self.write_mock(request)

    def reconnect(self):
        self.reconnect_calls += 1


async def drain(node):
    """Wait until every request task started by the node has finished."""
    while node._in_flight:
        await asyncio.gather(*list(node._in_flight))


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def poll_config():
    # Long period so tests drive ticks by calling node.poll() themselves
    return PollConfig(digital_count=3, digital_offset=0, analog_count=2, analog_offset=100, period=10.0)


@pytest.fixture
def outputs():
    return []


@pytest.fixture
def statuses():
    return []


@pytest.fixture
def node(poll_config, fake_adapter, outputs, statuses):
    plc_node = OpenPLCNode(
        poll_config, fake_adapter, on_output=outputs.append, on_status=statuses.append, name="TestPLC"
    )
    yield plc_node
    plc_node.scheduler.stop()


@pytest.fixture
def drain_tasks():
    return drain
