"""
OpenPLC node: polls the output blocks of an OpenPLC controller over Modbus
TCP and forwards single point write commands to it.

Also holds the command line entry point, which loads a JSON node
configuration and runs one node until interrupted.
"""

import asyncio
import os
import sys
from typing import Any, Callable, Optional, Set

from dotenv import load_dotenv

from .logger import get_logger
from .openplc_node_connection import ProtocolClientAdapter, PymodbusClientAdapter
from .openplc_node_errors import classify_error
from .openplc_node_scheduler import PollingScheduler
from .openplc_node_status import ConnectionStateMachine, ConnectionStatus
from .openplc_node_transform import analog_batch, digital_batch
from .openplc_node_types import (
    FunctionKind,
    LifecycleEvent,
    OutputBatch,
    ReadRequest,
    StatusRecord,
    WriteRequest,
)
from .openplc_node_write import write_request_from_message
from .plugin_config_decode import OpenPLCNodeConfig, PollConfig

logger, _ = get_logger("openplc_node", use_buffer=True)


class OpenPLCNode:
    """
    Polls the digital and analog output blocks of an OpenPLC controller,
    forwards single point write commands and tracks connection health.

    The adapter is owned by the caller; the node only subscribes to its
    lifecycle events, issues requests and asks it to reconnect. All
    callbacks run on one asyncio event loop.
    """

    def __init__(
        self,
        poll_config: PollConfig,
        adapter: ProtocolClientAdapter,
        on_output: Optional[Callable[[OutputBatch], None]] = None,
        on_status: Optional[Callable[[StatusRecord], None]] = None,
        name: str = "OpenPLC",
    ):
        poll_config.validate()
        self.name = name
        self.poll_config = poll_config
        self.adapter = adapter
        self._on_output = on_output
        self.state = ConnectionStateMachine(on_status, name=name)
        self.scheduler = PollingScheduler(self.poll, name=name)
        self._in_flight: Set[asyncio.Task] = set()

        self._subscriptions = (
            (LifecycleEvent.INITIALIZING, self.on_initializing),
            (LifecycleEvent.CONNECTED, self.on_connected),
            (LifecycleEvent.ACTIVITY, self.on_activity),
            (LifecycleEvent.ERROR, self.on_error),
            (LifecycleEvent.CLOSED, self.on_closed),
        )
        for event, callback in self._subscriptions:
            adapter.on(event, callback)

    # ------------------------------------------------------------------
    # Adapter lifecycle events
    # ------------------------------------------------------------------
    def on_initializing(self) -> None:
        self.state.set_status(ConnectionStatus.INITIALIZING)

    def on_connected(self) -> None:
        if self.state.is_closed:
            return
        self.scheduler.start(self.poll_config.period)
        self.state.set_status(ConnectionStatus.CONNECTED)

    def on_activity(self) -> None:
        self.state.set_status(ConnectionStatus.ACTIVE)

    def on_error(self, error: Any = None) -> None:
        classification = self._apply_error(error)
        if classification is None or not classification.request_reconnect:
            self.scheduler.stop()

    def on_closed(self) -> None:
        self.scheduler.stop()
        self.state.set_status(ConnectionStatus.CLOSED)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------
    def poll(self) -> None:
        """One poll tick: issue the digital and analog reads independently."""
        if not self.adapter.is_client_alive():
            self.state.set_status(ConnectionStatus.WAITING)
            return

        config = self.poll_config
        if config.digital_count <= 0 and config.analog_count <= 0:
            return

        self.state.set_status(ConnectionStatus.POLLING)
        if config.digital_count > 0:
            self._spawn(self._read_digital(ReadRequest(
                function=FunctionKind.READ_COILS,
                address=config.digital_offset,
                quantity=config.digital_count,
            )))
        if config.analog_count > 0:
            self._spawn(self._read_analog(ReadRequest(
                function=FunctionKind.READ_HOLDING_REGISTERS,
                address=config.analog_offset,
                quantity=config.analog_count,
            )))

    async def _read_digital(self, request: ReadRequest) -> None:
        try:
            values = await self.adapter.read(request)
        except Exception as e:
            self._apply_error(e)
            return
        self.state.set_status(ConnectionStatus.ACTIVE)
        self._send(digital_batch(values, self.poll_config.digital_count))

    async def _read_analog(self, request: ReadRequest) -> None:
        try:
            values = await self.adapter.read(request)
        except Exception as e:
            self._apply_error(e)
            return
        self.state.set_status(ConnectionStatus.ACTIVE)
        self._send(analog_batch(values, self.poll_config.digital_count, self.poll_config.analog_count))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def handle_input(self, msg: Any) -> Optional[WriteRequest]:
        """
        Handle an inbound command message.

        Returns:
            The WriteRequest dispatched to the adapter, or None if the
            message was dropped
        """
        if self.state.is_closed or not self.adapter.is_client_alive():
            logger.debug("[%s] Dropping write command, no live client", self.name)
            return None

        request = write_request_from_message(msg)
        if request is None:
            return None

        self._spawn(self._write(request))
        return request

    async def _write(self, request: WriteRequest) -> None:
        try:
            await self.adapter.write(request)
        except Exception as e:
            self._apply_error(e)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Stop polling, detach from the adapter and mark the node closed."""
        self.scheduler.stop()
        for event, callback in self._subscriptions:
            self.adapter.off(event, callback)
        self.state.set_status(ConnectionStatus.CLOSED)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _apply_error(self, error: Any):
        classification = classify_error(error)
        if classification is None:
            return None

        logger.warning("[%s] %s error: %s", self.name, classification.category.value, classification.detail)
        self.state.set_status(classification.status, classification.detail)
        if classification.latch_timeout:
            self.state.latch_timeout()
        if classification.request_reconnect and not self.state.is_closed:
            self.adapter.reconnect()
        return classification

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    def _send(self, batch: OutputBatch) -> None:
        if self._on_output is not None and batch:
            self._on_output(batch)


async def run(config: OpenPLCNodeConfig) -> None:
    """Run one node against a Modbus TCP server until cancelled."""
    adapter = PymodbusClientAdapter(config.server.host, config.server.port, config.server.timeout_ms)
    node = OpenPLCNode(
        config.poll,
        adapter,
        on_output=lambda batch: logger.info(
            "[%s] Output: %s", config.name, [event.payload for event in batch]
        ),
        name=config.name,
    )
    adapter.start()
    try:
        await asyncio.Event().wait()
    finally:
        node.close()
        adapter.close()


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    load_dotenv(override=False)
    config_path = argv[0] if argv else os.getenv("OPENPLC_NODE_CONFIG")
    if not config_path:
        logger.error("Usage: python -m openplc_node <config.json> (or set OPENPLC_NODE_CONFIG)")
        return 2

    config = OpenPLCNodeConfig()
    config.import_config_from_file(config_path)
    config.validate()
    logger.info("Starting %r", config)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, node stopped")
    return 0
