"""OpenPLC node protocol client adapters."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ConnectionException, ModbusException, ModbusIOException

from .logger import get_logger
from .openplc_node_errors import PORT_NOT_OPEN, TIMED_OUT
from .openplc_node_types import FunctionKind, LifecycleEvent, ReadRequest, WriteRequest

logger, _ = get_logger("openplc_node.connection", use_buffer=True)


class ProtocolClientAdapter(ABC):
    """
    Request/response service the node talks to.

    Lifecycle events are delivered to callbacks registered with on(). The
    ERROR event passes the error detail as its only argument, the other
    events pass nothing.
    """

    def __init__(self):
        self._listeners: Dict[LifecycleEvent, List[Callable[..., None]]] = {
            event: [] for event in LifecycleEvent
        }

    def on(self, event: LifecycleEvent, callback: Callable[..., None]) -> None:
        self._listeners[event].append(callback)

    def off(self, event: LifecycleEvent, callback: Callable[..., None]) -> None:
        if callback in self._listeners[event]:
            self._listeners[event].remove(callback)

    def emit(self, event: LifecycleEvent, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            callback(*args)

    @abstractmethod
    def is_client_alive(self) -> bool:
        """True if requests can be issued right now."""

    @abstractmethod
    async def read(self, request: ReadRequest) -> List[Any]:
        """Issue a block read. Returns the values, raises on failure."""

    @abstractmethod
    async def write(self, request: WriteRequest) -> None:
        """Issue a single point write. Raises on failure."""

    @abstractmethod
    def reconnect(self) -> None:
        """Drop the current connection and connect again in the background."""


class PymodbusClientAdapter(ProtocolClientAdapter):  # pylint: disable=too-many-instance-attributes
    """Modbus TCP adapter on top of pymodbus' asyncio client, with retry logic."""

    def __init__(self, host: str, port: int, timeout_ms: int):
        super().__init__()
        self.host = host
        self.port = port
        self.timeout = timeout_ms / 1000.0  # Convert to seconds

        # Retry configuration
        self.retry_delay_base = 2.0  # initial delay between attempts (seconds)
        self.retry_delay_max = 30.0  # maximum delay between attempts (seconds)
        self.retry_delay_current = self.retry_delay_base

        # is_connected is cleared on connection errors, forcing a full reconnect
        self.client: Optional[AsyncModbusTcpClient] = None
        self.is_connected = False
        self._closed = False
        self._connect_task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start connecting in the background. Needs a running event loop."""
        if self._closed:
            raise RuntimeError(f"Adapter for {self.host}:{self.port} is closed")
        if self._connect_task is not None and not self._connect_task.done():
            return
        self._connect_task = asyncio.get_running_loop().create_task(
            self.connect_with_retry(), name=f"OpenPLCConnect-{self.host}:{self.port}"
        )

    async def connect_with_retry(self) -> bool:
        """
        Connect with unbounded retries and limited exponential backoff.

        Returns:
            True if connected, False if the adapter was closed first
        """
        retry_count = 0
        self.emit(LifecycleEvent.INITIALIZING)

        while not self._closed:
            if self.client is None:
                self.client = AsyncModbusTcpClient(
                    self.host, port=self.port, timeout=self.timeout, reconnect_delay=0
                )
            try:
                connected = await self.client.connect()
            except (OSError, ModbusException) as e:
                logger.error("Connection attempt %d to %s:%d failed: %s",
                             retry_count + 1, self.host, self.port, e)
                connected = False

            if connected:
                logger.info("Connected to %s:%d (attempt %d)", self.host, self.port, retry_count + 1)
                self.is_connected = True
                self.retry_delay_current = self.retry_delay_base
                self.emit(LifecycleEvent.CONNECTED)
                return True

            retry_count += 1
            if retry_count == 1:
                logger.warning("Failed to connect to %s:%d, starting retry attempts...", self.host, self.port)
                self.emit(LifecycleEvent.ERROR, f"Connection to {self.host}:{self.port} failed")
            elif retry_count % 10 == 0:
                logger.warning("Connection attempt %d failed, continuing retries...", retry_count)

            self._drop_client()
            await asyncio.sleep(min(self.retry_delay_current, self.retry_delay_max))
            self.retry_delay_current = min(self.retry_delay_current * 1.5, self.retry_delay_max)

        return False

    def is_client_alive(self) -> bool:
        self._check_health()
        return self.client is not None and self.client.connected and self.is_connected

    def _check_health(self) -> None:
        """
        Detect a socket dropped by the server while we still think we are
        connected. Both is_connected and client.connected must hold; when only
        the flag does, the client is discarded and a full reconnect started.
        """
        if not self.is_connected or self._closed:
            return
        if self.client is not None and self.client.connected:
            return

        logger.warning("Connection to %s:%d lost, forcing reconnection", self.host, self.port)
        self.is_connected = False
        self.emit(LifecycleEvent.ERROR, PORT_NOT_OPEN)
        self.reconnect()

    def reconnect(self) -> None:
        if self._closed:
            return
        if self._connect_task is not None and not self._connect_task.done():
            logger.debug("Reconnect to %s:%d already in progress", self.host, self.port)
            return
        logger.info("Reconnecting to %s:%d", self.host, self.port)
        self.is_connected = False
        self._drop_client()
        self.start()

    async def read(self, request: ReadRequest) -> List[Any]:
        client = self._require_client()
        try:
            if request.function is FunctionKind.READ_COILS:
                response = await client.read_coils(
                    request.address, count=request.quantity, device_id=request.unit_id
                )
            elif request.function is FunctionKind.READ_HOLDING_REGISTERS:
                response = await client.read_holding_registers(
                    request.address, count=request.quantity, device_id=request.unit_id
                )
            else:
                raise ValueError(f"Unsupported read function: {request.function!r}")
        except ModbusIOException as e:
            raise TimeoutError(TIMED_OUT) from e

        if response.isError():
            raise ModbusException(f"read FC {int(request.function)} at {request.address} failed: {response}")

        self.emit(LifecycleEvent.ACTIVITY)
        if request.function is FunctionKind.READ_COILS:
            # Coil responses are padded to whole bytes
            return list(response.bits[:request.quantity])
        return list(response.registers)

    async def write(self, request: WriteRequest) -> None:
        client = self._require_client()
        try:
            # Values are type checked by the write translator, 0/1 coils become bools here
            if request.function is FunctionKind.WRITE_SINGLE_COIL:
                response = await client.write_coil(
                    request.address, bool(request.value), device_id=request.unit_id
                )
            elif request.function is FunctionKind.WRITE_SINGLE_REGISTER:
                response = await client.write_register(
                    request.address, request.value, device_id=request.unit_id
                )
            else:
                raise ValueError(f"Unsupported write function: {request.function!r}")
        except ModbusIOException as e:
            raise TimeoutError(TIMED_OUT) from e

        if response.isError():
            raise ModbusException(f"write FC {int(request.function)} at {request.address} failed: {response}")

        self.emit(LifecycleEvent.ACTIVITY)

    def close(self) -> None:
        """Stop reconnecting, close the connection and emit CLOSED."""
        if self._closed:
            return
        self._closed = True
        if self._connect_task is not None:
            self._connect_task.cancel()
            self._connect_task = None
        self.is_connected = False
        self._drop_client()
        logger.info("Disconnected from %s:%d", self.host, self.port)
        self.emit(LifecycleEvent.CLOSED)

    def _require_client(self) -> AsyncModbusTcpClient:
        if not self.is_client_alive():
            raise ConnectionException(PORT_NOT_OPEN)
        return self.client

    def _drop_client(self) -> None:
        if self.client is None:
            return
        try:
            self.client.close()
        except (OSError, ModbusException) as e:
            logger.warning("Error closing client for %s:%d: %s", self.host, self.port, e)
        self.client = None
