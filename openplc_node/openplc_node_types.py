"""OpenPLC node type definitions."""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, List, Optional

# The node always addresses a single unit on the bus
DEFAULT_UNIT_ID = 1


class FunctionKind(IntEnum):
    """Modbus function codes used by the node."""
    READ_COILS = 1
    READ_HOLDING_REGISTERS = 3
    WRITE_SINGLE_COIL = 5
    WRITE_SINGLE_REGISTER = 6


class RegisterKind(Enum):
    """Register selector of an inbound write command."""
    BIT = "X"
    WORD = "W"


class LifecycleEvent(Enum):
    """Lifecycle events emitted by a protocol client adapter."""
    INITIALIZING = "initializing"
    CONNECTED = "connected"
    ACTIVITY = "activity"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(frozen=True)
class ReadRequest:
    """Block read of coils or holding registers."""
    function: FunctionKind
    address: int
    quantity: int
    unit_id: int = DEFAULT_UNIT_ID


@dataclass(frozen=True)
class WriteIntent:
    """Validated write command, before address translation."""
    register: RegisterKind
    byte: int
    bit: int
    value: Any


@dataclass(frozen=True)
class WriteRequest:
    """Single point write of a coil or holding register."""
    function: FunctionKind
    address: int
    value: Any
    unit_id: int = DEFAULT_UNIT_ID
    quantity: int = 1


@dataclass(frozen=True)
class OutputEvent:
    """One position of an output batch. A None payload is a placeholder."""
    payload: Optional[Any] = None


OutputBatch = List[OutputEvent]


@dataclass(frozen=True)
class StatusRecord:
    """Observable status: fill colour, shape and label text."""
    fill: str
    shape: str
    text: str
