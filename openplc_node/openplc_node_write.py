"""
OpenPLC node write translator.

Inbound command messages look like
    {"payload": {"register": "X" | "W", "byte": 0..99, "bit": 0..7, "value": ...}}

"X" writes a single coil at byte * 8 + bit, "W" writes a single holding
register at byte. Coil values must be a bool or 0/1, register values an
integer in 0..65535. Anything malformed or out of range is dropped without
an error; the reason is only logged at debug level.
"""

from typing import Any, Mapping, Optional

from .logger import get_logger
from .openplc_node_types import FunctionKind, RegisterKind, WriteIntent, WriteRequest

logger, _ = get_logger("openplc_node.write", use_buffer=True)

MAX_BYTE_INDEX = 99
MAX_BIT_INDEX = 7
MAX_REGISTER_VALUE = 0xFFFF


def _is_index(value: Any, upper: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= upper


def _is_write_value(register: RegisterKind, value: Any) -> bool:
    if register is RegisterKind.BIT:
        # bool, or 0/1
        return isinstance(value, bool) or _is_index(value, 1)
    return _is_index(value, MAX_REGISTER_VALUE)


def _drop(reason: str, payload: Any) -> None:
    logger.debug("Dropping write command (%s): %r", reason, payload)


def parse_write_intent(msg: Any) -> Optional[WriteIntent]:
    """Validate an inbound command message. Returns None if it must be dropped."""
    if not isinstance(msg, Mapping) or "payload" not in msg:
        _drop("no payload", msg)
        return None
    payload = msg["payload"]
    if not isinstance(payload, Mapping):
        _drop("payload is not an object", payload)
        return None

    try:
        register = RegisterKind(payload.get("register"))
    except ValueError:
        _drop("unknown register", payload)
        return None

    byte = payload.get("byte")
    if not _is_index(byte, MAX_BYTE_INDEX):
        _drop("byte out of range", payload)
        return None

    # Bit is range checked for word writes too, but may be left out there
    bit = payload.get("bit")
    if bit is None and register is RegisterKind.WORD:
        bit = 0
    if not _is_index(bit, MAX_BIT_INDEX):
        _drop("bit out of range", payload)
        return None

    if payload.get("value") is None:
        _drop("missing value", payload)
        return None
    if not _is_write_value(register, payload["value"]):
        _drop("invalid value", payload)
        return None

    return WriteIntent(register=register, byte=byte, bit=bit, value=payload["value"])


def translate_write(intent: WriteIntent) -> WriteRequest:
    """Map a validated intent onto a single point Modbus write."""
    if intent.register is RegisterKind.BIT:
        return WriteRequest(
            function=FunctionKind.WRITE_SINGLE_COIL,
            address=intent.byte * 8 + intent.bit,
            value=intent.value,
        )
    return WriteRequest(
        function=FunctionKind.WRITE_SINGLE_REGISTER,
        address=intent.byte,
        value=intent.value,
    )


def write_request_from_message(msg: Any) -> Optional[WriteRequest]:
    intent = parse_write_intent(msg)
    if intent is None:
        return None
    return translate_write(intent)
