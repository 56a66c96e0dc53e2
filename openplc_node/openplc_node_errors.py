"""
Error classification for the OpenPLC node.

Every read, write or adapter error is mapped onto one of a closed set of
categories. The classification carries the status the node should show and
the side effects to apply; the classifier itself never retries anything.
Recovery happens on the next poll tick once the adapter is healthy again.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pymodbus.exceptions import ConnectionException

from .openplc_node_status import ConnectionStatus

# Error texts reported by the protocol client
TIMED_OUT = "Timed out"
FSM_NOT_READY_TO_READ = "FSM Not Ready To Read"
PORT_NOT_OPEN = "Port Not Open"


class ErrorCategory(Enum):
    TIMEOUT = "timeout"
    PROTOCOL_NOT_READY = "protocol not ready"
    CONNECTION_LOST = "connection lost"
    OTHER = "other"


@dataclass(frozen=True)
class Classification:
    category: ErrorCategory
    status: ConnectionStatus
    detail: str
    latch_timeout: bool = False
    request_reconnect: bool = False


def error_detail(error: Any) -> str:
    """Best effort text of an error object or message."""
    if isinstance(error, str):
        return error
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    text = str(error)
    return text if text else type(error).__name__


def classify_error(error: Any) -> Optional[Classification]:
    """
    Map a raw error onto a Classification.

    Args:
        error: Exception instance, error message string or None

    Returns:
        Classification, or None when there is no error
    """
    if error is None:
        return None

    detail = error_detail(error)
    text = detail.strip().lower()

    if isinstance(error, (TimeoutError, asyncio.TimeoutError)) or text == TIMED_OUT.lower():
        return Classification(ErrorCategory.TIMEOUT, ConnectionStatus.TIMEOUT, detail, latch_timeout=True)
    if text == FSM_NOT_READY_TO_READ.lower():
        return Classification(ErrorCategory.PROTOCOL_NOT_READY, ConnectionStatus.NOT_READY_TO_READ, detail)
    if isinstance(error, ConnectionException) or text == PORT_NOT_OPEN.lower():
        return Classification(
            ErrorCategory.CONNECTION_LOST, ConnectionStatus.RECONNECTING, detail, request_reconnect=True
        )
    return Classification(ErrorCategory.OTHER, ConnectionStatus.ERROR, detail)
