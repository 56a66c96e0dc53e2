"""
OpenPLC node connection status.

The state machine is the single owner of the node status. It applies the
timeout latch: once a timeout is seen, polling indicators are suppressed
until an active status is set again, so the node does not flicker between
"timeout" and "active" while the PLC keeps timing out.
"""

from enum import Enum
from typing import Callable, Optional

from .logger import get_logger
from .openplc_node_types import StatusRecord

logger, _ = get_logger("openplc_node.status", use_buffer=True)


class ConnectionStatus(Enum):
    WAITING = "waiting"
    INITIALIZING = "initializing"
    CONNECTED = "connected"
    ACTIVE = "active"
    POLLING = "polling"
    TIMEOUT = "timeout"
    NOT_READY_TO_READ = "not ready to read"
    RECONNECTING = "reconnecting"
    ERROR = "error"
    CLOSED = "closed"


ACTIVE_STATUSES = frozenset({ConnectionStatus.ACTIVE})
POLLING_STATUSES = frozenset({ConnectionStatus.POLLING})

# status -> (fill, shape, text)
_STATUS_PROPERTIES = {
    ConnectionStatus.WAITING: ("blue", "ring", "waiting ..."),
    ConnectionStatus.INITIALIZING: ("yellow", "dot", "initialize"),
    ConnectionStatus.CONNECTED: ("green", "dot", "connected"),
    ConnectionStatus.ACTIVE: ("green", "ring", "active"),
    ConnectionStatus.POLLING: ("green", "dot", "active"),
    ConnectionStatus.TIMEOUT: ("red", "ring", "timeout"),
    ConnectionStatus.NOT_READY_TO_READ: ("yellow", "ring", "not ready to read"),
    ConnectionStatus.RECONNECTING: ("yellow", "ring", "reconnect"),
    ConnectionStatus.ERROR: ("red", "dot", "error"),
    ConnectionStatus.CLOSED: ("black", "ring", "closed"),
}


def status_record(status: ConnectionStatus, detail: Optional[str] = None) -> StatusRecord:
    """Build the observable record for a status."""
    fill, shape, text = _STATUS_PROPERTIES[status]
    if status is ConnectionStatus.ERROR and detail:
        text = f"error: {detail}"
    return StatusRecord(fill=fill, shape=shape, text=text)


class ConnectionStateMachine:
    """Holds the current status and notifies on every accepted change."""

    def __init__(self, on_status: Optional[Callable[[StatusRecord], None]] = None, name: str = "node"):
        self.name = name
        self._on_status = on_status
        self.status = ConnectionStatus.WAITING
        self.detail: Optional[str] = None
        self.timeout_latched = False
        self._notify()

    @property
    def is_closed(self) -> bool:
        return self.status is ConnectionStatus.CLOSED

    @property
    def record(self) -> StatusRecord:
        return status_record(self.status, self.detail)

    def set_status(self, status: ConnectionStatus, detail: Optional[str] = None) -> bool:
        """
        Request a transition.

        Returns:
            True if the transition was accepted, False if it was suppressed
        """
        if self.is_closed and status is not ConnectionStatus.CLOSED:
            logger.debug("[%s] Ignoring %s, node is closed", self.name, status.value)
            return False

        if status in POLLING_STATUSES and self.timeout_latched:
            return False

        if status in ACTIVE_STATUSES or status in POLLING_STATUSES:
            self.timeout_latched = False

        if status is not ConnectionStatus.ERROR:
            detail = None

        if status is self.status and detail == self.detail:
            return True

        self.status = status
        self.detail = detail
        self._notify()
        return True

    def latch_timeout(self) -> None:
        if not self.is_closed:
            self.timeout_latched = True

    def _notify(self) -> None:
        record = self.record
        logger.info("[%s] Status: %s", self.name, record.text)
        if self._on_status is not None:
            self._on_status(record)
