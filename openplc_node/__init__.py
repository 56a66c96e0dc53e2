"""
OpenPLC node control core.

Polls the digital (coil) and analog (holding register) output blocks of an
OpenPLC controller over Modbus, turns each read into an index aligned output
batch, forwards single point write commands and reports connection health
through a small status state machine.
"""

from .openplc_node_connection import ProtocolClientAdapter, PymodbusClientAdapter
from .openplc_node_errors import Classification, ErrorCategory, classify_error
from .openplc_node_plugin import OpenPLCNode
from .openplc_node_scheduler import PollingScheduler
from .openplc_node_status import (
    ACTIVE_STATUSES,
    POLLING_STATUSES,
    ConnectionStateMachine,
    ConnectionStatus,
    status_record,
)
from .openplc_node_transform import analog_batch, digital_batch
from .openplc_node_types import (
    FunctionKind,
    LifecycleEvent,
    OutputEvent,
    ReadRequest,
    RegisterKind,
    StatusRecord,
    WriteIntent,
    WriteRequest,
)
from .openplc_node_write import parse_write_intent, translate_write, write_request_from_message
from .plugin_config_decode import OpenPLCNodeConfig, PluginConfigError, PollConfig, ServerConfig

__version__ = "0.1"
__license__ = "MIT"

__all__ = [
    # Node
    "OpenPLCNode",

    # Adapters
    "ProtocolClientAdapter",
    "PymodbusClientAdapter",

    # Components
    "ConnectionStateMachine",
    "PollingScheduler",
    "classify_error",
    "digital_batch",
    "analog_batch",
    "parse_write_intent",
    "translate_write",
    "write_request_from_message",
    "status_record",

    # Types
    "ACTIVE_STATUSES",
    "POLLING_STATUSES",
    "Classification",
    "ConnectionStatus",
    "ErrorCategory",
    "FunctionKind",
    "LifecycleEvent",
    "OutputEvent",
    "ReadRequest",
    "RegisterKind",
    "StatusRecord",
    "WriteIntent",
    "WriteRequest",

    # Configuration
    "OpenPLCNodeConfig",
    "PluginConfigError",
    "PollConfig",
    "ServerConfig",
]
