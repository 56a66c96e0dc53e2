import logging
import sys
from .formatter import JsonFormatter
from .bufferhandler import BufferHandler

# Single buffer shared by every logger created with use_buffer=True
shared_buffer_handler = BufferHandler()
shared_buffer_handler.setFormatter(JsonFormatter())


def get_logger(name: str = "openplc_node", use_buffer: bool = False):
    """Return a logger with JSON output and, optionally, the shared buffer handler."""
    node_logger = logging.getLogger(name)
    node_logger.setLevel(logging.DEBUG)
    node_logger.propagate = False

    # Always ensure a StreamHandler exists
    if not any(isinstance(h, logging.StreamHandler) for h in node_logger.handlers):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(JsonFormatter())
        node_logger.addHandler(stream_handler)

    if use_buffer and shared_buffer_handler not in node_logger.handlers:
        node_logger.addHandler(shared_buffer_handler)

    return node_logger, shared_buffer_handler
