from .logger import get_logger, shared_buffer_handler
from .bufferhandler import BufferHandler
from .formatter import JsonFormatter

__all__ = ["get_logger", "shared_buffer_handler", "BufferHandler", "JsonFormatter"]
