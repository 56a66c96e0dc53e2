import json
from dataclasses import dataclass
from typing import Any, Dict

from openplc_node.logger import get_logger
from openplc_node.openplc_node_utils import calc_rate_by_unit, parse_count, parse_modbus_offset

from .plugin_config_contract import PluginConfigContract, PluginConfigError

logger, _ = get_logger("openplc_node.config", use_buffer=True)


@dataclass(frozen=True)
class PollConfig:
    """Output block layout and poll period. Immutable for the node's lifetime."""
    digital_count: int
    digital_offset: int
    analog_count: int
    analog_offset: int
    period: float  # seconds

    def validate(self) -> None:
        for field_name in ("digital_count", "digital_offset", "analog_count", "analog_offset"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise PluginConfigError(f"Invalid {field_name}: {value!r}. Must be a non-negative integer.")
        if isinstance(self.period, bool) or not isinstance(self.period, (int, float)) or self.period <= 0:
            raise PluginConfigError(f"Invalid period: {self.period!r}. Must be a positive number of seconds.")


@dataclass(frozen=True)
class ServerConfig:
    """Modbus TCP server the node polls."""
    host: str = "127.0.0.1"
    port: int = 502
    timeout_ms: int = 1000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerConfig":
        return cls(
            host=data.get("host", "127.0.0.1"),
            port=data.get("port", 502),
            timeout_ms=data.get("timeout_ms", 1000),
        )

    def validate(self) -> None:
        if not isinstance(self.host, str) or not self.host:
            raise PluginConfigError(f"Invalid host: {self.host!r}. Must be a non-empty string.")
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not (0 < self.port < 65536):
            raise PluginConfigError(f"Invalid port: {self.port!r}. Must be an integer in 1..65535.")
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, int) or self.timeout_ms <= 0:
            raise PluginConfigError(f"Invalid timeout_ms: {self.timeout_ms!r}. Must be a positive integer.")


class OpenPLCNodeConfig(PluginConfigContract):
    """
    OpenPLC node configuration model.

    Uses the node editor key names:

        {
            "name": "plc",
            "digitaloutputs": 8, "digitaloutputoffset": 0,
            "analogoutputs": 4, "analogoutputoffset": 0,
            "rate": 500, "rateUnit": "ms",
            "server": {"host": "127.0.0.1", "port": 502, "timeout_ms": 1000}
        }
    """
    def __init__(self):
        super().__init__()
        self.poll: PollConfig = PollConfig(0, 0, 0, 0, 1.0)
        self.server: ServerConfig = ServerConfig()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpenPLCNodeConfig":
        """
        Creates an OpenPLCNodeConfig instance from a dictionary.
        Raises PluginConfigError on values that cannot be converted.
        """
        if not isinstance(data, dict):
            raise PluginConfigError(f"Node configuration must be an object, got {type(data).__name__}")

        node_config = cls()
        node_config.config = data
        node_config.name = data.get("name", "UNDEFINED")
        try:
            node_config.poll = PollConfig(
                digital_count=parse_count(data.get("digitaloutputs", 0)),
                digital_offset=parse_modbus_offset(data.get("digitaloutputoffset", 0)),
                analog_count=parse_count(data.get("analogoutputs", 0)),
                analog_offset=parse_modbus_offset(data.get("analogoutputoffset", 0)),
                period=calc_rate_by_unit(data.get("rate", 1), data.get("rateUnit", "s")),
            )
        except ValueError as e:
            raise PluginConfigError(f"Invalid node configuration '{node_config.name}': {e}") from e

        server = data.get("server", {})
        if not isinstance(server, dict):
            raise PluginConfigError(f"Server configuration must be an object, got {type(server).__name__}")
        node_config.server = ServerConfig.from_dict(server)
        return node_config

    def import_config_from_file(self, file_path: str):
        """Read config from a JSON file."""
        with open(file_path, "r") as f:
            try:
                raw_config = json.load(f)
            except json.JSONDecodeError as e:
                raise PluginConfigError(f"Malformed configuration file {file_path}: {e}") from e

        loaded = self.from_dict(raw_config)
        self.name = loaded.name
        self.config = loaded.config
        self.poll = loaded.poll
        self.server = loaded.server
        logger.info("Node '%s' configuration loaded from %s", self.name, file_path)

    def validate(self) -> None:
        """Validates the configuration."""
        if not isinstance(self.name, str) or self.name == "UNDEFINED":
            raise PluginConfigError("Node name is undefined.")
        self.poll.validate()
        self.server.validate()

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(name='{self.name}', poll={self.poll}, "
                f"server={self.server.host}:{self.server.port})")
