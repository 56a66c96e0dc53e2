"""
Base configuration contract for the OpenPLC node.
"""

from abc import ABC, abstractmethod


class PluginConfigError(ValueError):
    """Raised when a node configuration cannot be parsed or is invalid."""
    pass


class PluginConfigContract(ABC):
    """
    Abstract base class for file backed configurations.
    """
    def __init__(self):
        self.name = "UNDEFINED"
        self.config = {}

    @abstractmethod
    def import_config_from_file(self, file_path: str):
        """Populates the instance from a JSON file."""

    @abstractmethod
    def validate(self) -> None:
        """Validates the configuration."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(CONFIG={self.config})"
