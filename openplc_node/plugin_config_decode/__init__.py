from .plugin_config_contract import PluginConfigContract, PluginConfigError
from .openplc_node_config_model import OpenPLCNodeConfig, PollConfig, ServerConfig

__all__ = ["PluginConfigContract", "PluginConfigError", "OpenPLCNodeConfig", "PollConfig", "ServerConfig"]
