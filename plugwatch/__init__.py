from .app import AgentApp
from .config import AgentConfig, TransportConfig
from .parser import ParseError, parse
from .pluginApi import Instance, MetricPoint, MetricWrite, OutputFormat, PluginMetadata, PluginOutput, PluginState
from .rates import RateTracker

__all__ = [
    "AgentApp",
    "AgentConfig",
    "TransportConfig",
    "ParseError",
    "parse",
    "Instance",
    "MetricPoint",
    "MetricWrite",
    "OutputFormat",
    "PluginMetadata",
    "PluginOutput",
    "PluginState",
    "RateTracker",
]
