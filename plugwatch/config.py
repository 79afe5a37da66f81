"""
Configuration data classes for the agent.

AgentConfig holds the host identity, the polling interval, where plugins live and
how metrics leave the host. TransportConfig selects and parameterizes the metrics
transport.
"""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TransportConfig:
    kind: str = "console"  # console | udp | http
    host: str = "127.0.0.1"
    port: int = 8125
    url: str | None = None
    timeoutSec: float = 2.0
    queueSize: int = 1024


@dataclass
class AgentConfig:
    hostname: str = ""
    sleepSec: float = 10.0
    pluginsDir: str = "/data/plugwatch/plugins"
    customPluginsDir: str = "/data/plugwatch/custom-plugins"
    pluginsConfig: str = "plugins.toml"
    stateDir: str | None = None
    verbose: bool = False
    inventory: bool = True
    transport: TransportConfig = field(default_factory=TransportConfig)
