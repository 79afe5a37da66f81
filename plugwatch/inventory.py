from __future__ import annotations

import os
import threading
import time
from typing import Any

from .configClient import ConfigClient, ConfigClientError
from .core import AgentCore
from .pluginApi import PluginMetadata
from .pluginLoader import PluginRegistry
from .runner import runProcess

SHOULD_MONITOR = "should_monitor"


class PluginInventory:
    """
    Tells the config service what is installed and what would be useful here.

    Custom plugins are reported with their descriptor, bundled ones by name. Every
    plugin that is not already configured gets its should_monitor probe run; a
    zero exit code marks it as available on this host.
    """

    def __init__(
        self,
        core: AgentCore,
        *,
        configClient: ConfigClient,
        registry: PluginRegistry,
        sleepSec: float,
    ) -> None:
        self.core = core
        self.configClient = configClient
        self.registry = registry
        self.sleepSec = float(sleepSec)
        self.stopEvent = threading.Event()

    def buildInformation(self, plugins: dict[str, PluginMetadata]) -> dict[str, Any]:
        running: list[str] = []
        custom: list[dict[str, Any]] = []
        for name in sorted(plugins):
            plugin = plugins[name]
            if not plugin.isCustom:
                running.append(name)
                continue
            custom.append({**plugin.info, "name": name})
        return {"runningPlugins": running, "customPlugins": custom}

    def shouldMonitor(self, plugin: PluginMetadata) -> bool:
        probePath = os.path.join(plugin.path, SHOULD_MONITOR)
        if not os.access(probePath, os.X_OK):
            self.core.logDebug(f"plugin {plugin.name} has no {SHOULD_MONITOR} probe")
            return False

        rc, _, err = runProcess([probePath], self.sleepSec)
        if err:
            self.core.logDebug(f"{SHOULD_MONITOR} of {plugin.name} failed: {err}")
            return False
        if rc != 0:
            self.core.logDebug(f"doesn't seem like {plugin.name} is installed on this server (rc={rc})")
            return False
        return True

    def checkOnce(self) -> list[str]:
        self.core.writeLog("checking for new plugins and for potentially useful plugins")
        plugins = self.registry.resolve()

        try:
            self.configClient.sendPluginInformation(self.buildInformation(plugins))
        except ConfigClientError as exc:
            self.core.logError(f"cannot send custom plugins information: {exc}")

        try:
            configured = self.configClient.getPluginsToRun()
            toCheck = {n: p for n, p in plugins.items() if n not in configured}
        except ConfigClientError as exc:
            self.core.logDebug(f"cannot get plugins to run, checking all plugins: {exc}")
            toCheck = dict(plugins)

        available: list[str] = []
        for name in sorted(toCheck):
            if self.shouldMonitor(toCheck[name]):
                self.core.logDebug(f"plugin {name} should be installed on this server")
                available.append(name)

        try:
            self.configClient.sendPluginStatus({"availablePlugins": available, "timestamp": int(time.time())})
        except ConfigClientError as exc:
            self.core.logError(f"cannot send plugin status: {exc}")

        return available

    def runForever(self) -> None:
        while not self.stopEvent.is_set():
            try:
                self.checkOnce()
            except Exception as exc:
                self.core.logError(f"inventory EXC {type(exc).__name__}: {exc}")
            self.stopEvent.wait(self.sleepSec)

    def stop(self) -> None:
        self.stopEvent.set()
