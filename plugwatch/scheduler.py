from __future__ import annotations

import threading

from .configClient import ConfigClient, ConfigClientError
from .core import AgentCore
from .pluginApi import DEFAULT_INSTANCES, Instance, PluginMetadata
from .pluginLoader import PluginRegistry
from .rates import RateTracker, rateKey
from .reporter import Reporter
from .runner import ProcessRunner


class Scheduler:
    """
    Runs every configured plugin instance once per interval.

    Each instance gets its own thread and the interval doubles as its deadline,
    so a slow plugin may overlap with its next run but never outlives it by more
    than one period.
    """

    def __init__(
        self,
        core: AgentCore,
        *,
        configClient: ConfigClient,
        registry: PluginRegistry,
        runner: ProcessRunner,
        reporter: Reporter,
        rateTracker: RateTracker,
        sleepSec: float,
    ) -> None:
        self.core = core
        self.configClient = configClient
        self.registry = registry
        self.runner = runner
        self.reporter = reporter
        self.rateTracker = rateTracker
        self.sleepSec = float(sleepSec)

        self.previousConfig: dict[str, list[Instance]] | None = None
        self.stopEvent = threading.Event()

    def fetchConfig(self) -> dict[str, list[Instance]] | None:
        try:
            config = self.configClient.getPluginsToRun()
        except ConfigClientError as exc:
            self.core.logError(f"error while getting configuration from backend: {exc}")
            return self.previousConfig

        self.previousConfig = config
        return config

    def runPluginInstance(self, plugin: PluginMetadata, instance: Instance) -> None:
        key = rateKey(plugin.name, instance.name)
        output, err = self.runner.run(plugin, instance, self.sleepSec)
        if output is None:
            self.core.logError(f"[{key}] {err}")
            return

        self.core.logDebug(f"[{key}] parsed output {output!r}")
        self.reporter.report(plugin, instance, output, self.rateTracker)

    def runPluginInstanceSafe(self, plugin: PluginMetadata, instance: Instance) -> None:
        try:
            self.runPluginInstance(plugin, instance)
        except Exception as exc:
            self.core.logError(f"[{rateKey(plugin.name, instance.name)}] EXC {type(exc).__name__}: {exc}")

    def tick(self) -> list[threading.Thread]:
        config = self.fetchConfig()
        if config is None:
            return []

        self.core.logDebug(f"iterating through {len(config)} plugins")
        plugins = self.registry.resolve()

        threads: list[threading.Thread] = []
        for name, instances in config.items():
            plugin = plugins.get(name)
            if plugin is None:
                self.core.logError(f"cannot find plugin '{name}'")
                continue

            for instance in instances or DEFAULT_INSTANCES:
                threadObj = threading.Thread(
                    target=self.runPluginInstanceSafe,
                    args=(plugin, instance),
                    name=f"plugin-{rateKey(name, instance.name)}",
                    daemon=True,
                )
                threadObj.start()
                threads.append(threadObj)

        return threads

    def runForever(self) -> None:
        while not self.stopEvent.is_set():
            try:
                self.tick()
            except Exception as exc:
                self.core.logError(f"scheduler tick EXC {type(exc).__name__}: {exc}")
            self.stopEvent.wait(self.sleepSec)

    def stop(self) -> None:
        self.stopEvent.set()
