from __future__ import annotations

import threading

from .config import AgentConfig
from .configClient import ConfigClient, LocalConfigClient
from .core import AgentCore
from .inventory import PluginInventory
from .pluginLoader import PluginRegistry
from .rates import RateTracker
from .reporter import Reporter
from .runner import REAP_TIMEOUT_SEC, ProcessRunner
from .scheduler import Scheduler
from .transport import Transport, createTransport
from .ui import RichStatusView


class AgentApp:
    def __init__(
        self,
        config: AgentConfig,
        *,
        live: bool = False,
        core: AgentCore | None = None,
        configClient: ConfigClient | None = None,
        transport: Transport | None = None,
    ) -> None:
        self.config = config
        self.live = bool(live)
        self.core = core or AgentCore(verbose=config.verbose, echo=not self.live)

        self.configClient = configClient or LocalConfigClient(
            config.pluginsConfig,
            stateDir=config.stateDir,
            logFn=self.core.writeLog,
        )
        self.registry = PluginRegistry(
            self.core,
            pluginsDir=config.pluginsDir,
            customPluginsDir=config.customPluginsDir,
            configClient=self.configClient,
        )
        self.rateTracker = RateTracker()
        self.transport = transport or createTransport(self.core, config.transport)
        self.reporter = Reporter(self.core, hostname=config.hostname, transport=self.transport)
        self.scheduler = Scheduler(
            self.core,
            configClient=self.configClient,
            registry=self.registry,
            runner=ProcessRunner(self.core),
            reporter=self.reporter,
            rateTracker=self.rateTracker,
            sleepSec=config.sleepSec,
        )
        self.inventory = PluginInventory(
            self.core,
            configClient=self.configClient,
            registry=self.registry,
            sleepSec=config.sleepSec,
        )
        self.stopEvent = threading.Event()
        self.threads: list[threading.Thread] = []

    def startThread(self, target, name: str) -> None:
        threadObj = threading.Thread(target=target, name=name, daemon=True)
        threadObj.start()
        self.threads.append(threadObj)

    def start(self) -> None:
        self.core.writeLog(
            f"agent starting on {self.config.hostname}, interval {self.config.sleepSec:g}s, "
            f"transport {self.config.transport.kind}"
        )
        self.transport.start()
        self.startThread(self.scheduler.runForever, "scheduler")
        if self.config.inventory:
            self.startThread(self.inventory.runForever, "inventory")

    def stop(self) -> None:
        self.stopEvent.set()
        self.scheduler.stop()
        self.inventory.stop()
        self.transport.stop()
        self.core.writeLog("agent stopped")

    def runOnce(self) -> None:
        self.transport.start()
        try:
            for threadObj in self.scheduler.tick():
                threadObj.join(timeout=self.config.sleepSec + REAP_TIMEOUT_SEC)
        finally:
            self.transport.stop()

    def run(self) -> None:
        self.start()
        try:
            if self.live:
                RichStatusView(self.core, hostname=self.config.hostname).runLoop(self.stopEvent)
            else:
                self.stopEvent.wait()
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()
