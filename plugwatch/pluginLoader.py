from __future__ import annotations

import os
import re
import threading
from pathlib import Path

from .configClient import ConfigClient, ConfigClientError
from .core import AgentCore
from .pluginApi import OutputFormat, PluginMetadata
from .utils import loadToml, parseStr, parseStrList

DESCRIPTOR_NAME = "info.toml"
VERSION_FILE = "version"


def loadPluginDir(pluginDir: Path, *, isCustom: bool) -> PluginMetadata:
    descPath = pluginDir / DESCRIPTOR_NAME
    if not descPath.is_file():
        raise RuntimeError(f"{DESCRIPTOR_NAME} not found")

    try:
        infoObj = loadToml(descPath)
    except OSError as exc:
        raise RuntimeError(f"cannot read {DESCRIPTOR_NAME}: {exc}") from exc

    outputFormat = OutputFormat.parse(infoObj.get("output"))

    patterns: list[re.Pattern] = []
    for raw in parseStrList(infoObj.get("calculate_rates")):
        try:
            patterns.append(re.compile(raw))
        except re.error as exc:
            raise RuntimeError(f"invalid regex '{raw}' in calculate_rates: {exc}") from exc

    statusPath = pluginDir / "status"
    if not statusPath.is_file():
        raise RuntimeError("'status' executable not found")
    if not os.access(statusPath, os.X_OK):
        raise RuntimeError("'status' is not executable")

    return PluginMetadata(
        name=pluginDir.name,
        path=str(pluginDir),
        outputFormat=outputFormat,
        ratePatterns=tuple(patterns),
        isCustom=isCustom,
        info=dict(infoObj),
    )


class PluginRegistry:
    def __init__(
        self,
        core: AgentCore,
        *,
        pluginsDir: str,
        customPluginsDir: str,
        configClient: ConfigClient | None = None,
    ) -> None:
        self.core = core
        self.pluginsDir = Path(pluginsDir)
        self.customPluginsDir = Path(customPluginsDir)
        self.configClient = configClient

        # resolve() runs from the scheduler and the inventory thread
        self.lockObj = threading.Lock()
        self.requestedVersion: str | None = None
        self.unreadableRoots: set[str] = set()

    def readInstalledVersion(self) -> str | None:
        try:
            return parseStr((self.pluginsDir / VERSION_FILE).read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            self.core.logError(f"cannot read installed plugins version: {exc}")
            return None

    def requestInstall(self, installed: str | None, latest: str) -> None:
        with self.lockObj:
            if self.requestedVersion == latest:
                return
            self.requestedVersion = latest

        self.core.writeLog(f"plugins version changed {installed or 'none'} -> {latest}")
        try:
            self.configClient.installPlugin(latest)
        except ConfigClientError as exc:
            self.core.logError(f"cannot install plugins version {latest}: {exc}")
            with self.lockObj:
                self.requestedVersion = None

    def resolveVersion(self) -> str | None:
        installed = self.readInstalledVersion()
        if self.configClient is None:
            return installed

        try:
            latest = parseStr(self.configClient.getCurrentPluginsVersion())
        except ConfigClientError as exc:
            self.core.logError(f"cannot get current plugins version: {exc}")
            return installed

        if not latest:
            return installed

        if latest != installed:
            self.requestInstall(installed, latest)
        return latest

    def scanDir(self, rootDir: Path, *, isCustom: bool) -> dict[str, PluginMetadata]:
        rootKey = str(rootDir)
        try:
            entries = sorted(rootDir.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            with self.lockObj:
                firstTime = rootKey not in self.unreadableRoots
                self.unreadableRoots.add(rootKey)
            if firstTime:
                self.core.logError(f"cannot list directory '{rootDir}': {exc}")
            else:
                self.core.logDebug(f"cannot list directory '{rootDir}': {exc}")
            return {}

        with self.lockObj:
            self.unreadableRoots.discard(rootKey)

        plugins: dict[str, PluginMetadata] = {}
        for entry in entries:
            if not entry.is_dir():
                self.core.logDebug(f"'{entry.name}' isn't a directory, skipping")
                continue
            try:
                plugins[entry.name] = loadPluginDir(entry, isCustom=isCustom)
            except (RuntimeError, ValueError) as exc:
                self.core.logError(f"cannot parse plugin directory '{entry}': {exc}")
        return plugins

    def resolve(self) -> dict[str, PluginMetadata]:
        plugins: dict[str, PluginMetadata] = {}

        version = self.resolveVersion()
        if version:
            plugins.update(self.scanDir(self.pluginsDir / version, isCustom=False))
        else:
            self.core.logDebug("no bundled plugins version known, only custom plugins are used")

        # custom plugins take precedence
        plugins.update(self.scanDir(self.customPluginsDir, isCustom=True))
        return plugins
