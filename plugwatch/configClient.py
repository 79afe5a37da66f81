"""
Config service seen from the agent.

ConfigClient is the interface the scheduler, the registry and the inventory loop
talk to. LocalConfigClient backs it with a plugins.toml file that is re-read on
every call, so edits take effect on the next tick.
"""
from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Callable

from .pluginApi import Instance
from .utils import loadToml, parseStr, parseStrDict, safeStr

LogFn = Callable[[str], None]


class ConfigClientError(RuntimeError):
    pass


class ConfigClient:
    def getPluginsToRun(self) -> dict[str, list[Instance]]:
        raise NotImplementedError

    def getCurrentPluginsVersion(self) -> str:
        raise NotImplementedError

    def installPlugin(self, version: str) -> None:
        raise NotImplementedError

    def sendPluginInformation(self, info: dict[str, Any]) -> None:
        raise NotImplementedError

    def sendPluginStatus(self, status: dict[str, Any]) -> None:
        raise NotImplementedError


def parseArgsList(val: Any) -> tuple[str, ...]:
    # positional tokens reach the child verbatim, blanks and padding included
    if val is None:
        return ()
    if isinstance(val, (list, tuple)):
        return tuple(safeStr(x) for x in val if x is not None)
    return (safeStr(val),)


def parseInstance(val: Any, *, pluginName: str) -> Instance:
    if not isinstance(val, dict):
        raise ConfigClientError(f"plugin '{pluginName}': instance must be a table, got {type(val).__name__}")

    return Instance(
        name=parseStr(val.get("name")) or "",
        argsList=parseArgsList(val.get("argsList")),
        args=parseStrDict(val.get("args")),
    )


def parsePluginsToRun(dataObj: dict[str, Any]) -> dict[str, list[Instance]]:
    pluginsVal = dataObj.get("plugins", {})
    if not isinstance(pluginsVal, dict):
        raise ConfigClientError("'plugins' must be a table")

    out: dict[str, list[Instance]] = {}
    for pluginName, sectionVal in pluginsVal.items():
        name = parseStr(pluginName)
        if not name:
            continue
        if not isinstance(sectionVal, dict):
            sectionVal = {}

        instancesVal = sectionVal.get("instances", [])
        if not isinstance(instancesVal, list):
            raise ConfigClientError(f"plugin '{name}': 'instances' must be an array of tables")

        out[name] = [parseInstance(v, pluginName=name) for v in instancesVal]
    return out


class LocalConfigClient(ConfigClient):
    def __init__(self, pluginsConfig: str, *, stateDir: str | None = None, logFn: LogFn | None = None) -> None:
        self.pluginsConfig = Path(pluginsConfig)
        self.stateDir = Path(stateDir) if stateDir else None
        self.logFn = logFn

    def writeLog(self, text: str) -> None:
        if self.logFn is not None:
            self.logFn(text)

    def load(self) -> dict[str, Any]:
        try:
            return loadToml(self.pluginsConfig)
        except OSError as exc:
            raise ConfigClientError(f"cannot read {self.pluginsConfig}: {exc}") from exc
        except RuntimeError as exc:
            raise ConfigClientError(str(exc)) from exc

    def getPluginsToRun(self) -> dict[str, list[Instance]]:
        return parsePluginsToRun(self.load())

    def getCurrentPluginsVersion(self) -> str:
        version = parseStr(self.load().get("pluginsVersion"))
        if not version:
            raise ConfigClientError(f"{self.pluginsConfig.name}: missing 'pluginsVersion'")
        return version

    def installPlugin(self, version: str) -> None:
        self.writeLog(f"plugins version {version} requested, installation is handled outside the agent")

    def writeState(self, fileName: str, payloadObj: dict[str, Any]) -> None:
        if self.stateDir is None:
            return
        try:
            self.stateDir.mkdir(parents=True, exist_ok=True)
            tmpPath = self.stateDir / (fileName + ".tmp")
            tmpPath.write_text(json.dumps(payloadObj, indent=2, sort_keys=True), encoding="utf-8")
            tmpPath.replace(self.stateDir / fileName)
        except OSError as exc:
            raise ConfigClientError(f"cannot write {fileName}: {exc}") from exc

    def sendPluginInformation(self, info: dict[str, Any]) -> None:
        self.writeState("plugin-information.json", {"sentAt": time.time(), **info})

    def sendPluginStatus(self, status: dict[str, Any]) -> None:
        self.writeState("plugin-status.json", dict(status))
