from __future__ import annotations

import socket
from pathlib import Path
from typing import Any

from .config import *
from .utils import *


TRANSPORT_KINDS = ("console", "udp", "http")


def loadTransportConfig(sectionVal: Any, *, fileName: str) -> TransportConfig:
    if sectionVal is None:
        return TransportConfig()
    if not isinstance(sectionVal, dict):
        raise RuntimeError(f"{fileName}: [transport] must be a table")

    defaults = TransportConfig()
    kind = parseStrLower(sectionVal.get("kind")) or defaults.kind
    if kind not in TRANSPORT_KINDS:
        raise RuntimeError(f"{fileName}: unknown transport kind '{kind}', expected one of {', '.join(TRANSPORT_KINDS)}")

    cfg = TransportConfig(
        kind=kind,
        host=parseStr(sectionVal.get("host")) or defaults.host,
        port=parseInt(sectionVal.get("port"), defaults.port),
        url=parseStr(sectionVal.get("url")),
        timeoutSec=parseFloat(sectionVal.get("timeoutSec"), defaults.timeoutSec),
        queueSize=max(1, parseInt(sectionVal.get("queueSize"), defaults.queueSize)),
    )

    if cfg.kind == "http" and not cfg.url:
        raise RuntimeError(f"{fileName}: transport kind 'http' needs a 'url'")

    return cfg


def resolvePath(baseDir: Path, val: str) -> str:
    p = Path(val).expanduser()
    if not p.is_absolute():
        p = baseDir / p
    return str(p)


def loadAgentConfig(configFile: str | None, *, overrides: dict[str, Any] | None = None) -> AgentConfig:
    cfgObj: dict[str, Any] = {}
    baseDir = Path.cwd()
    fileName = "<defaults>"

    if configFile:
        cfgPath = Path(configFile)
        if not cfgPath.is_file():
            raise RuntimeError(f"{cfgPath}: config file not found")
        cfgObj = loadToml(cfgPath)
        baseDir = cfgPath.resolve().parent
        fileName = cfgPath.name

    cfgObj = deepMerge(cfgObj, dict(overrides or {}))
    defaults = AgentConfig()

    sleepSec = parseFloat(cfgObj.get("sleepSec"), defaults.sleepSec)
    if sleepSec <= 0.0:
        raise RuntimeError(f"{fileName}: sleepSec must be positive, got {sleepSec}")

    stateDir = parseStr(cfgObj.get("stateDir"))

    return AgentConfig(
        hostname=parseStr(cfgObj.get("hostname")) or socket.gethostname(),
        sleepSec=sleepSec,
        pluginsDir=resolvePath(baseDir, parseStr(cfgObj.get("pluginsDir")) or defaults.pluginsDir),
        customPluginsDir=resolvePath(baseDir, parseStr(cfgObj.get("customPluginsDir")) or defaults.customPluginsDir),
        pluginsConfig=resolvePath(baseDir, parseStr(cfgObj.get("pluginsConfig")) or defaults.pluginsConfig),
        stateDir=resolvePath(baseDir, stateDir) if stateDir else None,
        verbose=parseBool(cfgObj.get("verbose"), defaults.verbose),
        inventory=parseBool(cfgObj.get("inventory"), defaults.inventory),
        transport=loadTransportConfig(cfgObj.get("transport"), fileName=fileName),
    )
