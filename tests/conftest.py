"""Shared pytest fixtures: a quiet agent core, plugin trees on disk and test doubles."""

import os
import sys
import textwrap
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from plugwatch.configClient import ConfigClient, ConfigClientError  # noqa: E402
from plugwatch.core import AgentCore  # noqa: E402
from plugwatch.transport import Transport  # noqa: E402


def writeScript(pathObj: Path, body: str) -> Path:
    pathObj.write_text("#!/bin/sh\n" + textwrap.dedent(body).lstrip("\n"), encoding="utf-8")
    os.chmod(pathObj, 0o755)
    return pathObj


def makePlugin(
    rootDir: Path,
    name: str,
    statusBody: str = 'echo "OK"\n',
    *,
    output: str = "nagios",
    rates: list[str] | None = None,
    extraInfo: str = "",
) -> Path:
    pluginDir = rootDir / name
    pluginDir.mkdir(parents=True, exist_ok=True)
    rateList = ", ".join(f'"{r}"' for r in (rates or []))
    (pluginDir / "info.toml").write_text(
        f'output = "{output}"\ncalculate_rates = [{rateList}]\n{extraInfo}', encoding="utf-8"
    )
    writeScript(pluginDir / "status", statusBody)
    return pluginDir


class RecordingTransport(Transport):
    def __init__(self):
        self.batches = []

    def send(self, writes):
        self.batches.append(list(writes))

    @property
    def writes(self):
        return [w for batch in self.batches for w in batch]

    def byName(self):
        return {w.name: w for w in self.writes}


class FakeConfigClient(ConfigClient):
    def __init__(self, plugins=None, version="1", failPlugins=False, failVersion=False):
        self.plugins = plugins if plugins is not None else {}
        self.version = version
        self.failPlugins = failPlugins
        self.failVersion = failVersion
        self.installed = []
        self.information = []
        self.statuses = []

    def getPluginsToRun(self):
        if self.failPlugins:
            raise ConfigClientError("backend unreachable")
        return self.plugins

    def getCurrentPluginsVersion(self):
        if self.failVersion:
            raise ConfigClientError("backend unreachable")
        return self.version

    def installPlugin(self, version):
        self.installed.append(version)

    def sendPluginInformation(self, info):
        self.information.append(info)

    def sendPluginStatus(self, status):
        self.statuses.append(status)


@pytest.fixture
def core():
    return AgentCore(verbose=True, echo=False)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def pluginTree(tmp_path):
    """(pluginsDir, customPluginsDir) with bundled version "1" already installed."""
    pluginsDir = tmp_path / "plugins"
    (pluginsDir / "1").mkdir(parents=True)
    (pluginsDir / "version").write_text("1\n", encoding="utf-8")
    customDir = tmp_path / "custom"
    customDir.mkdir()
    return pluginsDir, customDir
