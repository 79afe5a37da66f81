import json

import pytest

from plugwatch.configClient import ConfigClientError, LocalConfigClient
from plugwatch.configLoader import loadAgentConfig
from plugwatch.pluginApi import Instance


def test_defaults_without_file():
    cfg = loadAgentConfig(None, overrides={"hostname": "box"})
    assert cfg.hostname == "box"
    assert cfg.sleepSec == 10.0
    assert cfg.transport.kind == "console"
    assert cfg.inventory is True


def test_file_values_and_relative_paths(tmp_path):
    cfgPath = tmp_path / "agent.toml"
    cfgPath.write_text(
        "\n".join([
            'hostname = "web1"',
            "sleepSec = 2.5",
            'pluginsDir = "plugins"',
            'pluginsConfig = "plugins.toml"',
            'stateDir = "state"',
            "inventory = false",
            "[transport]",
            'kind = "udp"',
            "port = 9000",
        ]),
        encoding="utf-8",
    )

    cfg = loadAgentConfig(str(cfgPath))

    assert cfg.hostname == "web1"
    assert cfg.sleepSec == 2.5
    assert cfg.pluginsDir == str(tmp_path / "plugins")
    assert cfg.pluginsConfig == str(tmp_path / "plugins.toml")
    assert cfg.stateDir == str(tmp_path / "state")
    assert cfg.inventory is False
    assert (cfg.transport.kind, cfg.transport.host, cfg.transport.port) == ("udp", "127.0.0.1", 9000)


def test_overrides_win_over_file(tmp_path):
    cfgPath = tmp_path / "agent.toml"
    cfgPath.write_text("verbose = false\n", encoding="utf-8")
    assert loadAgentConfig(str(cfgPath), overrides={"verbose": True}).verbose is True


@pytest.mark.parametrize(
    "body,message",
    [
        ("sleepSec = 0\n", "sleepSec must be positive"),
        ('[transport]\nkind = "carrier-pigeon"\n', "unknown transport kind"),
        ('[transport]\nkind = "http"\n', "needs a 'url'"),
        ("sleepSec = [\n", "agent.toml"),
    ],
)
def test_invalid_agent_config(tmp_path, body, message):
    cfgPath = tmp_path / "agent.toml"
    cfgPath.write_text(body, encoding="utf-8")
    with pytest.raises(RuntimeError, match=message):
        loadAgentConfig(str(cfgPath))


def test_missing_config_file(tmp_path):
    with pytest.raises(RuntimeError, match="not found"):
        loadAgentConfig(str(tmp_path / "nope.toml"))


def test_local_client_reads_instances(tmp_path):
    pluginsPath = tmp_path / "plugins.toml"
    pluginsPath.write_text(
        "\n".join([
            'pluginsVersion = "3"',
            "[plugins.load]",
            "[[plugins.mysql.instances]]",
            'name = "primary"',
            'argsList = ["-v"]',
            'args = { host = "db1", port = 3306 }',
        ]),
        encoding="utf-8",
    )
    client = LocalConfigClient(str(pluginsPath))

    plugins = client.getPluginsToRun()

    assert plugins["load"] == []
    assert plugins["mysql"] == [Instance(name="primary", argsList=("-v",), args={"host": "db1", "port": "3306"})]
    assert client.getCurrentPluginsVersion() == "3"


def test_local_client_rereads_file(tmp_path):
    pluginsPath = tmp_path / "plugins.toml"
    pluginsPath.write_text("[plugins.load]\n", encoding="utf-8")
    client = LocalConfigClient(str(pluginsPath))
    assert list(client.getPluginsToRun()) == ["load"]

    pluginsPath.write_text("[plugins.redis]\n", encoding="utf-8")
    assert list(client.getPluginsToRun()) == ["redis"]


def test_local_client_errors(tmp_path):
    client = LocalConfigClient(str(tmp_path / "missing.toml"))
    with pytest.raises(ConfigClientError):
        client.getPluginsToRun()

    pluginsPath = tmp_path / "plugins.toml"
    pluginsPath.write_text("[plugins.load]\n", encoding="utf-8")
    with pytest.raises(ConfigClientError, match="pluginsVersion"):
        LocalConfigClient(str(pluginsPath)).getCurrentPluginsVersion()

    pluginsPath.write_text('[plugins.load]\ninstances = "nope"\n', encoding="utf-8")
    with pytest.raises(ConfigClientError, match="array of tables"):
        LocalConfigClient(str(pluginsPath)).getPluginsToRun()


def test_local_client_writes_state_files(tmp_path):
    pluginsPath = tmp_path / "plugins.toml"
    pluginsPath.write_text("", encoding="utf-8")
    stateDir = tmp_path / "state"
    client = LocalConfigClient(str(pluginsPath), stateDir=str(stateDir))

    client.sendPluginInformation({"runningPlugins": ["load"], "customPlugins": []})
    client.sendPluginStatus({"availablePlugins": ["redis"], "timestamp": 1})

    info = json.loads((stateDir / "plugin-information.json").read_text(encoding="utf-8"))
    status = json.loads((stateDir / "plugin-status.json").read_text(encoding="utf-8"))
    assert info["runningPlugins"] == ["load"]
    assert status == {"availablePlugins": ["redis"], "timestamp": 1}
    assert not list(stateDir.glob("*.tmp"))


def test_local_client_rejects_undecodable_file(tmp_path):
    pluginsPath = tmp_path / "plugins.toml"
    pluginsPath.write_bytes(b"[plugins.load]\n\xff\xfe\n")
    with pytest.raises(ConfigClientError, match="utf-8"):
        LocalConfigClient(str(pluginsPath)).getPluginsToRun()


def test_args_list_tokens_are_passed_verbatim(tmp_path):
    pluginsPath = tmp_path / "plugins.toml"
    pluginsPath.write_text(
        "\n".join([
            "[[plugins.echo.instances]]",
            'argsList = ["--label", " padded ", "--empty", ""]',
            "[[plugins.single.instances]]",
            'argsList = "-v"',
        ]),
        encoding="utf-8",
    )

    plugins = LocalConfigClient(str(pluginsPath)).getPluginsToRun()

    assert plugins["echo"][0].argsList == ("--label", " padded ", "--empty", "")
    assert plugins["echo"][0].argv() == ["--label", " padded ", "--empty", ""]
    assert plugins["single"][0].argsList == ("-v",)
