from conftest import FakeConfigClient, makePlugin

import agent
from plugwatch.app import AgentApp
from plugwatch.config import AgentConfig


def test_run_once_reports_every_configured_plugin(core, transport, pluginTree):
    pluginsDir, customDir = pluginTree
    makePlugin(pluginsDir / "1", "load", 'echo "OK | load1=1.5"\n')
    makePlugin(customDir, "mine", 'echo "WARNING - meh"\nexit 1\n')
    config = AgentConfig(
        hostname="web1",
        sleepSec=5.0,
        pluginsDir=str(pluginsDir),
        customPluginsDir=str(customDir),
    )
    client = FakeConfigClient(plugins={"load": [], "mine": []})

    AgentApp(config, core=core, configClient=client, transport=transport).runOnce()

    byName = transport.byName()
    assert byName["plugins.load.load1"].points[0].value == 1.5
    assert byName["plugins.mine.status"].points[0].dimensions["status"] == "warning"
    assert [r.key for r in core.statusRows()] == ["load/", "mine/"]


def test_cli_rejects_bad_config(tmp_path, capsys):
    cfgPath = tmp_path / "agent.toml"
    cfgPath.write_text("sleepSec = -1\n", encoding="utf-8")

    assert agent.main(["-c", str(cfgPath), "--once"]) == 2
    assert "sleepSec must be positive" in capsys.readouterr().err


def test_cli_once_with_local_files(tmp_path):
    pluginsDir = tmp_path / "plugins"
    makePlugin(pluginsDir / "7", "load", 'echo "OK | load1=1"\n')
    (pluginsDir / "version").write_text("7\n", encoding="utf-8")
    (tmp_path / "plugins.toml").write_text('pluginsVersion = "7"\n[plugins.load]\n', encoding="utf-8")
    (tmp_path / "agent.toml").write_text(
        'hostname = "web1"\nsleepSec = 5\npluginsDir = "plugins"\ncustomPluginsDir = "custom"\n',
        encoding="utf-8",
    )

    assert agent.main(["-c", str(tmp_path / "agent.toml"), "--once"]) == 0
