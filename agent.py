from __future__ import annotations

import argparse
import sys
from pathlib import Path

from plugwatch.app import AgentApp
from plugwatch.configLoader import loadAgentConfig

DEFAULT_CONFIG = "configs/agent.toml"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="plugwatch", description="run check plugins and ship their metrics")
    parser.add_argument("-c", "--config", default=None, help=f"agent config file (toml), defaults to {DEFAULT_CONFIG} when present")
    parser.add_argument("--once", action="store_true", help="run every plugin once and exit")
    parser.add_argument("--live", action="store_true", help="show the full-screen status view")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug lines")
    args = parser.parse_args(argv)

    configFile = args.config
    if configFile is None and Path(DEFAULT_CONFIG).is_file():
        configFile = DEFAULT_CONFIG

    overrides = {"verbose": True} if args.verbose else {}
    try:
        config = loadAgentConfig(configFile, overrides=overrides)
    except RuntimeError as exc:
        print(f"plugwatch: {exc}", file=sys.stderr)
        return 2

    app = AgentApp(config, live=args.live and not args.once)
    if args.once:
        app.runOnce()
    else:
        app.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
