from __future__ import annotations

import threading
import time
from collections import Counter

from rich import box
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .core import AgentCore
from .pluginApi import PluginState, StatusRow

STATE_STYLES = {
    PluginState.OK: "green",
    PluginState.WARNING: "yellow",
    PluginState.CRITICAL: "bold red",
    PluginState.UNKNOWN: "magenta",
}


def oneLine(text: str) -> str:
    return " ".join(str(text).split())


def formatAge(ageSec: int) -> str:
    if ageSec < 120:
        return f"{ageSec}s"
    if ageSec < 7200:
        return f"{ageSec // 60}m"
    return f"{ageSec // 3600}h"


class RichStatusView:
    """Read-only full-screen view: latest state per plugin instance above the agent log."""

    def __init__(
        self,
        core: AgentCore,
        *,
        hostname: str,
        refreshRateSec: float = 0.5,
        console: Console | None = None,
    ) -> None:
        self.core = core
        self.hostname = hostname
        self.refreshRateSec = float(refreshRateSec)
        self.console = console or Console()

        self.styleHeader = "bold white on blue"
        self.styleColumns = "bold cyan"

    def renderHeader(self, rows: list[StatusRow] | None = None) -> Text:
        if rows is None:
            rows = self.core.statusRows()
        counts = Counter(r.state for r in rows)

        headerObj = Text(style=self.styleHeader, no_wrap=True, overflow="crop")
        headerObj.append(f"  PLUGWATCH  {self.hostname}  ")
        for state in PluginState:
            if counts[state]:
                headerObj.append(f" {str(state).upper()} {counts[state]} ")
        headerObj.append(f"  {time.strftime('%H:%M:%S')}")
        headerObj.pad_right(max(0, self.console.size.width - len(headerObj)))
        return headerObj

    def renderTable(self, nowTs: float, rows: list[StatusRow] | None = None) -> Table:
        if rows is None:
            rows = self.core.statusRows()

        tableObj = Table(expand=True, header_style=self.styleColumns, pad_edge=False, box=box.SIMPLE_HEAD)
        tableObj.add_column("PLUGIN", ratio=2, no_wrap=True, overflow="ellipsis")
        tableObj.add_column("INSTANCE", ratio=2, no_wrap=True, overflow="ellipsis")
        tableObj.add_column("STATE", ratio=1, no_wrap=True)
        tableObj.add_column("MESSAGE", ratio=5, no_wrap=True, overflow="ellipsis")
        tableObj.add_column("AGE", ratio=1, justify="right", no_wrap=True)

        if not rows:
            tableObj.add_row("-", "-", "-", "waiting for the first plugin run", "-")
            return tableObj

        for row in rows:
            ageSec = max(0, int(nowTs - row.ts)) if row.ts else 0
            tableObj.add_row(
                row.plugin,
                row.instance or "-",
                Text(str(row.state).upper(), style=STATE_STYLES.get(row.state, "white")),
                oneLine(row.text) or "-",
                formatAge(ageSec),
            )
        return tableObj

    def renderLog(self) -> Panel:
        visibleLines = max(1, self.console.size.height // 2 - 3)
        lineObjs = [
            Text(oneLine(ln), no_wrap=True, overflow="ellipsis", style="dim")
            for ln in self.core.logLines()[-visibleLines:]
        ]
        return Panel(Group(*lineObjs), title="log", title_align="left", box=box.ROUNDED)

    def buildLayout(self) -> Layout:
        rows = self.core.statusRows()
        layoutObj = Layout(name="root")
        layoutObj.split_column(
            Layout(self.renderHeader(rows), name="header", size=1),
            Layout(Panel(self.renderTable(time.time(), rows), box=box.ROUNDED), name="status", ratio=3),
            Layout(self.renderLog(), name="log", ratio=2),
        )
        return layoutObj

    def runLoop(self, stopEvent: threading.Event) -> None:
        with Live(console=self.console, auto_refresh=False, screen=True, transient=True) as live:
            while not stopEvent.is_set():
                live.update(self.buildLayout(), refresh=True)
                stopEvent.wait(self.refreshRateSec)
