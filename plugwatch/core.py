from __future__ import annotations

import threading
import time

from rich.console import Console

from .pluginApi import StatusRow


LEVEL_STYLES = {
    "debug": "dim",
    "info": "white",
    "warn": "yellow",
    "error": "red",
}


class AgentCore:
    def __init__(self, *, verbose: bool = False, echo: bool = True, console: Console | None = None) -> None:
        self.verbose = bool(verbose)
        self.echo = bool(echo)
        self.console = console or Console(stderr=True)

        self.commandLog: list[str] = []
        self.maxLogLines: int = 512
        self.logLock = threading.Lock()

        self.statusLock = threading.Lock()
        self.statusByKey: dict[str, StatusRow] = {}
        self.statusOrder: list[str] = []

    def writeLog(self, msg: str, level: str = "info") -> None:
        lvl = str(level or "info").strip().lower()
        if lvl == "debug" and not self.verbose:
            return

        tsStr = time.strftime("%H:%M:%S")
        line = f"[{tsStr}] {lvl.upper():<5} {msg}"

        with self.logLock:
            self.commandLog.append(line)
            if len(self.commandLog) > self.maxLogLines:
                self.commandLog = self.commandLog[-self.maxLogLines :]

        if self.echo:
            self.console.print(line, style=LEVEL_STYLES.get(lvl, "white"), markup=False, highlight=False)

    def logDebug(self, msg: str) -> None:
        self.writeLog(msg, "debug")

    def logError(self, msg: str) -> None:
        self.writeLog(msg, "error")

    def logLines(self) -> list[str]:
        with self.logLock:
            return list(self.commandLog)

    def writeStatus(self, row: StatusRow) -> None:
        with self.statusLock:
            if row.key not in self.statusByKey:
                self.statusOrder.append(row.key)
                self.statusOrder.sort(key=str.lower)
            self.statusByKey[row.key] = row

    def statusRows(self) -> list[StatusRow]:
        with self.statusLock:
            return [self.statusByKey[k] for k in self.statusOrder]
