from __future__ import annotations

import json
import queue
import socket
import threading
import urllib.error
import urllib.request
from typing import Any, Sequence

from .config import TransportConfig
from .core import AgentCore
from .pluginApi import MetricWrite

_STOP = object()


def buildWriteRequest(writes: Sequence[MetricWrite]) -> dict[str, Any]:
    return {"writes": [w.toJson() for w in writes]}


class Transport:
    def start(self) -> None:
        return

    def stop(self, timeoutSec: float = 5.0) -> None:
        return

    def send(self, writes: Sequence[MetricWrite]) -> None:
        raise NotImplementedError


class QueuedTransport(Transport):
    """Delivers batches from a background thread; send() never blocks."""

    name = "queued"

    def __init__(self, core: AgentCore, *, queueSize: int = 1024) -> None:
        self.core = core
        self.queueObj: queue.Queue = queue.Queue(maxsize=max(1, int(queueSize)))
        self.threadObj: threading.Thread | None = None
        self.lockObj = threading.Lock()

    def start(self) -> None:
        with self.lockObj:
            if self.threadObj is not None:
                return
            self.threadObj = threading.Thread(target=self.loop, name=f"transport-{self.name}", daemon=True)
            self.threadObj.start()

    def stop(self, timeoutSec: float = 5.0) -> None:
        with self.lockObj:
            threadObj = self.threadObj
            self.threadObj = None
        if threadObj is None:
            return
        self.queueObj.put(_STOP)
        threadObj.join(timeout=timeoutSec)

    def send(self, writes: Sequence[MetricWrite]) -> None:
        if not writes:
            return
        try:
            self.queueObj.put_nowait(list(writes))
        except queue.Full:
            self.core.logError(f"[{self.name}] queue full, dropping {len(writes)} write(s)")

    def loop(self) -> None:
        while True:
            batch = self.queueObj.get()
            if batch is _STOP:
                return
            try:
                self.deliver(batch)
            except Exception as exc:
                self.core.logError(f"[{self.name}] delivery failed {type(exc).__name__}: {exc}")

    def deliver(self, writes: list[MetricWrite]) -> None:
        raise NotImplementedError


class UdpTransport(QueuedTransport):
    name = "udp"

    def __init__(self, core: AgentCore, *, host: str, port: int, queueSize: int = 1024) -> None:
        super().__init__(core, queueSize=queueSize)
        self.host = host
        self.port = int(port)

    def deliver(self, writes: list[MetricWrite]) -> None:
        dataBytes = json.dumps(buildWriteRequest(writes)).encode("utf-8")
        sockObj = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sockObj.sendto(dataBytes, (self.host, self.port))
        finally:
            sockObj.close()


class HttpTransport(QueuedTransport):
    name = "http"

    def __init__(self, core: AgentCore, *, url: str, timeoutSec: float = 2.0, queueSize: int = 1024) -> None:
        super().__init__(core, queueSize=queueSize)
        self.url = url
        self.timeoutSec = float(timeoutSec)

    def deliver(self, writes: list[MetricWrite]) -> None:
        bodyBytes = json.dumps(buildWriteRequest(writes)).encode("utf-8")
        req = urllib.request.Request(
            self.url,
            data=bodyBytes,
            method="POST",
            headers={"Content-Type": "application/json", "User-Agent": "plugwatch/1.0"},
        )
        try:
            with urllib.request.urlopen(req, timeout=max(0.1, self.timeoutSec)) as resp:
                code = int(resp.status)
        except urllib.error.HTTPError as exc:
            raise RuntimeError(f"HTTP {exc.code} {str(exc.reason or '').strip()}") from exc

        if not 200 <= code <= 299:
            raise RuntimeError(f"HTTP {code}")


class ConsoleTransport(QueuedTransport):
    name = "console"

    def deliver(self, writes: list[MetricWrite]) -> None:
        for w in writes:
            for p in w.points:
                dims = ",".join(f"{k}={v}" for k, v in sorted(p.dimensions.items()))
                self.core.writeLog(f"METRIC {w.name} {p.value:g} {{{dims}}}")


def createTransport(core: AgentCore, cfg: TransportConfig) -> Transport:
    if cfg.kind == "udp":
        return UdpTransport(core, host=cfg.host, port=cfg.port, queueSize=cfg.queueSize)
    if cfg.kind == "http":
        return HttpTransport(core, url=str(cfg.url), timeoutSec=cfg.timeoutSec, queueSize=cfg.queueSize)
    return ConsoleTransport(core, queueSize=cfg.queueSize)
