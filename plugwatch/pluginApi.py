from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any


class PluginState(enum.IntEnum):
    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3

    @classmethod
    def fromExitCode(cls, exitCode: int | None) -> "PluginState":
        try:
            return cls(int(exitCode))
        except (TypeError, ValueError):
            return cls.UNKNOWN

    def __str__(self) -> str:
        return self.name.lower()


class OutputFormat(enum.Enum):
    ERRPLANE = "errplane"
    NAGIOS = "nagios"

    @classmethod
    def parse(cls, val: Any) -> "OutputFormat":
        s = str(val or "").strip().lower()
        for fmt in cls:
            if fmt.value == s:
                return fmt
        raise ValueError(f"unknown plugin output type '{val}', supported types are 'errplane' and 'nagios'")


@dataclass(frozen=True)
class Instance:
    name: str = ""
    argsList: tuple[str, ...] = ()
    args: dict[str, str] = field(default_factory=dict)

    def argv(self) -> list[str]:
        out = list(self.argsList)
        for k, v in self.args.items():
            out.extend(["--" + str(k), str(v)])
        return out


DEFAULT_INSTANCES: tuple[Instance, ...] = (Instance(),)


@dataclass(frozen=True)
class PluginMetadata:
    name: str
    path: str
    outputFormat: OutputFormat
    ratePatterns: tuple[re.Pattern, ...] = ()
    isCustom: bool = False
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def statusPath(self) -> str:
        return f"{self.path}/status"

    def isRateEligible(self, metricName: str) -> bool:
        return any(p.search(metricName) for p in self.ratePatterns)


@dataclass(frozen=True)
class MetricPoint:
    value: float
    timestamp: float = 0.0
    dimensions: dict[str, str] = field(default_factory=dict)

    def toJson(self) -> dict[str, Any]:
        return {"v": self.value, "t": self.timestamp, "d": dict(self.dimensions)}


@dataclass(frozen=True)
class MetricWrite:
    name: str
    points: tuple[MetricPoint, ...] = ()

    def toJson(self) -> dict[str, Any]:
        return {"n": self.name, "p": [p.toJson() for p in self.points]}


@dataclass(frozen=True)
class PluginOutput:
    state: PluginState
    message: str
    points: tuple[MetricWrite, ...] | None = None
    metrics: dict[str, float] | None = None
    timestamp: float = 0.0

    def metricValues(self) -> dict[str, float]:
        if self.metrics is not None:
            return dict(self.metrics)

        out: dict[str, float] = {}
        for w in self.points or ():
            if w.points:
                out[w.name] = float(w.points[0].value)
        return out


@dataclass(frozen=True)
class StatusRow:
    key: str
    plugin: str
    instance: str
    state: PluginState
    text: str
    ts: float = 0.0
