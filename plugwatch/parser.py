"""
Parsing of the first output line of a plugin run.

Two line formats are understood:

errplane    "<message> | <json array of writes>"
nagios      "<message>" or "<message> | <perfdata>"

Perfdata is a space separated list of name=value[unit][;warn[;crit[;min[;max]]]]
tokens. Names containing spaces are single quoted, a doubled quote inside a
quoted name stands for one literal quote.

Everything in here is pure: the capture timestamp is passed in by the caller.
"""
from __future__ import annotations

import json
import math
from typing import Any, Callable

from .pluginApi import MetricPoint, MetricWrite, OutputFormat, PluginOutput, PluginState

LogFn = Callable[[str], None]

START = 0
IN_QUOTED_FIELD = 1
IN_VALUE = 2

UNITS_2 = ("ms", "us", "KB", "MB", "GB")
UNITS_1 = ("s", "B", "%", "c")


class ParseError(ValueError):
    pass


def tokenizePerfdata(text: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    state = START
    quoteOpen = False
    name = ""
    value = ""
    token = ""

    i = 0
    n = len(text)
    while i < n:
        ch = text[i]

        if ch == "'":
            if state == IN_QUOTED_FIELD:
                if quoteOpen and i + 1 < n and text[i + 1] == "'":
                    token += "'"
                    i += 1
                else:
                    quoteOpen = not quoteOpen
            elif state == IN_VALUE:
                # a quote right after a value starts the next name
                pairs.append((name, value + token))
                name, value, token = "", "", ""
                state = IN_QUOTED_FIELD
                quoteOpen = True
            else:
                state = IN_QUOTED_FIELD
                quoteOpen = True
                token = ""

        elif ch == "=":
            if state == IN_QUOTED_FIELD and quoteOpen:
                token += ch
            else:
                if state == IN_VALUE:
                    # `a=1 b=2`: the text since the last space is the next name
                    pairs.append((name, value))
                name = token
                token = ""
                value = ""
                state = IN_VALUE

        elif ch == " ":
            if state == IN_VALUE:
                value = value + " " + token
                token = ""
            elif state == IN_QUOTED_FIELD:
                if quoteOpen:
                    token += ch
            else:
                token = ""

        else:
            token += ch

        i += 1

    if state == IN_VALUE:
        pairs.append((name, value + token))

    return pairs


def stripUnit(value: str) -> str:
    for unit in UNITS_2:
        if value.endswith(unit):
            return value[: -len(unit)]
    for unit in UNITS_1:
        if value.endswith(unit):
            return value[:-1]
    return value


def reduceValue(raw: str) -> float | None:
    value = raw.split(";", 1)[0].strip()
    if not value:
        return None
    try:
        return float(stripUnit(value))
    except ValueError:
        return None


def parseNagiosPerfdata(text: str, *, logFn: LogFn | None = None) -> dict[str, float]:
    # a repeated name keeps only its last raw value, even an empty one
    rawByName = dict(tokenizePerfdata(text))

    metrics: dict[str, float] = {}
    for name, raw in rawByName.items():
        if not raw.split(";", 1)[0].strip():
            continue
        num = reduceValue(raw)
        if num is None:
            if logFn is not None:
                logFn(f"cannot parse the value of metric '{name}' into a float: {raw.strip()!r}")
            continue
        metrics[name] = num
    return metrics


def parseNagiosLine(exitCode: int | None, firstLine: str, *, timestamp: float, logFn: LogFn | None = None) -> PluginOutput:
    line = firstLine.strip()
    parts = line.split("|")
    if len(parts) > 2:
        raise ParseError("first line has more than one '|', expected '<message> | <perfdata>'")

    state = PluginState.fromExitCode(exitCode)
    message = parts[0].strip()

    if len(parts) == 1:
        return PluginOutput(state=state, message=message, timestamp=timestamp)

    metrics = parseNagiosPerfdata(parts[1].strip(), logFn=logFn)
    return PluginOutput(state=state, message=message, metrics=metrics, timestamp=timestamp)


def _pick(obj: dict[str, Any], short: str, long: str) -> Any:
    return obj[short] if short in obj else obj.get(long)


def _decodePoint(obj: Any) -> MetricPoint:
    if not isinstance(obj, dict):
        raise ParseError(f"point must be an object, got {type(obj).__name__}")

    value = _pick(obj, "v", "value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(f"point value must be a number, got {value!r}")
    if not math.isfinite(float(value)):
        raise ParseError(f"point value must be finite, got {value!r}")

    ts = _pick(obj, "t", "time")
    if ts is None:
        ts = 0
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        raise ParseError(f"point time must be a number, got {ts!r}")

    dims = _pick(obj, "d", "dimensions")
    if dims is None:
        dims = {}
    if not isinstance(dims, dict):
        raise ParseError("point dimensions must be an object")

    return MetricPoint(
        value=float(value),
        timestamp=ts,
        dimensions={str(k): str(v) for k, v in dims.items()},
    )


def decodeWrites(raw: str) -> tuple[MetricWrite, ...]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid json after '|': {exc}") from exc

    if not isinstance(data, list):
        raise ParseError(f"expected a json array of writes, got {type(data).__name__}")

    writes: list[MetricWrite] = []
    for item in data:
        if not isinstance(item, dict):
            raise ParseError(f"write must be an object, got {type(item).__name__}")

        name = _pick(item, "n", "name")
        if not isinstance(name, str) or not name.strip():
            raise ParseError("write is missing its metric name")

        pts = _pick(item, "p", "points")
        if pts is None:
            pts = []
        if not isinstance(pts, list):
            raise ParseError(f"points of '{name}' must be an array")

        writes.append(MetricWrite(name=name.strip(), points=tuple(_decodePoint(p) for p in pts)))

    return tuple(writes)


def parseErrplaneLine(exitCode: int | None, firstLine: str, *, timestamp: float, logFn: LogFn | None = None) -> PluginOutput:
    line = firstLine.strip()
    if "|" not in line:
        raise ParseError("first line has no '|', expected '<message> | <json>'")

    message, payload = line.split("|", 1)
    writes = decodeWrites(payload.strip())
    return PluginOutput(
        state=PluginState.fromExitCode(exitCode),
        message=message.strip(),
        points=writes,
        timestamp=timestamp,
    )


PARSERS: dict[OutputFormat, Callable[..., PluginOutput]] = {
    OutputFormat.ERRPLANE: parseErrplaneLine,
    OutputFormat.NAGIOS: parseNagiosLine,
}


def parse(
    outputFormat: OutputFormat,
    exitCode: int | None,
    firstLine: str,
    *,
    timestamp: float,
    logFn: LogFn | None = None,
) -> PluginOutput:
    return PARSERS[outputFormat](exitCode, firstLine, timestamp=timestamp, logFn=logFn)
