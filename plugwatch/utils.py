"""Coercion of loosely typed TOML values plus file loading helpers."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import tomli

TRUE_WORDS = frozenset(("1", "true", "yes", "y", "on", "enabled"))
FALSE_WORDS = frozenset(("0", "false", "no", "n", "off", "disabled"))


def safeStr(val: Any) -> str:
    try:
        return str(val)
    except Exception:
        return ""


def parseStr(val: Any) -> str | None:
    if val is None:
        return None
    return safeStr(val).strip() or None


def parseStrLower(val: Any) -> str | None:
    s = parseStr(val)
    return None if s is None else s.lower()


def _numberText(val: Any) -> str | None:
    # toml booleans are ints in python, never treat them as numbers
    if isinstance(val, bool):
        return None
    return parseStr(val)


def parseInt(val: Any, defaultVal: int) -> int:
    s = _numberText(val)
    if s is None:
        return int(defaultVal)
    try:
        return int(s)
    except ValueError:
        pass
    try:
        return int(float(s))
    except ValueError:
        return int(defaultVal)


def parseFloat(val: Any, defaultVal: float) -> float:
    s = _numberText(val)
    if s is None:
        return float(defaultVal)
    try:
        return float(s)
    except ValueError:
        return float(defaultVal)


def parseBool(val: Any, defaultVal: bool) -> bool:
    if isinstance(val, (bool, int, float)):
        return bool(val)
    word = parseStrLower(val)
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    return bool(defaultVal)


def parseStrList(val: Any) -> list[str]:
    items = val if isinstance(val, (list, tuple)) else [val]
    return [s for s in (parseStr(x) for x in items) if s]


def parseStrDict(val: Any) -> dict[str, str]:
    """Table of plugin arguments; keys and values become strings, None values are dropped."""
    if not isinstance(val, dict):
        return {}
    out: dict[str, str] = {}
    for k, v in val.items():
        key = parseStr(k)
        if key and v is not None:
            out[key] = safeStr(v)
    return out


def loadToml(pathObj: Path) -> dict[str, Any]:
    pathObj = Path(pathObj)
    try:
        dataObj = tomli.loads(pathObj.read_text(encoding="utf-8"))
    except UnicodeDecodeError as exc:
        raise RuntimeError(f"{pathObj.name}: not valid utf-8 ({exc.reason} at byte {exc.start})") from exc
    except tomli.TOMLDecodeError as exc:
        raise RuntimeError(f"{pathObj.name}: {exc}") from exc
    if not isinstance(dataObj, dict):
        raise RuntimeError(f"{pathObj.name}: invalid toml root")
    return dataObj


def deepMerge(baseObj: dict[str, Any], overrideObj: dict[str, Any]) -> dict[str, Any]:
    """Nested tables are merged key by key, anything else in overrideObj replaces."""
    merged = dict(baseObj)
    for key, newVal in overrideObj.items():
        oldVal = merged.get(key)
        if isinstance(oldVal, dict) and isinstance(newVal, dict):
            merged[key] = deepMerge(oldVal, newVal)
        else:
            merged[key] = newVal
    return merged
