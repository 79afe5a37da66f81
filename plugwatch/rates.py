from __future__ import annotations

import threading
from typing import Callable

from .pluginApi import PluginOutput


def rateKey(pluginName: str, instanceName: str) -> str:
    return f"{pluginName}/{instanceName}"


class RateTracker:
    """
    Last successfully parsed output per plugin/instance key.

    update() compares the new output against the stored one and returns the
    per-second change of every metric present in both. Only one sample is kept
    per key; the store is replaced on every call.
    """

    def __init__(self) -> None:
        self.lockObj = threading.Lock()
        self.lastByKey: dict[str, PluginOutput] = {}

    def update(
        self,
        key: str,
        current: PluginOutput,
        isEligible: Callable[[str], bool] | None = None,
    ) -> dict[str, float]:
        with self.lockObj:
            previous = self.lastByKey.get(key)
            self.lastByKey[key] = current

        if previous is None:
            return {}

        elapsed = float(current.timestamp) - float(previous.timestamp)
        if elapsed <= 0.0:
            return {}

        prevValues = previous.metricValues()
        rates: dict[str, float] = {}
        for name, value in current.metricValues().items():
            if isEligible is not None and not isEligible(name):
                continue
            prev = prevValues.get(name)
            if prev is None:
                continue
            rates[name] = (value - prev) / elapsed
        return rates

    def forget(self, key: str) -> None:
        with self.lockObj:
            self.lastByKey.pop(key, None)

    def keys(self) -> list[str]:
        with self.lockObj:
            return sorted(self.lastByKey.keys())
