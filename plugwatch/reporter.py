from __future__ import annotations

import time

from .core import AgentCore
from .pluginApi import Instance, MetricPoint, MetricWrite, PluginMetadata, PluginOutput, StatusRow
from .rates import RateTracker, rateKey
from .transport import Transport


def metricName(pluginName: str, name: str) -> str:
    return f"plugins.{pluginName}.{name}"


class Reporter:
    """
    Turns one parsed plugin output into metric writes.

    plugins.<plugin>.status         1.0, dims host/status/status_msg[/instance]
    plugins.<plugin>.<metric>       nagios perfdata, dims host[/instance]
    plugins.<plugin>.<write>        errplane writes, forwarded with instance injected
    plugins.<plugin>.<metric>.rate  per-second change, same dims as the status point
    """

    def __init__(self, core: AgentCore, *, hostname: str, transport: Transport) -> None:
        self.core = core
        self.hostname = hostname
        self.transport = transport

    def statusDimensions(self, instance: Instance, output: PluginOutput) -> dict[str, str]:
        dims = {
            "host": self.hostname,
            "status": str(output.state),
            "status_msg": output.message,
        }
        if instance.name:
            dims["instance"] = instance.name
        return dims

    def buildWrites(
        self,
        plugin: PluginMetadata,
        instance: Instance,
        output: PluginOutput,
        rates: dict[str, float],
        *,
        nowTs: float,
    ) -> list[MetricWrite]:
        statusDims = self.statusDimensions(instance, output)
        writes = [
            MetricWrite(
                name=metricName(plugin.name, "status"),
                points=(MetricPoint(value=1.0, timestamp=nowTs, dimensions=statusDims),),
            )
        ]

        if output.points is not None:
            for w in output.points:
                pts = w.points
                if instance.name:
                    pts = tuple(
                        MetricPoint(
                            value=p.value,
                            timestamp=p.timestamp,
                            dimensions={**p.dimensions, "instance": instance.name},
                        )
                        for p in w.points
                    )
                writes.append(MetricWrite(name=metricName(plugin.name, w.name), points=pts))

        if output.metrics is not None:
            dims = {"host": self.hostname}
            if instance.name:
                dims["instance"] = instance.name
            for name, value in output.metrics.items():
                writes.append(
                    MetricWrite(
                        name=metricName(plugin.name, name),
                        points=(MetricPoint(value=value, timestamp=nowTs, dimensions=dict(dims)),),
                    )
                )

        for name, value in rates.items():
            writes.append(
                MetricWrite(
                    name=metricName(plugin.name, name) + ".rate",
                    points=(MetricPoint(value=value, timestamp=nowTs, dimensions=dict(statusDims)),),
                )
            )

        return writes

    def report(
        self,
        plugin: PluginMetadata,
        instance: Instance,
        output: PluginOutput,
        rateTracker: RateTracker,
    ) -> list[MetricWrite]:
        key = rateKey(plugin.name, instance.name)
        rates = rateTracker.update(key, output, plugin.isRateEligible)
        if rates:
            self.core.logDebug(f"rates for {key}: {rates}")

        nowTs = time.time()
        writes = self.buildWrites(plugin, instance, output, rates, nowTs=nowTs)
        self.transport.send(writes)

        self.core.writeStatus(
            StatusRow(
                key=key,
                plugin=plugin.name,
                instance=instance.name,
                state=output.state,
                text=output.message,
                ts=output.timestamp,
            )
        )
        return writes
