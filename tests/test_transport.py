import json
import socket

from plugwatch.config import TransportConfig
from plugwatch.pluginApi import MetricPoint, MetricWrite
from plugwatch.transport import (
    ConsoleTransport,
    HttpTransport,
    QueuedTransport,
    UdpTransport,
    buildWriteRequest,
    createTransport,
)


def sampleWrites():
    return [
        MetricWrite(name="plugins.load.load1", points=(MetricPoint(value=0.5, timestamp=10, dimensions={"host": "h"}),)),
    ]


def test_write_request_shape():
    assert buildWriteRequest(sampleWrites()) == {
        "writes": [{"n": "plugins.load.load1", "p": [{"v": 0.5, "t": 10, "d": {"host": "h"}}]}],
    }


def test_console_transport_logs_points(core):
    transportObj = ConsoleTransport(core)
    transportObj.start()
    transportObj.send(sampleWrites())
    transportObj.stop()

    assert any("METRIC plugins.load.load1 0.5 {host=h}" in ln for ln in core.logLines())


def test_udp_transport_sends_one_datagram_per_batch(core):
    sockObj = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sockObj.bind(("127.0.0.1", 0))
    sockObj.settimeout(5.0)
    try:
        port = sockObj.getsockname()[1]
        transportObj = UdpTransport(core, host="127.0.0.1", port=port)
        transportObj.start()
        transportObj.send(sampleWrites())

        dataBytes, _ = sockObj.recvfrom(65535)
        transportObj.stop()
    finally:
        sockObj.close()

    assert json.loads(dataBytes.decode("utf-8")) == buildWriteRequest(sampleWrites())


class FailingTransport(QueuedTransport):
    name = "failing"

    def deliver(self, writes):
        raise OSError("network down")


def test_delivery_errors_are_logged(core):
    transportObj = FailingTransport(core)
    transportObj.start()
    transportObj.send(sampleWrites())
    transportObj.stop()

    assert any("[failing] delivery failed OSError: network down" in ln for ln in core.logLines())


def test_full_queue_drops_batch(core):
    transportObj = ConsoleTransport(core, queueSize=1)
    transportObj.send(sampleWrites())
    transportObj.send(sampleWrites())

    assert any("queue full, dropping 1 write(s)" in ln for ln in core.logLines())


def test_empty_batch_is_ignored(core):
    transportObj = ConsoleTransport(core, queueSize=1)
    transportObj.send([])
    assert transportObj.queueObj.empty()


def test_create_transport_picks_backend(core):
    assert isinstance(createTransport(core, TransportConfig()), ConsoleTransport)
    assert isinstance(createTransport(core, TransportConfig(kind="udp")), UdpTransport)
    httpObj = createTransport(core, TransportConfig(kind="http", url="http://127.0.0.1:1/write"))
    assert isinstance(httpObj, HttpTransport)
    assert httpObj.url == "http://127.0.0.1:1/write"
