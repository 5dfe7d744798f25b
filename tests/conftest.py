import pytest

from dnids.core.config import DesmanConfig
from dnids.core.engine import TrafficAnalyzer
from dnids.core.models import PacketDescriptor


def _packet(
    dst: str = "10.0.0.2",
    size: int = 100,
    src: str = "10.0.0.1",
    src_port: int = 1111,
    dst_port: int = 443,
    protocol: str = "TCP",
    ts=None,
) -> PacketDescriptor:
    return PacketDescriptor(
        size=size,
        src=src,
        dst=dst,
        src_port=src_port,
        dst_port=dst_port,
        protocol=protocol,
        ts=ts,
    )


@pytest.fixture
def make_packet():
    return _packet


@pytest.fixture
def engine():
    return TrafficAnalyzer()


@pytest.fixture
def desman_config(tmp_path):
    def build(watchdogs: int) -> DesmanConfig:
        return DesmanConfig(
            watchdogs=watchdogs,
            logfile=str(tmp_path / "desman.log"),
            host="127.0.0.1",
            port=0,
        )
    return build
