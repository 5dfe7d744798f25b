import asyncio
import logging
import socket

import pytest
from scapy.layers.inet import IP, UDP
from scapy.layers.l2 import Ether
from scapy.utils import wrpcap

from dnids.cli import desman as desman_cli
from dnids.cli import watchdog as watchdog_cli
from dnids.core.config import DesmanConfig, WatchdogConfig

MACS = {"src": "02:00:00:00:00:01", "dst": "02:00:00:00:00:02"}


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def trace_file(tmp_path):
    frames = []
    for i in range(4):
        frame = Ether(bytes(Ether(**MACS) / IP(src="10.0.0.1", dst="10.0.0.2") / UDP(sport=4000, dport=53)))
        frame.time = i * 0.15
        frames.append(frame)

    path = tmp_path / "replay.pcap"
    wrpcap(str(path), frames)
    return path


@pytest.mark.asyncio
async def test_replayed_trace_reaches_desman_totals(tmp_path, trace_file, caplog):
    caplog.set_level(logging.INFO)
    port = _free_port()

    desman_config = DesmanConfig(
        watchdogs=1, logfile=str(tmp_path / "d.log"), host="127.0.0.1", port=port
    )
    watchdog_config = WatchdogConfig(
        desman="127.0.0.1",
        port=port,
        logfile=str(tmp_path / "w.log"),
        pcapfile=str(trace_file),
        timeslice=0.1,
    )

    desman_task = asyncio.create_task(desman_cli.run(desman_config))
    await asyncio.sleep(0)
    await asyncio.wait_for(watchdog_cli.run(watchdog_config), 5)
    await asyncio.wait_for(desman_task, 5)

    totals = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Total traffic")]
    assert totals == ["Total traffic 1 28 1"] * 3
    assert any(r.getMessage() == "Exiting..." for r in caplog.records)


def test_desman_main_rejects_missing_count(tmp_path, capsys):
    assert desman_cli.main(["-w", str(tmp_path / "d.log")]) == 1
    assert "usage" in capsys.readouterr().err


def test_watchdog_main_needs_a_source(tmp_path, capsys):
    assert watchdog_cli.main(["-w", str(tmp_path / "w.log"), "-c", "10.0.0.1"]) == 1
    assert "usage" in capsys.readouterr().err


def test_watchdog_sources_are_mutually_exclusive(tmp_path):
    with pytest.raises(SystemExit):
        watchdog_cli.main(["-w", "w.log", "-c", "10.0.0.1", "-r", "t.pcap", "-i", "eth0"])


def test_build_source_follows_config(tmp_path):
    replay = WatchdogConfig(desman="10.0.0.1", logfile="w.log", pcapfile="t.pcap")
    live = WatchdogConfig(desman="10.0.0.1", logfile="w.log", interface="eth0")

    assert watchdog_cli.build_source(replay).replay
    assert not watchdog_cli.build_source(live).replay
