import pytest
from pydantic import ValidationError

from dnids.core.config import CONFIG_ENV, DesmanConfig, WatchdogConfig, load_config
from dnids.core.protocol import DESMAN_PORT

CONFIG_YAML = """
desman:
  watchdogs: 3
  logfile: /tmp/desman.log
  port: 12000
watchdog:
  desman: 192.168.1.10
  logfile: /tmp/watchdog.log
  interface: eth0
  timeslice: 2.5
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "dnids.yaml"
    path.write_text(CONFIG_YAML)
    return path


def test_watchdog_needs_exactly_one_source():
    with pytest.raises(ValidationError):
        WatchdogConfig(desman="10.0.0.1", logfile="w.log")
    with pytest.raises(ValidationError):
        WatchdogConfig(desman="10.0.0.1", logfile="w.log", interface="eth0", pcapfile="t.pcap")

    config = WatchdogConfig(desman="10.0.0.1", logfile="w.log", pcapfile="t.pcap")
    assert config.replay
    assert config.timeslice == 1.0
    assert config.port == DESMAN_PORT


def test_timeslice_has_a_floor():
    with pytest.raises(ValidationError):
        WatchdogConfig(desman="10.0.0.1", logfile="w.log", interface="eth0", timeslice=0.05)


def test_desman_needs_at_least_one_watchdog():
    with pytest.raises(ValidationError):
        DesmanConfig(watchdogs=0, logfile="d.log")


def test_sections_load_from_yaml(config_file):
    desman = load_config(DesmanConfig, "desman", config_path=str(config_file))
    assert (desman.watchdogs, desman.port, desman.host) == (3, 12000, None)

    watchdog = load_config(WatchdogConfig, "watchdog", config_path=str(config_file))
    assert watchdog.interface == "eth0"
    assert watchdog.timeslice == 2.5
    assert not watchdog.replay


def test_command_line_overrides_file(config_file):
    config = load_config(
        DesmanConfig, "desman", config_path=str(config_file), watchdogs=5, port=None
    )
    assert config.watchdogs == 5
    assert config.port == 12000


def test_environment_names_the_file(config_file, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV, str(config_file))
    assert load_config(DesmanConfig, "desman").watchdogs == 3


def test_missing_environment_file_is_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "absent.yaml"))
    config = load_config(DesmanConfig, "desman", watchdogs=2, logfile="d.log")
    assert config.port == DESMAN_PORT


def test_missing_explicit_file_is_an_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(DesmanConfig, "desman", config_path=str(tmp_path / "absent.yaml"))
