import io
import json

import pytest

from leakmon import cli
from leakmon.config import (
    MonitorConfig,
    apply_config_file,
    build_arg_parser,
    get_bool_env,
    validate_config,
)
from leakmon.constants import VERSION, LEAK_DETECTED
from leakmon.doctor import run_doctor
from leakmon.errors import ConfigError, FetchConnectionError


class FakeFetcher:
    url = "http://sensor.test/"

    def __init__(self, *results):
        self.results = list(results)

    def fetch(self):
        r = self.results.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def test_parser_defaults():
    m = load_module()
    ap = m.build_arg_parser()
    args = ap.parse_args(["--address", "192.168.1.50"])
    assert args.address == "192.168.1.50"
    assert args.port == 80
    assert args.path == "/"
    assert args.poll_interval == 30.0
    assert args.alert_threshold == 90.0
    assert args.sensor1_location == "Sensor 1"
    assert args.sensor2_location == "Sensor 2"
    assert args.name == "Leak Alarm"
    assert args.json is False

    cfg = m.config_from_args(args)
    assert cfg == m.MonitorConfig(ip_address="192.168.1.50")


def test_launcher_runs_a_poll_cycle_with_text_logging():
    m = load_module()
    out = io.StringIO()
    logger = m.JsonLogger(enable_json=False, stream=out)
    cfg = m.config_from_args(m.build_arg_parser().parse_args(["-a", "sensor.test", "--alert-threshold", "60"]))
    mon = m.LeakMonitor(cfg, logger=logger, fetcher=FakeFetcher(SAMPLE_PAYLOAD))

    snap = mon.poll_once()
    assert snap.alert_state == LEAK_DETECTED
    assert snap.sensor2.humidity == pytest.approx(61.0)
    assert " poll_ok " in out.getvalue()


def test_validate_rejects_unusable_settings():
    with pytest.raises(ConfigError):
        validate_config(MonitorConfig(ip_address=""))
    with pytest.raises(ConfigError):
        validate_config(MonitorConfig(ip_address="x", poll_interval_s=0))
    with pytest.raises(ConfigError):
        validate_config(MonitorConfig(ip_address="x", alert_threshold=150))
    with pytest.raises(ConfigError):
        validate_config(MonitorConfig(ip_address="x", port=70000))


def test_validate_warns_about_short_intervals():
    assert validate_config(MonitorConfig(ip_address="x")) == []
    assert len(validate_config(MonitorConfig(ip_address="x", poll_interval_s=2.0))) == 1
    assert len(validate_config(MonitorConfig(ip_address="x", poll_interval_s=0.5))) == 2


def test_toml_config_backfills_unset_args(tmp_path):
    path = tmp_path / "leakmon.toml"
    path.write_text(
        '[device]\n'
        'IpAddress = "10.1.2.3"\n'
        'pollTimer = 15\n'
        'sensor1Location = "Boiler"\n'
        '\n'
        '[alert]\n'
        'threshold = 85\n'
        '\n'
        '[logging]\n'
        'json = true\n'
    )
    argv = ["--config", str(path), "--alert-threshold", "80", "--no-json"]
    args = build_arg_parser().parse_args(argv)
    apply_config_file(args, argv)

    assert args.address == "10.1.2.3"
    assert args.poll_interval == 15
    assert args.sensor1_location == "Boiler"
    assert args.sensor2_location == "Sensor 2"
    # Explicit CLI values win over the file.
    assert args.alert_threshold == 80.0
    assert args.json is False


def test_get_bool_env(monkeypatch):
    monkeypatch.setenv("LEAKMON_TEST_FLAG", "yes")
    assert get_bool_env("LEAKMON_TEST_FLAG") is True
    monkeypatch.setenv("LEAKMON_TEST_FLAG", "off")
    assert get_bool_env("LEAKMON_TEST_FLAG", True) is False
    monkeypatch.setenv("LEAKMON_TEST_FLAG", "maybe")
    assert get_bool_env("LEAKMON_TEST_FLAG", True) is True
    monkeypatch.delenv("LEAKMON_TEST_FLAG")
    assert get_bool_env("LEAKMON_TEST_FLAG") is False


def test_main_without_args_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage:" in capsys.readouterr().out


def test_main_version(capsys):
    assert cli.main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == VERSION


def test_main_print_config(capsys):
    assert cli.main(["--address", "10.0.0.9", "--poll-interval", "12", "--print-config"]) == 0
    cfg = json.loads(capsys.readouterr().out)
    assert cfg["device"]["ip_address"] == "10.0.0.9"
    assert cfg["poll"]["interval"] == 12.0
    assert cfg["alert"]["threshold"] == 90.0


def test_main_missing_address_is_a_config_error(capsys):
    assert cli.main(["--once"]) == 2
    assert "address is required" in capsys.readouterr().err


def test_main_once_prints_snapshot(monkeypatch, capsys):
    monkeypatch.delenv("LEAKMON_NOTIFY", raising=False)
    payload = "SHT,1,A,Detected,20,20,20,91%,91%,91%\nSHT,2,B,Detected,20,20,20,50%,50%,50%\n"
    monkeypatch.setattr("leakmon.fetch.TelemetryFetcher.fetch", lambda self: payload)

    assert cli.main(["--address", "sensor.test", "--once"]) == 0
    out = capsys.readouterr()
    snap = json.loads(out.out)
    assert snap["alert_state"] == LEAK_DETECTED
    assert snap["sensor1"]["humidity"] == 91.0
    assert "poll_ok" in out.err


def test_doctor_reports_both_channels(capsys):
    cfg = MonitorConfig(ip_address="sensor.test", sensor1_location="Boiler")
    fetcher = FakeFetcher(SAMPLE_PAYLOAD)
    assert run_doctor(cfg, fetcher=fetcher) == 0
    out = capsys.readouterr().out
    assert "OK: sensor 1 (Boiler)" in out
    assert "OK: sensor 2" in out
    assert "no leak" in out


def test_doctor_flags_faults_and_transport_errors(capsys):
    cfg = MonitorConfig(ip_address="sensor.test")
    assert run_doctor(cfg, fetcher=FakeFetcher("SHT,1,A,Failed\n")) == 1
    out = capsys.readouterr().out
    assert "sensor 1 (Sensor 1): fault" in out
    assert "sensor 2 (Sensor 2): no record" in out

    assert run_doctor(cfg, fetcher=FakeFetcher(FetchConnectionError("refused"))) == 1
    assert "FAIL: could not read telemetry (connection)" in capsys.readouterr().out
