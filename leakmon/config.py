from __future__ import annotations

import argparse
import os
import sys
from argparse import RawDescriptionHelpFormatter
from dataclasses import dataclass, asdict
from typing import List

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib

from .constants import (
    DEFAULT_ALERT_THRESHOLD,
    DEFAULT_NAME,
    DEFAULT_PATH,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_PORT,
    DEFAULT_SENSOR1_LOCATION,
    DEFAULT_SENSOR2_LOCATION,
    DEFAULT_STATUS_SOCKET,
    FETCH_BUDGET_S,
    MIN_POLL_INTERVAL_S,
    USAGE_EXAMPLES,
)
from .errors import ConfigError


@dataclass
class MonitorConfig:
    """Settings consumed by LeakMonitor. Locations are display labels only."""
    ip_address: str
    port: int = DEFAULT_PORT
    path: str = DEFAULT_PATH
    name: str = DEFAULT_NAME
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    alert_threshold: float = DEFAULT_ALERT_THRESHOLD
    sensor1_location: str = DEFAULT_SENSOR1_LOCATION
    sensor2_location: str = DEFAULT_SENSOR2_LOCATION

    def to_dict(self) -> dict:
        return asdict(self)


def validate_config(cfg: MonitorConfig) -> List[str]:
    """Check a configuration.

    Raises ConfigError for settings the monitor cannot run with. Returns a list
    of warnings for settings that work but are probably unintended."""
    warnings = []
    if not (cfg.ip_address or "").strip():
        raise ConfigError("device address is required (--address or [device] ip_address)")
    if not 0 < int(cfg.port) < 65536:
        raise ConfigError(f"port out of range: {cfg.port}")
    if cfg.poll_interval_s <= 0:
        raise ConfigError(f"poll interval must be positive: {cfg.poll_interval_s}")
    if not 0 <= cfg.alert_threshold <= 100:
        raise ConfigError(f"alert threshold must be a relative humidity between 0 and 100: {cfg.alert_threshold}")

    if cfg.poll_interval_s < MIN_POLL_INTERVAL_S:
        warnings.append(f"poll interval {cfg.poll_interval_s:g}s is below the recommended minimum of {MIN_POLL_INTERVAL_S:g}s")
    if cfg.poll_interval_s < FETCH_BUDGET_S:
        warnings.append(
            f"poll interval {cfg.poll_interval_s:g}s is shorter than the {FETCH_BUDGET_S:g}s fetch budget; "
            "slow responses will make poll cycles run back-to-back"
        )
    return warnings


def get_bool_env(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    val = val.lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def get_notifier_config():
    return {
        "enabled": get_bool_env("LEAKMON_NOTIFY", False),
        "pushover_token": os.getenv("PUSHOVER_TOKEN"),
        "pushover_user": os.getenv("PUSHOVER_USER"),
    }


def load_toml_config(path: str) -> dict:
    """Load TOML configuration from path."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _get_cfg(cfg: dict, section: str, key: str, default=None, aliases=()):
    sec = cfg.get(section, {})
    if not isinstance(sec, dict):
        return default
    for k in (key, *aliases):
        if k in sec:
            return sec[k]
    return default


def config_defaults_from(cfg: dict) -> dict:
    """Map TOML config into argparse defaults.

    The [device] table also accepts the sensor board's original plugin field
    names (IpAddress, pollTimer, alertThreshold, sensor1Location, sensor2Location)."""
    return {
        "address": _get_cfg(cfg, "device", "ip_address", None, aliases=("IpAddress",)),
        "port": _get_cfg(cfg, "device", "port", DEFAULT_PORT),
        "path": _get_cfg(cfg, "device", "path", DEFAULT_PATH),
        "name": _get_cfg(cfg, "device", "name", DEFAULT_NAME),
        "poll_interval": _get_cfg(
            cfg, "poll", "interval",
            _get_cfg(cfg, "device", "pollTimer", DEFAULT_POLL_INTERVAL_S),
        ),
        "alert_threshold": _get_cfg(
            cfg, "alert", "threshold",
            _get_cfg(cfg, "device", "alertThreshold", DEFAULT_ALERT_THRESHOLD),
        ),
        "sensor1_location": _get_cfg(
            cfg, "sensors", "sensor1_location",
            _get_cfg(cfg, "device", "sensor1Location", DEFAULT_SENSOR1_LOCATION),
        ),
        "sensor2_location": _get_cfg(
            cfg, "sensors", "sensor2_location",
            _get_cfg(cfg, "device", "sensor2Location", DEFAULT_SENSOR2_LOCATION),
        ),
        "verbose": _get_cfg(cfg, "logging", "verbose", False),
        "no_banner": _get_cfg(cfg, "logging", "no_banner", False),
        "json": _get_cfg(cfg, "logging", "json", False),
        "status_socket": _get_cfg(cfg, "control", "socket", DEFAULT_STATUS_SOCKET),
    }


def config_from_args(args) -> MonitorConfig:
    """Build a MonitorConfig from a parsed (and config-file backfilled) namespace."""
    try:
        return MonitorConfig(
            ip_address=(args.address or "").strip(),
            port=int(args.port),
            path=str(args.path),
            name=str(args.name),
            poll_interval_s=float(args.poll_interval),
            alert_threshold=float(args.alert_threshold),
            sensor1_location=str(args.sensor1_location),
            sensor2_location=str(args.sensor2_location),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid configuration value: {e}") from e


def resolved_config_dict(args) -> dict:
    return {
        "device": {
            "ip_address": args.address,
            "port": args.port,
            "path": args.path,
            "name": args.name,
        },
        "poll": {"interval": args.poll_interval},
        "alert": {"threshold": args.alert_threshold},
        "sensors": {
            "sensor1_location": args.sensor1_location,
            "sensor2_location": args.sensor2_location,
        },
        "logging": {
            "verbose": args.verbose,
            "no_banner": args.no_banner,
            "json": bool(args.json),
        },
        "control": {
            "socket": getattr(args, "status_socket", None),
        },
    }


def build_arg_parser(defaults=None):
    """Construct the CLI argument parser for the daemon."""
    ap = argparse.ArgumentParser(
        prog="leak-monitor",
        description="Poll a two-channel SHT humidity sensor board and raise a debounced leak alert.",
        epilog=USAGE_EXAMPLES,
        formatter_class=RawDescriptionHelpFormatter,
    )
    # Built-in defaults; TOML values are backfilled after parsing for args left unset.
    if defaults is None:
        defaults = config_defaults_from({})
    ap.set_defaults(**defaults)
    ap.add_argument("-a", "--address", help="Sensor board address: host, host:port or http:// URL.")
    ap.add_argument("--port", type=int, help="HTTP port of the sensor board (default: 80).")
    ap.add_argument("--path", help="Path of the telemetry page (default: /).")
    ap.add_argument("--name", help="Display name of the leak sensor.")
    ap.add_argument("--poll-interval", type=float, help="Seconds between the end of one poll and the start of the next.")
    ap.add_argument("--alert-threshold", type=float, help="Relative humidity (%%) above which a leak is reported.")
    ap.add_argument("--sensor1-location", help="Display label for sensor 1.")
    ap.add_argument("--sensor2-location", help="Display label for sensor 2.")

    ap.add_argument("--verbose", dest="verbose", action="store_true", help="Verbose logging (raw payloads, per-record parsing).")
    ap.add_argument("--no-verbose", dest="verbose", action="store_false", help="Disable verbose logging.")
    json_group = ap.add_mutually_exclusive_group()
    json_group.add_argument("--json", dest="json", action="store_true", help="Emit JSON log events.")
    json_group.add_argument("--no-json", dest="json", action="store_false", help="Disable JSON log output.")
    ap.add_argument("--no-banner", dest="no_banner", action="store_true", help="Disable the startup banner.")
    ap.add_argument("--banner", dest="no_banner", action="store_false", help="Enable the startup banner.")
    sock_group = ap.add_mutually_exclusive_group()
    sock_group.add_argument("--status-socket", dest="status_socket",
                            help="Path to a local UNIX status socket (queried by leakmonctl.py).")
    sock_group.add_argument("--no-status-socket", dest="status_socket", action="store_const", const="",
                            help="Disable the local status socket.")

    ap.add_argument("--doctor", action="store_true", help="Fetch once, print a connectivity/parse diagnostic and exit.")
    ap.add_argument("--once", action="store_true", help="Run a single poll cycle, print the snapshot as JSON and exit.")
    ap.add_argument("--config", help="Path to a TOML config file. CLI args override config values.")
    ap.add_argument("--print-config", action="store_true", help="Print the resolved configuration and exit.")
    ap.add_argument("--version", action="store_true", help="Print version and exit.")
    return ap


def apply_config_file(args, argv=None) -> None:
    """Backfill args from the TOML file named by --config.

    Only options not given on the command line are taken from the file."""
    if not getattr(args, "config", None):
        return
    cfg = load_toml_config(args.config)
    explicit = _explicit_dests(sys.argv[1:] if argv is None else argv)
    for k, v in config_defaults_from(cfg).items():
        if k not in explicit:
            setattr(args, k, v)


def _explicit_dests(argv) -> set:
    if not argv:
        return set()
    out = set()
    for tok in argv:
        if tok.startswith("-a") and not tok.startswith("--"):
            out.add("address")
            continue
        if not tok.startswith("--"):
            continue
        opt = tok[2:].split("=", 1)[0]
        if opt == "banner":
            opt = "no-banner"
        elif opt.startswith("no-") and opt != "no-banner":
            opt = opt[3:]
        out.add(opt.replace("-", "_"))
    return out
