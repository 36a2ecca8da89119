from __future__ import annotations

import json
import signal
import sys
import threading

from .config import (
    apply_config_file,
    build_arg_parser,
    config_from_args,
    get_notifier_config,
    resolved_config_dict,
)
from .constants import VERSION
from .doctor import run_doctor
from .errors import ConfigError
from .logging import JsonLogger
from .monitor import LeakMonitor
from .notify import Notifier


def main(argv=None):
    """CLI entry point. Parses args, configures the monitor, and runs the poll loop."""
    ap = build_arg_parser()
    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv:
        ap.print_help()
        return 0

    args = ap.parse_args(argv)

    if args.version:
        print(VERSION)
        return 0

    # Apply TOML configuration (if provided). CLI arguments take precedence.
    if args.config:
        try:
            apply_config_file(args, argv)
        except (OSError, ValueError) as e:
            print(f"ERROR: cannot read config file {args.config}: {e}", file=sys.stderr)
            return 2

    if args.print_config:
        print(json.dumps(resolved_config_dict(args), indent=2, sort_keys=True))
        return 0

    try:
        cfg = config_from_args(args)
        if args.doctor:
            if not cfg.ip_address:
                raise ConfigError("device address is required (--address or [device] ip_address)")
            return run_doctor(cfg)

        # --once keeps stdout for the snapshot JSON.
        logger = JsonLogger(
            enable_json=bool(args.json),
            verbose=bool(args.verbose),
            stream=(sys.stderr if args.once else None),
        )
        notifier = Notifier(logger=logger, title=cfg.name, **get_notifier_config())
        mon = LeakMonitor(cfg, logger=logger, notifier=notifier)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    for w in mon.config_warnings:
        logger.emit("config_warning", message=w)

    if args.once:
        snap = mon.poll_once()
        print(json.dumps(snap.to_dict(), indent=2, sort_keys=True))
        return 0

    if not args.no_banner:
        print(f"leak-monitor {VERSION}")
        print("For two-channel SHT humidity sensor boards")
        # Structured startup event for log scraping
        logger.emit(
            "startup",
            version=VERSION,
            url=mon.fetcher.url,
            name=cfg.name,
            poll_interval_s=cfg.poll_interval_s,
            alert_threshold=cfg.alert_threshold,
            sensor1_location=cfg.sensor1_location,
            sensor2_location=cfg.sensor2_location,
            notify=notifier.enabled,
            status_socket=args.status_socket or None,
            verbose=args.verbose,
        )

    if args.status_socket:
        mon.start_status_socket(args.status_socket)
    mon.start()

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    while not stop.is_set():
        stop.wait(0.5)

    mon.stop()
    logger.emit("shutdown")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
