#!/usr/bin/env python3
#
# Leak monitor for two-channel SHT humidity sensor boards
#
# Polls a small networked sensor board (e.g. Arduino based) that publishes a
# plain-text page with one CSV record per SHT sensor:
#
#   SHT,1,Soil Stack,Detected,22.2,22.2,22.3,51.7%,51.7%,51.6%
#
# The last three readings of each sensor are averaged, and a leak is reported
# when either sensor's relative humidity rises above the alert threshold. The
# alert only clears once both sensors drop below it again.
#

from __future__ import annotations

from leakmon.cli import main
from leakmon.config import MonitorConfig, build_arg_parser, config_from_args
from leakmon.logging import JsonLogger
from leakmon.monitor import LeakMonitor


if __name__ == "__main__":
    raise SystemExit(main())
