from __future__ import annotations

VERSION = "1.0.0"

# Wire format literals
DEVICE_TYPE = "SHT"
STATUS_DETECTED = "Detected"
CHANNEL_INDICES = (1, 2)
SAMPLES_PER_READING = 3

# Status codes. Values match the HomeKit LeakDetected / StatusFault characteristics.
LEAK_NOT_DETECTED = 0
LEAK_DETECTED = 1
NO_FAULT = 0
GENERAL_FAULT = 1

# Defaults
DEFAULT_NAME = "Leak Alarm"
DEFAULT_PORT = 80
DEFAULT_PATH = "/"
DEFAULT_POLL_INTERVAL_S = 30.0
MIN_POLL_INTERVAL_S = 1.0
DEFAULT_ALERT_THRESHOLD = 90.0
DEFAULT_SENSOR1_LOCATION = "Sensor 1"
DEFAULT_SENSOR2_LOCATION = "Sensor 2"
DEFAULT_STATUS_SOCKET = "/run/leakmon/leakmon.sock"

# Total time allowed for one telemetry fetch, from request start to last byte.
FETCH_BUDGET_S = 3.0
FETCH_CHUNK_BYTES = 1024

STATUS_COMMANDS = ("status", "version")


USAGE_EXAMPLES = """\
Usage examples:
  # Poll a sensor board every 30 seconds, alert above 90% RH
  python leak-monitor.py --address 192.168.1.50

  # Faster polling, lower threshold, JSON event log
  python leak-monitor.py --address 192.168.1.50 --poll-interval 10 --alert-threshold 80 --json

  # Run from a TOML config file
  python leak-monitor.py --config /etc/leakmon.toml

  # One poll cycle, print the resulting snapshot and exit
  python leak-monitor.py --address 192.168.1.50 --once

  # Connectivity and parse diagnostic
  python leak-monitor.py --doctor --address 192.168.1.50
"""
