#!/usr/bin/env python3
"""Local status client for leak-monitor.

Reads the monitor's current readings over its local UNIX socket instead of
polling the sensor board a second time.

Commands:
  status | version | test-notify

Socket path:
  - default: /run/leakmon/leakmon.sock
  - override: --socket PATH or LEAKMON_SOCKET env var
"""

from __future__ import annotations

import argparse
import json
import os
import socket
import sys

from leakmon.config import get_notifier_config
from leakmon.constants import DEFAULT_STATUS_SOCKET, LEAK_DETECTED, GENERAL_FAULT
from leakmon.notify import Notifier


class _ErrorCollector:
    def __init__(self):
        self.errors = []

    def emit(self, event: str, **fields):
        self.errors.append(fields.get("error", event))


def _send(sock_path: str, cmd: str) -> dict:
    s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        s.settimeout(3.0)
        s.connect(sock_path)
        s.sendall((cmd.strip() + "\n").encode("utf-8"))
        data = b""
        while b"\n" not in data and len(data) < 65536:
            chunk = s.recv(4096)
            if not chunk:
                break
            data += chunk
    except OSError as e:
        return {"ok": False, "error": f"cannot reach monitor at {sock_path}: {e}"}
    finally:
        s.close()

    line = data.decode("utf-8", errors="replace").strip()
    if not line:
        return {"ok": False, "error": "empty response"}
    try:
        return json.loads(line)
    except ValueError:
        return {"ok": False, "error": "non-json response", "raw": line}


def format_status(resp: dict) -> str:
    state = resp.get("state", {})
    leak = "LEAK" if state.get("alert_state") == LEAK_DETECTED else "ok"
    device = "FAULT" if state.get("device_fault") == GENERAL_FAULT else "ok"
    parts = [f"ok  version={resp.get('version', '')} leak={leak} device={device}"]
    for key in ("sensor1", "sensor2"):
        ch = state.get(key) or {}
        health = "FAULT" if ch.get("health") == GENERAL_FAULT else "ok"
        parts.append(
            f"{key}=[{ch.get('location')}: {ch.get('temperature', 0.0):.1f}C "
            f"{ch.get('humidity', 0.0):.1f}%RH {health}]"
        )
    return " ".join(parts)


def main() -> int:
    ap = argparse.ArgumentParser(description="Query leak-monitor via its local UNIX socket")
    ap.add_argument("command", choices=["status", "version", "test-notify"],
                    help="Command to send to the daemon")
    ap.add_argument("--socket", default=os.environ.get("LEAKMON_SOCKET", DEFAULT_STATUS_SOCKET),
                    help=f"Status socket path (default: {DEFAULT_STATUS_SOCKET})")
    ap.add_argument("--json", action="store_true", help="Print raw JSON response")
    args = ap.parse_args()

    if args.command == "test-notify":
        cfg = get_notifier_config()
        if not cfg["pushover_token"] or not cfg["pushover_user"]:
            print("error: PUSHOVER_TOKEN and PUSHOVER_USER must be set", file=sys.stderr)
            return 2
        logger = _ErrorCollector()
        n = Notifier(enabled=True, pushover_token=cfg["pushover_token"], pushover_user=cfg["pushover_user"],
                     logger=logger)
        # Synchronous so the process does not exit before delivery.
        n._send_sync("Leak Alarm", "Test notification from leakmonctl", 0)
        if logger.errors:
            print(f"error: {logger.errors[-1]}", file=sys.stderr)
            return 2
        print("ok")
        return 0

    resp = _send(args.socket, args.command)
    if args.json:
        print(json.dumps(resp, indent=2, sort_keys=True))
        return 0 if resp.get("ok") else 2

    if not resp.get("ok"):
        print(f"error: {resp.get('error', 'unknown error')}", file=sys.stderr)
        raw = resp.get("raw")
        if raw:
            print(raw, file=sys.stderr)
        return 2

    if args.command == "status":
        print(format_status(resp))
    else:
        print(f"ok  version={resp.get('version', '')}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
