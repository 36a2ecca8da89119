from __future__ import annotations

import threading
from typing import Optional

import requests

from .constants import LEAK_DETECTED, GENERAL_FAULT
from .state import MonitorState

PUSHOVER_URL = "https://api.pushover.net/1/messages.json"


class Notifier:
    """Pushover notifications for leak and device-fault transitions.

    Delivery happens on a daemon thread so a slow notification service never
    delays a poll cycle. Failures are logged, never raised."""
    def __init__(
        self,
        enabled: bool,
        pushover_token: Optional[str],
        pushover_user: Optional[str],
        timeout_s: float = 5.0,
        logger=None,
        title: str = "Leak Alarm",
    ):
        self.enabled = enabled and bool(pushover_token and pushover_user)
        self._token = pushover_token
        self._user = pushover_user
        self._timeout = timeout_s
        self.logger = logger
        self.title = title

    def send(self, title: str, message: str, priority: int = 0):
        if not self.enabled:
            return
        threading.Thread(target=self._send_sync, args=(title, message, priority), daemon=True).start()

    def _send_sync(self, title: str, message: str, priority: int):
        try:
            resp = requests.post(
                PUSHOVER_URL,
                data={
                    "token": self._token,
                    "user": self._user,
                    "title": title,
                    "message": message,
                    "priority": priority,
                },
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except Exception as e:
            if self.logger is not None:
                self.logger.emit("notify_error", error=str(e))

    def alert_changed(self, snap: MonitorState, threshold: float):
        readings = ", ".join(f"{ch.location} {ch.humidity:.1f}% RH" for ch in snap.channels())
        if snap.alert_state == LEAK_DETECTED:
            self.send(self.title, f"Leak detected: {readings} (threshold {threshold:g}%)", priority=1)
        else:
            self.send(self.title, f"Leak alert cleared: {readings}")

    def device_fault_changed(self, snap: MonitorState):
        if snap.device_fault == GENERAL_FAULT:
            detail = f" ({snap.last_error})" if snap.last_error else ""
            self.send(self.title, f"Sensor board not responding{detail}")
        else:
            self.send(self.title, "Sensor board back online")
