from __future__ import annotations

import json
import os
import socket
import threading
from typing import Callable, List, Optional

from .aggregate import aggregate
from .alert import LeakAlert
from .config import MonitorConfig, validate_config
from .constants import GENERAL_FAULT, NO_FAULT, LEAK_DETECTED, CHANNEL_INDICES, VERSION
from .errors import FetchError
from .fetch import TelemetryFetcher
from .parser import parse_payload, latest_by_channel
from .poller import PollScheduler
from .state import ChannelState, MonitorState
from .util import wall_s

Listener = Callable[[MonitorState], None]


class LeakMonitor:
    """Leak sensor poll engine.

    Each poll cycle fetches the sensor board's telemetry page, parses the SHT
    records, averages the three samples per channel and runs the leak hysteresis.
    The resulting state is committed in one step under a lock and then pushed to
    listeners. A failed fetch only raises the device fault flag: readings and
    the alert carry forward unchanged."""
    def __init__(
        self,
        config: MonitorConfig,
        logger,
        fetcher: Optional[TelemetryFetcher] = None,
        notifier=None,
        first_delay_s: float = 0.0,
    ):
        """
        Initialize the monitor.

        Validates the configuration (ConfigError on a missing address or bad
        values) and builds the fetcher. Threads are started by start();
        construction is side-effect free.
        """
        self.config = config
        self.logger = logger
        self.config_warnings = validate_config(config)
        self.fetcher = fetcher if fetcher is not None else TelemetryFetcher(config.ip_address, config.port, config.path)
        self.notifier = notifier

        self._state = MonitorState(
            sensor1=ChannelState(1, config.sensor1_location),
            sensor2=ChannelState(2, config.sensor2_location),
        )
        self._state_lock = threading.Lock()
        self.alert = LeakAlert(config.alert_threshold, self._state.alert_state)
        self._listeners: List[Listener] = []

        self._stop_evt = threading.Event()
        self._scheduler = PollScheduler(self.poll_once, config.poll_interval_s, logger=logger, first_delay_s=first_delay_s)

        # Optional local status socket
        self._status_thread = None
        self._status_stop_evt = threading.Event()
        self._status_sock_path: Optional[str] = None

    # ---------------- Read accessors ----------------

    def snapshot(self) -> MonitorState:
        """Consistent copy of the published state."""
        with self._state_lock:
            return self._state.copy()

    @property
    def alert_state(self) -> int:
        with self._state_lock:
            return self._state.alert_state

    @property
    def device_fault(self) -> int:
        with self._state_lock:
            return self._state.device_fault

    def channel(self, index: int) -> ChannelState:
        return self.snapshot().channel(index)

    def subscribe(self, listener: Listener):
        """Register a callable that receives a snapshot after every completed cycle."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ---------------- Lifecycle ----------------

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self):
        """Start the poll loop. A second call while running is a no-op."""
        self._stop_evt.clear()
        self._scheduler.start()

    def stop(self):
        """Cancel the pending poll and stop the status socket.

        A fetch already in flight completes; its result is discarded."""
        self._stop_evt.set()
        self._scheduler.stop()
        self._status_stop_evt.set()

    # ---------------- Poll cycle ----------------

    def poll_once(self) -> MonitorState:
        """Run one fetch/parse/aggregate/debounce cycle and publish the result.

        Never raises for device or payload problems; returns the committed snapshot."""
        started = wall_s()
        try:
            payload = self.fetcher.fetch()
        except FetchError as e:
            if self._stop_evt.is_set():
                return self._discard(e)
            return self._commit_failure(e, started)

        if self._stop_evt.is_set():
            return self._discard(None)

        self.logger.debug("payload_received", raw=payload)
        records = parse_payload(payload, logger=self.logger)
        latest = latest_by_channel(records)

        # Only poll cycles write state and they never overlap, so the copy taken
        # here is still current at commit time.
        new = self.snapshot()
        prev_fault = new.device_fault

        for index in CHANNEL_INDICES:
            rec = latest.get(index)
            updated = aggregate(new.channel(index), rec)
            if rec is not None and updated.health == GENERAL_FAULT:
                self.logger.emit(
                    "channel_fault",
                    index=index,
                    location=updated.location,
                    status=rec.status,
                    reason=("non_numeric" if rec.detected else "status"),
                )
            setattr(new, f"sensor{index}", updated)

        prev_alert = self.alert.state
        alert_changed = self.alert.update([ch.humidity for ch in new.channels()])
        new.alert_state = self.alert.state
        new.device_fault = NO_FAULT
        new.polls_total += 1
        new.last_poll_ts = started
        new.last_ok_ts = wall_s()
        new.last_error = ""

        if self._stop_evt.is_set():
            self.alert.state = prev_alert
            return self._discard(None)

        snap = self._commit(new)
        self.logger.emit(
            "poll_ok",
            records=len(records),
            alert=snap.alert_state,
            device_fault=snap.device_fault,
            s1_temp=round(snap.sensor1.temperature, 2),
            s1_humid=round(snap.sensor1.humidity, 2),
            s1_fault=snap.sensor1.health,
            s2_temp=round(snap.sensor2.temperature, 2),
            s2_humid=round(snap.sensor2.humidity, 2),
            s2_fault=snap.sensor2.health,
        )
        if alert_changed:
            self.logger.emit(
                "alert_changed",
                alert=snap.alert_state,
                leak=(snap.alert_state == LEAK_DETECTED),
                threshold=self.alert.threshold,
                s1_humid=round(snap.sensor1.humidity, 2),
                s2_humid=round(snap.sensor2.humidity, 2),
            )
            if self.notifier is not None:
                self.notifier.alert_changed(snap, self.alert.threshold)
        if prev_fault != snap.device_fault:
            self._device_fault_changed(snap)

        self._publish(snap)
        return snap

    def _commit_failure(self, err: FetchError, started: float) -> MonitorState:
        new = self.snapshot()
        prev_fault = new.device_fault
        new.device_fault = GENERAL_FAULT
        new.polls_total += 1
        new.polls_failed += 1
        new.last_poll_ts = started
        new.last_error = str(err)

        snap = self._commit(new)
        self.logger.emit("poll_failed", kind=err.kind, error=str(err), url=getattr(self.fetcher, "url", None))
        if prev_fault != snap.device_fault:
            self._device_fault_changed(snap)
        self._publish(snap)
        return snap

    def _discard(self, err: Optional[FetchError]) -> MonitorState:
        self.logger.emit("poll_discarded", error=(str(err) if err is not None else None))
        return self.snapshot()

    def _commit(self, new: MonitorState) -> MonitorState:
        with self._state_lock:
            self._state = new
            return new.copy()

    def _device_fault_changed(self, snap: MonitorState):
        self.logger.emit("device_fault_changed", device_fault=snap.device_fault, error=snap.last_error or None)
        if self.notifier is not None:
            self.notifier.device_fault_changed(snap)

    def _publish(self, snap: MonitorState):
        for listener in list(self._listeners):
            try:
                # Each listener gets its own copy.
                listener(snap.copy())
            except Exception as e:
                self.logger.emit("listener_error", error=str(e), listener=getattr(listener, "__name__", repr(listener)))

    # ---------------- Local status socket ----------------
    # Lets leakmonctl.py read the current readings without polling the device
    # a second time.

    def start_status_socket(self, sock_path: str):
        """Start a local status socket.

        The socket accepts single-line commands and returns a single-line JSON response.
        Supported commands: status, version.
        """
        if not sock_path:
            return
        self._status_sock_path = sock_path
        self._status_stop_evt.clear()
        t = threading.Thread(target=self._status_loop, daemon=True)
        t.start()
        self._status_thread = t
        self.logger.emit("status_socket_started", path=sock_path)

    def _status_loop(self):
        path = self._status_sock_path
        if not path:
            return

        srv = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            # Remove a stale socket from a previous run.
            if os.path.exists(path):
                os.remove(path)
            srv.bind(path)
            os.chmod(path, 0o660)
            srv.listen(4)
            srv.settimeout(0.5)
        except OSError as e:
            self.logger.emit("status_socket_error", error=str(e), path=path)
            srv.close()
            return

        try:
            while not self._status_stop_evt.is_set():
                try:
                    conn, _ = srv.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    self.logger.emit("status_socket_error", error=str(e), path=path)
                    break
                self._serve_status_conn(conn)
        finally:
            srv.close()
            if os.path.exists(path):
                os.remove(path)

    def _serve_status_conn(self, conn: socket.socket):
        try:
            conn.settimeout(2.0)
            data = b""
            while b"\n" not in data and len(data) < 4096:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                data += chunk
            cmd = data.decode("utf-8", errors="replace").strip()
            resp = self._handle_status_command(cmd)
            conn.sendall((json.dumps(resp, sort_keys=True) + "\n").encode("utf-8"))
        except OSError as e:
            self.logger.emit("status_socket_error", error=str(e))
        finally:
            conn.close()

    def _handle_status_command(self, cmd: str) -> dict:
        cmd = (cmd or "").strip().lower()
        if not cmd:
            return {"ok": False, "error": "empty command"}

        if cmd in ("status", "state"):
            return {
                "ok": True,
                "name": self.config.name,
                "threshold": self.alert.threshold,
                "running": self.running,
                "state": self.snapshot().to_dict(),
                "version": VERSION,
            }

        if cmd == "version":
            return {"ok": True, "version": VERSION}

        return {"ok": False, "error": f"unknown command: {cmd}"}
