from __future__ import annotations

import threading
from typing import Optional

import requests

from .constants import DEFAULT_PORT, DEFAULT_PATH, FETCH_BUDGET_S, FETCH_CHUNK_BYTES
from .errors import ConfigError, FetchError, FetchConnectionError, FetchStatusError, FetchTimeout
from .util import now_s


def build_url(address: str, port: int = DEFAULT_PORT, path: str = DEFAULT_PATH) -> str:
    """Build the telemetry URL from the configured device address.

    Accepts a bare host, host:port, or a full http:// URL (used as-is)."""
    address = (address or "").strip()
    if not address:
        raise ConfigError("device address is required")
    if "://" in address:
        return address
    host = address.rstrip("/")
    if ":" not in host and int(port) != DEFAULT_PORT:
        host = f"{host}:{int(port)}"
    path = path or DEFAULT_PATH
    if not path.startswith("/"):
        path = "/" + path
    return f"http://{host}{path}"


class TelemetryFetcher:
    """Single bounded-time GET of the device's telemetry page.

    The budget covers the whole exchange, from request start to the last byte.
    The transfer runs on a worker thread and the caller waits at most the
    remaining budget for it, so a device that trickles headers or body cannot
    hold a poll cycle open. Content is returned as text and never interpreted
    here."""
    def __init__(
        self,
        address: str,
        port: int = DEFAULT_PORT,
        path: str = DEFAULT_PATH,
        budget_s: float = FETCH_BUDGET_S,
        session: Optional[requests.Session] = None,
    ):
        self.url = build_url(address, port, path)
        self.budget_s = float(budget_s)
        # Module-level requests unless a session is supplied.
        self._http = session if session is not None else requests

    def fetch(self) -> str:
        """Fetch the raw payload.

        Raises:
            FetchTimeout: the budget ran out (connect, headers or body).
            FetchConnectionError: the device could not be reached.
            FetchStatusError: the device answered with a non-2xx status.
            FetchError: the transfer was malformed or cut short.
        """
        deadline = now_s() + self.budget_s
        box = {}
        done = threading.Event()
        cancelled = threading.Event()

        worker = threading.Thread(
            target=self._run_transfer,
            args=(box, deadline, done, cancelled),
            name="leakmon-fetch",
            daemon=True,
        )
        worker.start()

        if not done.wait(max(0.0, deadline - now_s())):
            cancelled.set()
            resp = box.get("resp")
            if resp is not None:
                # Unblocks a body read; a stalled header read ends on its socket timeout.
                resp.close()
            raise FetchTimeout(f"no complete response from {self.url} within {self.budget_s:g}s")

        if "error" in box:
            raise box["error"]
        return box["text"]

    def _run_transfer(self, box: dict, deadline: float, done: threading.Event, cancelled: threading.Event):
        try:
            box["text"] = self._transfer(box, deadline, cancelled)
        except Exception as e:
            box["error"] = e
        finally:
            done.set()

    def _transfer(self, box: dict, deadline: float, cancelled: threading.Event) -> str:
        try:
            resp = self._http.get(self.url, timeout=(self.budget_s, self.budget_s), stream=True)
        except requests.exceptions.Timeout as e:
            raise FetchTimeout(f"timed out connecting to {self.url}: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise FetchConnectionError(f"could not connect to {self.url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"request to {self.url} failed: {e}") from e

        box["resp"] = resp
        try:
            if not 200 <= resp.status_code < 300:
                raise FetchStatusError(resp.status_code)

            chunks = []
            for chunk in resp.iter_content(chunk_size=FETCH_CHUNK_BYTES):
                if chunk:
                    chunks.append(chunk)
                if cancelled.is_set() or now_s() > deadline:
                    raise FetchTimeout(f"no complete response from {self.url} within {self.budget_s:g}s")
            return b"".join(chunks).decode("utf-8", errors="replace")
        except requests.exceptions.Timeout as e:
            raise FetchTimeout(f"timed out reading from {self.url}: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise FetchConnectionError(f"connection to {self.url} lost: {e}") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"bad transfer from {self.url}: {e}") from e
        finally:
            resp.close()
