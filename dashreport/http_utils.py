"""Shared HTTP utilities with request logging.

Every Grafana call routes through this module so timeouts, error
handling and the audit log are consistent.  Requests are never retried:
a failure is reported to the caller as :class:`HTTPError`.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

# Module-level request log (populated during a report run).
_request_log: list[dict[str, Any]] = []


class HTTPError(Exception):
    """Raised when an HTTP request fails or returns a non-200 status."""

    def __init__(self, url: str, status_code: int, detail: str = "") -> None:
        self.url = url
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code} for {_sanitise_url(url)}: {detail}")


class ResponseStream:
    """Readable binary stream over a streaming ``requests`` response.

    ``close()`` releases the underlying connection.
    """

    def __init__(self, response: requests.Response) -> None:
        self._response = response
        self._response.raw.decode_content = True

    def read(self, size: int = -1) -> bytes:
        return self._response.raw.read(None if size is None or size < 0 else size)

    def close(self) -> None:
        self._response.close()

    def __enter__(self) -> "ResponseStream":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Core requests
# ---------------------------------------------------------------------------

def _send(
    url: str,
    params: dict[str, Any] | None,
    headers: dict[str, str] | None,
    timeout: float,
    stream: bool,
) -> requests.Response:
    t0 = time.time()
    try:
        resp = requests.get(url, params=params, headers=headers, timeout=timeout, stream=stream)
    except requests.RequestException as exc:
        _request_log.append({
            "url": _sanitise_url(url),
            "status": None,
            "elapsed_s": round(time.time() - t0, 3),
            "error": str(exc),
        })
        raise HTTPError(url, 0, f"request failed: {exc}") from exc

    _request_log.append({
        "url": _sanitise_url(url),
        "status": resp.status_code,
        "elapsed_s": round(time.time() - t0, 3),
    })

    if resp.status_code != 200:
        detail = resp.text[:200]
        resp.close()
        raise HTTPError(url, resp.status_code, detail)
    return resp


def get_json(
    url: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = 30,
) -> Any:
    """HTTP GET returning the parsed JSON body.

    Raises
    ------
    HTTPError
        On transport errors, non-200 statuses or an unparseable body.
    """
    resp = _send(url, params, headers, timeout, stream=False)
    try:
        return resp.json()
    except ValueError as exc:
        raise HTTPError(url, resp.status_code, f"invalid JSON body: {exc}") from exc


def open_stream(
    url: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = 30,
) -> ResponseStream:
    """HTTP GET returning the body as a stream.  The caller must close it."""
    resp = _send(url, params, headers, timeout, stream=True)
    logger.debug("Streaming %s", _sanitise_url(url))
    return ResponseStream(resp)


# ---------------------------------------------------------------------------
# Request log accessors
# ---------------------------------------------------------------------------

def get_request_log() -> list[dict[str, Any]]:
    """Return a copy of the accumulated request log."""
    return list(_request_log)


def clear_request_log() -> None:
    """Reset the request log (useful between test runs)."""
    _request_log.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _sanitise_url(url: str) -> str:
    """Strip credentials from a URL before logging."""
    url = re.sub(r"(api_?key=|token=)[^&]+", r"\1***", url)
    return re.sub(r"//[^/@]+@", "//***@", url)
