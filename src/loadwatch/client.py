"""Blocking HTTP client for the monitoring backend REST contract."""

from __future__ import annotations

import json
import logging
import zlib
from collections.abc import Mapping
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlparse
from urllib.request import Request, urlopen

from .contracts.error import DecodeError, TransportError
from .models import ActionType

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080/api"
ALLOWED_SCHEMES = {"http", "https"}

_CLIENT_USER_AGENT = "loadwatch/0.1"
_MAX_RESPONSE_BYTES = 5 * 1024 * 1024  # 5 MiB cap to prevent runaway responses.
_MAX_MESSAGE_CHARS = 500


def normalize_base_url(base_url: str) -> str:
    if base_url is None:
        raise ValueError("Backend base URL must be provided")
    candidate = base_url.strip().rstrip("/")
    if not candidate:
        raise ValueError("Backend base URL must be a non-empty string")
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise ValueError(f"Unsupported scheme '{parsed.scheme}' (allowed: http, https)")
    if not parsed.netloc or not parsed.hostname:
        raise ValueError(f"Backend base URL must include a host; got {base_url!r}")
    return candidate


def _message_from_body(body: str) -> str:
    text = body.strip()
    if not text:
        return ""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text[:_MAX_MESSAGE_CHARS]
    if isinstance(data, dict):
        for key in ("detail", "error", "message"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return text[:_MAX_MESSAGE_CHARS]


def _read_body(response: Any) -> bytes:
    reader = getattr(response, "read", None)
    if not callable(reader):
        return b""
    try:
        payload = reader(_MAX_RESPONSE_BYTES + 1)
    except TypeError:
        payload = reader()
    if payload is None:
        return b""
    payload = bytes(payload)
    if len(payload) > _MAX_RESPONSE_BYTES:
        raise TransportError(f"Response exceeded {_MAX_RESPONSE_BYTES} bytes")
    headers = getattr(response, "headers", None)
    encoding = headers.get("Content-Encoding", "") if headers is not None else ""
    if (encoding or "").lower() == "gzip":
        payload = _gunzip(payload)
    return payload


def _gunzip(payload: bytes) -> bytes:
    """Inflate a gzip body without letting it grow past the response cap."""

    inflater = zlib.decompressobj(wbits=16 + zlib.MAX_WBITS)
    try:
        data = inflater.decompress(payload, _MAX_RESPONSE_BYTES + 1)
    except zlib.error as exc:
        raise DecodeError(f"Corrupt gzip response body: {exc}") from exc
    if len(data) > _MAX_RESPONSE_BYTES or inflater.unconsumed_tail:
        raise TransportError(f"Decompressed response exceeded {_MAX_RESPONSE_BYTES} bytes")
    if not inflater.eof:
        raise DecodeError("Truncated gzip response body")
    return data


def _charset(response: Any) -> str:
    headers = getattr(response, "headers", None)
    getter = getattr(headers, "get_content_charset", None) if headers is not None else None
    if callable(getter):
        detected = getter()
        if isinstance(detected, str) and detected:
            return detected
    return "utf-8"


class BackendClient:
    """Thin wrapper over the backend's ``/api`` routes.

    Every call blocks; the poll loop and dispatcher run them in worker
    threads. Non-2xx responses and network failures raise
    :class:`TransportError`; unparsable bodies raise :class:`DecodeError`.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 1.0) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0; got {timeout}")
        self.base_url = normalize_base_url(base_url)
        self.timeout = timeout

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            raise ValueError(f"Expected path starting with '/'; got {path!r}")
        return f"{self.base_url}{path}"

    def request(self, method: str, path: str, body: Mapping[str, Any] | None = None) -> Any:
        headers = {"Accept": "application/json", "User-Agent": _CLIENT_USER_AGENT}
        data: bytes | None = None
        if body is not None:
            data = json.dumps(dict(body), ensure_ascii=False).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = Request(self._url(path), data=data, headers=headers, method=method)  # noqa: S310
        label = f"{method} {path}"
        try:
            with urlopen(req, timeout=self.timeout) as response:  # noqa: S310  # nosec B310
                status = getattr(response, "status", None) or 200
                payload = _read_body(response)
                encoding = _charset(response)
        except HTTPError as exc:
            try:
                raw_error = exc.read() or b""
            except OSError:
                raw_error = b""
            text = raw_error.decode("utf-8", errors="replace")
            message = _message_from_body(text) or exc.reason or "no response body"
            raise TransportError(
                f"{label} failed with HTTP {exc.code}: {message}", status=exc.code, body=text
            ) from exc
        except (URLError, TimeoutError, ConnectionError, OSError) as exc:
            reason = getattr(exc, "reason", None) or exc
            raise TransportError(f"{label} failed: {reason}") from exc
        text = payload.decode(encoding, errors="replace")
        if not 200 <= status < 300:
            raise TransportError(
                f"{label} failed with HTTP {status}: {_message_from_body(text)}",
                status=status,
                body=text,
            )
        logger.debug("%s -> %s (%d bytes)", label, status, len(payload))
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"{label} returned invalid JSON: {exc.msg}") from exc

    def fetch_metrics(self) -> Any:
        return self.request("GET", "/metrics")

    def fetch_active_actions(self) -> Any:
        return self.request("GET", "/actions/active")

    def start_action(self, action_type: ActionType | str, body: Mapping[str, Any]) -> Any:
        kind = ActionType(action_type)
        return self.request("POST", f"/actions/{kind.value}", body)

    def stop_action(self, action_id: str) -> Any:
        if not action_id or not action_id.strip():
            raise ValueError("action_id must not be blank")
        return self.request("DELETE", f"/actions/{quote(action_id.strip(), safe='')}/stop")

    def stop_all(self) -> Any:
        return self.request("POST", "/actions/stop-all")

    def health(self) -> Any:
        return self.request("GET", "/health")


__all__ = ["BackendClient", "DEFAULT_BASE_URL", "normalize_base_url"]
