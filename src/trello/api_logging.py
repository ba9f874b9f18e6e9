"""API request/response logging for debugging and fixture generation.

When enabled via TRO_LOG_API=1, logs each Trello REST call and its
response to separate files with incrementing numbers.

Files are saved to ~/.tro/api_logs/ by default, or to TRO_LOG_API_DIR.

File naming:
- Request:  {sequence:04d}_request.json
- Response: {sequence:04d}_response.json

Each file includes metadata (timestamp, method, url, headers) plus body.
The ``key`` and ``token`` query parameters are always redacted.
"""

import json
import logging
import os
import threading
from datetime import UTC, datetime
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
SENSITIVE_PARAMS = {"key", "token"}
SENSITIVE_HEADERS = {"authorization", "x-trello-token"}

_sequence_lock = threading.Lock()
_sequence_counter = 0


def _get_next_sequence() -> int:
    """Get next sequence number (thread-safe)."""
    global _sequence_counter
    with _sequence_lock:
        _sequence_counter += 1
        return _sequence_counter


def _reset_sequence() -> None:
    """Reset sequence counter (for testing)."""
    global _sequence_counter
    with _sequence_lock:
        _sequence_counter = 0


def is_api_logging_enabled() -> bool:
    """Check if API logging is enabled via the TRO_LOG_API environment variable."""
    value = os.environ.get("TRO_LOG_API", "").lower()
    return value in ("1", "true", "yes", "on")


def get_log_directory() -> Path:
    """Get the directory for API logs (default: ~/.tro/api_logs/)."""
    custom_dir = os.environ.get("TRO_LOG_API_DIR")
    if custom_dir:
        return Path(custom_dir)

    return Path.home() / ".tro" / "api_logs"


def ensure_log_directory() -> Path:
    """Ensure log directory exists and return its path."""
    log_dir = get_log_directory()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _sanitize_headers(headers: httpx.Headers | dict) -> dict:
    """Mask credential-bearing headers, keeping the auth scheme visible."""
    result = dict(headers)

    for key in list(result.keys()):
        if key.lower() in SENSITIVE_HEADERS:
            value = result[key]
            if isinstance(value, str):
                parts = value.split(" ", 1)
                if len(parts) == 2:
                    result[key] = f"{parts[0]} {REDACTED}"
                else:
                    result[key] = REDACTED
    return result


def sanitize_url(url: httpx.URL | str) -> str:
    """Replace the key and token query parameters with a redaction marker."""
    url = httpx.URL(str(url))
    params = [
        (name, REDACTED if name in SENSITIVE_PARAMS else value)
        for name, value in url.params.multi_items()
    ]
    if not params:
        return str(url)
    return str(url.copy_with(params=params))


def _resource_of(url: httpx.URL) -> str:
    """First path segment after the API version, e.g. 'cards' for /1/cards/abc."""
    parts = [p for p in url.path.split("/") if p]
    if len(parts) >= 2 and parts[0] == "1":
        return parts[1]
    return parts[0] if parts else ""


def log_request(request: httpx.Request) -> None:
    """Log an API request to a file."""
    if not is_api_logging_enabled():
        return

    try:
        log_dir = ensure_log_directory()
        seq = _get_next_sequence()

        # Stored on the request so the response shares its number
        request.extensions["log_sequence"] = seq

        body = None
        if not isinstance(request.stream, httpx.ByteStream):
            # Multipart uploads are streamed and not read before sending
            body = f"<{request.headers.get('content-type', 'streamed').split(';')[0]} body>"
        elif request.content:
            try:
                body = json.loads(request.content)
            except (json.JSONDecodeError, UnicodeDecodeError):
                body = request.content.decode("utf-8", errors="replace")

        data = {
            "sequence": seq,
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "resource": _resource_of(request.url),
            "method": request.method,
            "url": sanitize_url(request.url),
            "headers": _sanitize_headers(request.headers),
            "body": body,
        }

        filepath = log_dir / f"{seq:04d}_request.json"
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2, default=str)

        logger.debug("Logged API request to %s", filepath)

    except Exception as e:
        logger.warning("Failed to log API request: %s", e)


def log_response(response: httpx.Response) -> None:
    """Log an API response to a file."""
    if not is_api_logging_enabled():
        return

    try:
        log_dir = ensure_log_directory()

        seq = response.request.extensions.get("log_sequence")
        if seq is None:
            seq = _get_next_sequence()

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            body = response.text

        data = {
            "sequence": seq,
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "resource": _resource_of(response.request.url),
            "status_code": response.status_code,
            "url": sanitize_url(response.request.url),
            "headers": dict(response.headers),
            "body": body,
        }

        filepath = log_dir / f"{seq:04d}_response.json"
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2, default=str)

        logger.debug("Logged API response to %s", filepath)

    except Exception as e:
        logger.warning("Failed to log API response: %s", e)


class LoggingTransport(httpx.BaseTransport):
    """Transport wrapper that logs requests and responses."""

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        log_request(request)
        response = self._transport.handle_request(request)
        # httpx streams by default; the body must be read before logging it
        response.read()
        # The client only attaches the request after the transport returns
        response.request = request
        log_response(response)
        return response

    def close(self) -> None:
        self._transport.close()


def create_logging_client(
    headers: dict | None = None,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
    **kwargs,
) -> httpx.Client:
    """Create an httpx Client, wrapping the transport with logging when enabled.

    Args:
        headers: Request headers
        timeout: Request timeout in seconds
        transport: Underlying transport (tests pass an httpx.MockTransport)
        **kwargs: Additional arguments passed to httpx.Client

    Returns:
        Configured httpx.Client
    """
    if is_api_logging_enabled():
        transport = LoggingTransport(transport)

    if transport is not None:
        return httpx.Client(headers=headers, timeout=timeout, transport=transport, **kwargs)
    return httpx.Client(headers=headers, timeout=timeout, **kwargs)


def clear_logs() -> int:
    """Clear all logged API files.

    Returns:
        Number of files deleted
    """
    log_dir = get_log_directory()
    if not log_dir.exists():
        return 0

    count = 0
    for f in log_dir.glob("*.json"):
        try:
            f.unlink()
            count += 1
        except OSError as e:
            logger.warning("Failed to delete %s: %s", f, e)

    _reset_sequence()
    return count
