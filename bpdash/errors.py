"""Engine exception types and display-safe error classification."""

import logging
import re

import httpx

logger = logging.getLogger(__name__)

_HTTP_STATUS_RE = re.compile(r"HTTP\s+(\d{3})", re.IGNORECASE)
_TIMEOUT_RE = re.compile(r"timeout|timed out", re.IGNORECASE)
_NETWORK_RE = re.compile(
    r"fetch failed|network error|connection refused|connection reset"
    r"|name or service not known|name resolution|nodename nor servname",
    re.IGNORECASE,
)
_NETWORK_EXCEPTIONS = (httpx.NetworkError, httpx.RemoteProtocolError, OSError)


class FetchError(Exception):
    """Base class for failures raised while talking to a remote host."""


class HTTPStatusFailure(FetchError):
    """The remote host answered with a non-success HTTP status.

    Attributes:
        status_code: The HTTP status code of the final attempt.
    """

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class ResponseError(FetchError):
    """The payload was malformed or carried an explicit API error."""


def sanitize_error(err: BaseException | None) -> str:
    """Map a raw failure to a small set of display-safe categories.

    Connection details and stack traces never leave this function; the
    raw message is only logged at debug level.

    Args:
        err: The captured exception (``None`` is treated as unknown).

    Returns:
        One of ``"timeout"``, ``"HTTP <code>"`` (with a hint for 405),
        ``"network error"``, ``"not found"``, ``"unexpected response"``,
        an ``"Explorer response ..."`` message, or ``"request failed"``.
    """
    logger.debug("Sanitizing error: %r", err)

    if isinstance(err, (TimeoutError, httpx.TimeoutException)):
        return "timeout"

    message = str(err) if err is not None else ""

    match = _HTTP_STATUS_RE.search(message)
    if match:
        code = match.group(1)
        if code == "405":
            return "HTTP 405 (check /rpc endpoint)"
        return f"HTTP {code}"
    if _TIMEOUT_RE.search(message):
        return "timeout"
    if isinstance(err, _NETWORK_EXCEPTIONS) or _NETWORK_RE.search(message):
        return "network error"
    if re.search(r"not found", message, re.IGNORECASE):
        return "not found"
    if re.search(r"unexpected response", message, re.IGNORECASE):
        return "unexpected response"
    if message.startswith("Explorer response"):
        return message
    return "request failed"
