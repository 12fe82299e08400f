"""Exception hierarchy for apictl.

All exceptions inherit from :class:`ApictlError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`apictl.exit_codes`
and an optional user-facing ``hint``. The top-level handler in
:func:`apictl.app.main` catches ``ApictlError`` and exits with the
appropriate code.

Subclass hierarchy::

    ApictlError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- NetworkError        (exit 3)
    +-- AuthError           (exit 4)
    +-- NotFoundError       (exit 5)
    +-- SpecParseError      (exit 6)
    +-- ConfigError         (exit 64)
    +-- IOFailure           (exit 74)
    +-- APIError            (exit from the adapter's error mapping, default 1)
"""

from __future__ import annotations

from typing import Optional

import httpx

from apictl.exit_codes import (
    EXIT_AUTH_ERROR,
    EXIT_CONFIG_ERROR,
    EXIT_GENERAL_ERROR,
    EXIT_IO_ERROR,
    EXIT_NETWORK_ERROR,
    EXIT_NOT_FOUND,
    EXIT_SPEC_ERROR,
    EXIT_USAGE_ERROR,
)


class ApictlError(Exception):
    """Base exception for all apictl errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
        hint: Optional next step shown below the message.
    """

    exit_code: int = EXIT_GENERAL_ERROR

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code
        self.hint = hint


class InvalidUsageError(ApictlError):
    """Raised for unknown commands or missing required parameters."""

    exit_code = EXIT_USAGE_ERROR


class NetworkError(ApictlError):
    """Raised on network-level failures (timeout, DNS, refused connection, TLS)."""

    exit_code = EXIT_NETWORK_ERROR


class AuthError(ApictlError):
    """Raised when no credential is available or the API rejects it."""

    exit_code = EXIT_AUTH_ERROR


class NotFoundError(ApictlError):
    """Raised when an API, spec file or resource cannot be found."""

    exit_code = EXIT_NOT_FOUND


class SpecParseError(ApictlError):
    """Raised when the OpenAPI document cannot be parsed or fails validation."""

    exit_code = EXIT_SPEC_ERROR


class ConfigError(ApictlError):
    """Raised for configuration problems (no base URL, invalid config JSON)."""

    exit_code = EXIT_CONFIG_ERROR


class IOFailure(ApictlError):
    """Raised on filesystem permission or space errors.

    Not named ``IOError`` to avoid shadowing the built-in alias of
    :class:`OSError`.
    """

    exit_code = EXIT_IO_ERROR


class APIError(ApictlError):
    """A non-2xx HTTP response.

    Args:
        message: Extracted error message (or a generic fallback).
        status: Upstream HTTP status code.
        code: Extracted error code, if the body carried one.
        exit_code: Exit code looked up from the adapter's ``errors.exit_codes``.
        body: Decoded response body, kept for ``onError`` hooks.
    """

    def __init__(
        self,
        message: str,
        status: int,
        code: Optional[str] = None,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        body: object = None,
    ):
        super().__init__(message, exit_code=exit_code, hint=hint)
        self.status = status
        self.code = code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.code:
            return f"HTTP {self.status} [{self.code}]: {base}"
        return f"HTTP {self.status}: {base}"


def classify_transport_error(exc: Exception, url: str = "") -> ApictlError:
    """Map a low-level transport failure to a classified :class:`ApictlError`.

    Args:
        exc: The exception raised by httpx or the operating system.
        url: The request URL, included in the message when known.

    Returns:
        A :class:`NetworkError` for timeouts, connection, DNS and TLS
        failures; an :class:`IOFailure` for other ``OSError`` instances; and
        a plain :class:`ApictlError` for anything else.
    """
    target = f" ({url})" if url else ""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(f"Request timed out{target}")
    if isinstance(exc, httpx.ConnectError):
        text = str(exc)
        lowered = text.lower()
        if "certificate" in lowered or "ssl" in lowered or "tls" in lowered:
            return NetworkError(f"TLS handshake failed{target}: {text}")
        if "name or service not known" in lowered or "nodename" in lowered or "getaddrinfo" in lowered:
            return NetworkError(f"DNS lookup failed{target}: {text}")
        return NetworkError(f"Connection failed{target}: {text}")
    if isinstance(exc, httpx.TransportError):
        return NetworkError(f"Network error{target}: {exc}")
    if isinstance(exc, OSError):
        return IOFailure(f"I/O error: {exc}")
    return ApictlError(str(exc))
