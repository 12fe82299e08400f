"""Retry policy for transient failures.

A request is retried when the transport fails (connection, DNS, TLS,
timeout) or the response status is 429 or 5xx, up to
``RetryConfig.max_retries`` additional attempts. The delay before retry
number ``attempt`` (0-based) is:

=============  ===================================
exponential    ``initial_delay * 2 ** attempt``
linear         ``initial_delay * (attempt + 1)``
fixed          ``initial_delay``
=============  ===================================

capped at ``max_delay``. When ``retry_after_header`` is configured and
the response carries it, its value (delta-seconds or an HTTP date) is used
instead. The server's value is not capped by ``max_delay``.
"""

from __future__ import annotations

import time
from email.utils import parsedate_to_datetime
from typing import Optional

from apictl.adapters.config import RetryConfig


def is_retryable_status(status: int) -> bool:
    return status == 429 or status >= 500


def backoff_delay(config: RetryConfig, attempt: int) -> float:
    """Return the delay in seconds before retry number *attempt*."""
    if config.backoff == "exponential":
        delay_ms = config.initial_delay * (2 ** attempt)
    elif config.backoff == "linear":
        delay_ms = config.initial_delay * (attempt + 1)
    else:
        delay_ms = config.initial_delay
    return min(delay_ms, config.max_delay) / 1000.0


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """Parse a retry-after value into seconds from *now*.

    Returns:
        Non-negative seconds, or ``None`` if *value* is absent or unparsable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    current = time.time() if now is None else now
    return max(when.timestamp() - current, 0.0)


def retry_delay(
    config: RetryConfig,
    attempt: int,
    headers: Optional[dict[str, str]] = None,
    now: Optional[float] = None,
) -> float:
    """Return the delay before retry *attempt*, honouring the configured retry-after header."""
    if config.retry_after_header and headers:
        lowered = config.retry_after_header.lower()
        for name, value in headers.items():
            if name.lower() == lowered:
                hinted = parse_retry_after(value, now)
                if hinted is not None:
                    return hinted
                break
    return backoff_delay(config, attempt)
