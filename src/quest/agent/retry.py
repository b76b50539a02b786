"""Exponential-backoff resend for the model channel."""

import asyncio
import logging
from typing import (
    Any,
    Awaitable,
    Callable,
)

from quest.core.schema import (
    ChannelMessage,
    ModelResponse,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def error_status(exc: BaseException) -> int | None:
    """Best-effort HTTP status code carried by an SDK or transport exception."""
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def is_transient_error(exc: BaseException, retry_on_rate_limit: bool = False) -> bool:
    """
    Return True for server-side faults worth resending.

    Any 5xx status counts; 429 only when *retry_on_rate_limit* is set.  Everything else (client
    errors, validation errors, exceptions without a status) is permanent.
    """
    status = error_status(exc)
    if status is None:
        return False
    if 500 <= status <= 599:
        return True
    return retry_on_rate_limit and status == 429


async def send_with_retry(
    channel: Any,
    message: ChannelMessage,
    *,
    retries: int = 5,
    initial_delay_ms: float = 1000,
    backoff_factor: float = 2,
    retry_on_rate_limit: bool = False,
    sleep: Sleep = asyncio.sleep,
) -> ModelResponse:
    """
    Send *message* on *channel*, resending it unchanged after transient faults.

    The first attempt is followed by at most *retries* retries.  The delay before retry *n* is
    ``initial_delay_ms * backoff_factor ** (n - 1)``.  Non-transient faults propagate immediately;
    a transient fault on the last attempt propagates as well.
    """
    delay_ms = float(initial_delay_ms)
    attempt = 0
    while True:
        try:
            return await channel.send(message)
        except Exception as exc:  # noqa: BLE001
            if not is_transient_error(exc, retry_on_rate_limit) or attempt >= retries:
                raise
            attempt += 1
            logger.warning(
                "Transient model error (%s), retrying in %.0f ms (retry %d/%d)",
                exc,
                delay_ms,
                attempt,
                retries,
            )
            await sleep(delay_ms / 1000)
            delay_ms *= backoff_factor
