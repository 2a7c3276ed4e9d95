from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

from docshare.core.config import get_settings
from docshare.core.errors import StoreUnavailableError
from docshare.services.telemetry import increment_counter, record_external_call


logger = logging.getLogger(__name__)

T = TypeVar("T")

TransientException = (TimeoutError, asyncio.TimeoutError, OSError)


def default_timeout_s() -> float:
    return get_settings().store_call_timeout_ms / 1000.0


async def call_with_timeout(
    func: Callable[[], Awaitable[T]],
    *,
    integration: str,
    timeout_s: float | None = None,
) -> T:
    """Run one collaborator call under a timeout.

    Timeouts and network errors surface as ``StoreUnavailableError``. Nothing
    is retried here; retry policy belongs to the caller.
    """
    timeout = timeout_s if timeout_s is not None else default_timeout_s()
    start = time.monotonic()
    try:
        result = await asyncio.wait_for(func(), timeout=timeout)
    except TransientException as exc:
        latency_ms = (time.monotonic() - start) * 1000.0
        record_external_call(integration=integration, latency_ms=latency_ms, success=False)
        increment_counter(f"store_unavailable_total.{integration}")
        logger.warning("store_call_failed integration=%s timeout_s=%s", integration, timeout, exc_info=exc)
        raise StoreUnavailableError(f"{integration} is temporarily unavailable") from exc
    record_external_call(
        integration=integration,
        latency_ms=(time.monotonic() - start) * 1000.0,
        success=True,
    )
    return result
