from __future__ import annotations
import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from comic_studio.errors import ConfigurationError, RetriesExhausted, RunCancelled
from comic_studio.logger import get_logger

log = get_logger(__name__)
T = TypeVar("T")


class CancelToken:
    """Cooperative cancellation, checked between attempts and between panels."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise RunCancelled("run cancelled")


async def _pause(seconds: float) -> None:
    if seconds > 0:
        await asyncio.sleep(seconds)


async def call_with_retries(
    fn: Callable[[], Awaitable[T]],
    *,
    retries: int,
    backoff: float,
    label: str,
    cancel: Optional[CancelToken] = None,
) -> T:
    """
    Await fn() up to retries + 1 times. The delay before attempt n+1 is backoff * n.
    Each attempt starts from scratch; nothing is carried between attempts.
    """
    attempts = retries + 1
    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            return await fn()
        except (RunCancelled, ConfigurationError):
            raise
        except Exception as e:
            last_error = e
            log.warning(f"[{label}] attempt {attempt}/{attempts} failed: {e}")
            if attempt < attempts:
                await _pause(backoff * attempt)
    raise RetriesExhausted(label, attempts=attempts, last_error=last_error)
