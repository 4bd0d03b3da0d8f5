"""Try-each-credential-once loops used by the text and live paths.

Both loops are bounded by the pool size: every credential gets at most one
attempt per call, there is no backoff and nothing is retried forever.
"""

import random
from typing import Awaitable, Callable, TypeVar

from maktaba.credentials import CredentialPool, mask
from maktaba.errors import AllCredentialsFailed, CredentialFailure, NoCredentials, ServiceBusy
from maktaba.logging_config import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def call_with_rotation(
    pool: CredentialPool,
    func: Callable[[str], T],
    retryable: tuple = (CredentialFailure,),
) -> T:
    """Call ``func(credential)`` starting at the pool cursor, rotating on failure.

    Args:
        pool: Shared pool; its cursor is advanced after every retryable failure
            and left in place on success.
        func: One attempt with one credential.
        retryable: Exception types that move on to the next credential. Anything
            else propagates immediately.

    Raises:
        NoCredentials: The pool is empty (``func`` is never called).
        ServiceBusy: Every credential failed; carries the last error.
    """
    if pool.is_empty:
        raise NoCredentials("credential pool is empty")

    attempts = len(pool)
    last_exc = None
    for attempt in range(attempts):
        credential = pool.current()
        try:
            return func(credential)
        except retryable as e:
            last_exc = e
            log.warning(
                "Key %s failed (attempt %d/%d): %s. Rotating...",
                mask(credential), attempt + 1, attempts, e,
            )
            pool.advance()

    log.error("All %d key(s) failed, last error: %s", attempts, last_exc)
    raise ServiceBusy(last_exc, attempts)


async def connect_with_rotation(
    pool: CredentialPool,
    connect: Callable[[str], Awaitable[T]],
    rng=random,
) -> T:
    """Await ``connect(credential)`` for each key from a random offset.

    The random start spreads simultaneous clients over the keys instead of
    having all of them hit the first one. The shared cursor is not used.

    Raises:
        NoCredentials: The pool is empty.
        AllCredentialsFailed: No credential produced a session.
    """
    if pool.is_empty:
        raise NoCredentials("credential pool is empty")

    order = pool.rotation(pool.random_start(rng))
    last_exc = None
    for i, credential in enumerate(order):
        log.info("Live handshake with key %s (%d/%d)", mask(credential), i + 1, len(order))
        try:
            return await connect(credential)
        except Exception as e:
            last_exc = e
            log.warning("Live handshake with key %s failed: %s", mask(credential), e)

    log.error("Live handshake failed with all %d key(s)", len(order))
    raise AllCredentialsFailed(last_exc, len(order))
