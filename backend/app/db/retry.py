"""Classification of database failures into retryable transient faults."""
from __future__ import annotations

import asyncio
import enum
import socket

from sqlalchemy import exc as sa_exc


class TransientFault(str, enum.Enum):
    """Infrastructure faults that are worth retrying."""

    CONNECTION_RESET = "connection_reset"
    HOST_NOT_FOUND = "host_not_found"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    CONNECTION_TERMINATED = "connection_terminated"


def _causes(error: BaseException):
    """Yield the error and everything it wraps, stopping on cycles."""
    seen: set[int] = set()
    pending: list[BaseException] = [error]
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        orig = getattr(current, "orig", None)
        if isinstance(orig, BaseException):
            pending.append(orig)
        if current.__cause__ is not None:
            pending.append(current.__cause__)
        elif current.__context__ is not None and not current.__suppress_context__:
            pending.append(current.__context__)


def _classify_single(error: BaseException) -> TransientFault | None:
    if isinstance(error, ConnectionResetError):
        return TransientFault.CONNECTION_RESET
    if isinstance(error, ConnectionRefusedError):
        return TransientFault.CONNECTION_REFUSED
    if isinstance(error, socket.gaierror):
        return TransientFault.HOST_NOT_FOUND
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, sa_exc.TimeoutError)):
        return TransientFault.TIMEOUT
    if isinstance(error, (sa_exc.DisconnectionError, BrokenPipeError, ConnectionAbortedError)):
        return TransientFault.CONNECTION_TERMINATED
    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return TransientFault.CONNECTION_TERMINATED
    return None


def classify_fault(error: BaseException) -> TransientFault | None:
    """Return the transient fault behind ``error``, or ``None`` if it is permanent.

    Integrity and programming errors are never transient, even when the driver
    chained them to a network error.
    """

    if isinstance(error, (sa_exc.IntegrityError, sa_exc.ProgrammingError)):
        return None
    for candidate in _causes(error):
        fault = _classify_single(candidate)
        if fault is not None:
            return fault
    return None


def is_recoverable(error: BaseException) -> bool:
    return classify_fault(error) is not None


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Linear backoff: the n-th failed attempt waits ``n * base_delay`` seconds."""

    return attempt * base_delay
