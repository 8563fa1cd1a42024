import asyncio
import socket

import pytest
from sqlalchemy import exc as sa_exc

from app.db.retry import TransientFault, backoff_delay, classify_fault, is_recoverable


@pytest.mark.parametrize(
    "error, fault",
    [
        (ConnectionResetError("reset by peer"), TransientFault.CONNECTION_RESET),
        (ConnectionRefusedError("refused"), TransientFault.CONNECTION_REFUSED),
        (socket.gaierror(-2, "Name or service not known"), TransientFault.HOST_NOT_FOUND),
        (asyncio.TimeoutError(), TransientFault.TIMEOUT),
        (sa_exc.TimeoutError("QueuePool limit reached"), TransientFault.TIMEOUT),
        (sa_exc.DisconnectionError("gone"), TransientFault.CONNECTION_TERMINATED),
    ],
)
def test_classify_fault_recognises_transient_errors(error, fault):
    assert classify_fault(error) is fault
    assert is_recoverable(error) is True


def test_wrapped_driver_error_is_classified_by_its_cause():
    wrapped = sa_exc.OperationalError("SELECT 1", {}, ConnectionResetError("reset"))
    assert classify_fault(wrapped) is TransientFault.CONNECTION_RESET


def test_invalidated_connection_counts_as_terminated():
    err = sa_exc.DBAPIError("SELECT 1", {}, Exception("server closed the connection"), connection_invalidated=True)
    assert classify_fault(err) is TransientFault.CONNECTION_TERMINATED


def test_chained_cause_is_followed():
    try:
        try:
            raise ConnectionRefusedError("refused")
        except ConnectionRefusedError as inner:
            raise RuntimeError("connect failed") from inner
    except RuntimeError as outer:
        assert classify_fault(outer) is TransientFault.CONNECTION_REFUSED


@pytest.mark.parametrize(
    "error",
    [
        sa_exc.IntegrityError("INSERT", {}, Exception("duplicate key")),
        sa_exc.ProgrammingError("SELEC", {}, Exception("syntax error")),
        sa_exc.OperationalError("SELECT", {}, Exception("no such table: x")),
        ValueError("bad value"),
    ],
)
def test_permanent_errors_are_not_recoverable(error):
    assert classify_fault(error) is None
    assert is_recoverable(error) is False


def test_integrity_error_wrapping_network_error_is_still_permanent():
    err = sa_exc.IntegrityError("INSERT", {}, ConnectionResetError("reset"))
    assert is_recoverable(err) is False


def test_backoff_grows_linearly():
    assert [backoff_delay(n, 1.0) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]
    assert backoff_delay(2, 0.5) == 1.0
