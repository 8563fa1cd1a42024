"""Connection pool ownership, resilient query execution and shutdown."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Mapping, Sequence

from sqlalchemy import event, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Result, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool
from sqlalchemy.sql import Executable

from app import models  # noqa: F401
from app.core.config import Settings
from app.db.base import Base
from app.db.retry import TransientFault, backoff_delay, classify_fault

logger = logging.getLogger(__name__)

_STATEMENT_PREVIEW = 100

Params = Mapping[str, Any] | Sequence[Mapping[str, Any]] | None


class DatabaseError(RuntimeError):
    """Base class for failures surfaced by the connection manager."""


class PoolClosedError(DatabaseError):
    """Raised when a query is attempted after shutdown began."""


class FatalQueryError(DatabaseError):
    """A query failed with an error that retrying cannot fix."""


class ConstraintViolation(FatalQueryError):
    """A query was rejected by a database constraint."""


class ConnectionRotation(sa_exc.DisconnectionError):
    """Raised from the checkout hook to retire an idle or worn-out connection."""


class TransientQueryError(DatabaseError):
    """A query kept failing with a transient fault until attempts ran out."""

    def __init__(self, message: str, fault: TransientFault, attempts: int) -> None:
        super().__init__(message)
        self.fault = fault
        self.attempts = attempts


@dataclass(frozen=True)
class PoolStatus:
    total: int
    idle: int
    waiting: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class PoolHealth:
    healthy: bool
    status: PoolStatus


def _connect_args(settings: Settings) -> dict[str, Any]:
    backend = make_url(settings.database_url).get_backend_name()
    if backend == "postgresql":
        args: dict[str, Any] = {
            "timeout": settings.db_connect_timeout_seconds,
            "command_timeout": settings.db_statement_timeout_seconds,
            "server_settings": {
                "statement_timeout": str(int(settings.db_statement_timeout_seconds * 1000)),
            },
        }
        if settings.ssl_required:
            args["ssl"] = "require"
        return args
    if backend == "sqlite":
        return {"timeout": settings.db_connect_timeout_seconds}
    return {}


def _preview(statement: Any) -> str:
    rendered = str(statement).strip().replace("\n", " ")
    if len(rendered) > _STATEMENT_PREVIEW:
        return rendered[:_STATEMENT_PREVIEW] + "..."
    return rendered


class ConnectionManager:
    """Own a bounded async connection pool and run every query through it."""

    def __init__(self, settings: Settings, engine: AsyncEngine | None = None) -> None:
        self._settings = settings
        self._engine = engine or create_async_engine(
            settings.database_url,
            future=True,
            echo=False,
            poolclass=AsyncAdaptedQueuePool,
            pool_size=settings.db_pool_max_size,
            max_overflow=0,
            pool_timeout=settings.db_acquire_timeout_seconds,
            pool_pre_ping=True,
            connect_args=_connect_args(settings),
        )
        self._max_uses = settings.db_max_uses_per_connection
        self._idle_timeout = settings.db_idle_timeout_seconds
        self._query_timeout = settings.db_statement_timeout_seconds
        self._max_attempts = settings.db_query_max_attempts
        self._retry_delay = settings.db_retry_delay_seconds
        self._waiting = 0
        self._shutting_down = False
        self._closed = False
        self._install_pool_listeners()

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    def is_shutting_down(self) -> bool:
        return self._shutting_down

    # Pool events -------------------------------------------------------

    def _install_pool_listeners(self) -> None:
        pool = self._engine.sync_engine.pool
        event.listen(pool, "connect", self._on_connect)
        event.listen(pool, "checkout", self._on_checkout)
        event.listen(pool, "checkin", self._on_checkin)
        event.listen(pool, "invalidate", self._on_invalidate)

    def _on_connect(self, dbapi_connection, connection_record) -> None:
        connection_record.info["uses"] = 0
        connection_record.info["returned_at"] = None
        logger.debug("New database connection established")

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy) -> None:
        info = connection_record.info
        returned_at = info.get("returned_at")
        if returned_at is not None and time.monotonic() - returned_at > self._idle_timeout:
            logger.debug("Rotating connection idle for more than %ss", self._idle_timeout)
            raise ConnectionRotation("connection idle timeout exceeded")
        uses = info.get("uses", 0) + 1
        if self._max_uses and uses > self._max_uses:
            logger.debug("Rotating connection after %d uses", self._max_uses)
            raise ConnectionRotation("connection max uses exceeded")
        info["uses"] = uses

    def _on_checkin(self, dbapi_connection, connection_record) -> None:
        if connection_record is not None:
            connection_record.info["returned_at"] = time.monotonic()

    def _on_invalidate(self, dbapi_connection, connection_record, exception) -> None:
        # The pool replaces invalidated connections; keep serving the others.
        if isinstance(exception, ConnectionRotation):
            logger.debug("Pooled connection retired: %s", exception)
        elif exception is not None:
            logger.warning("Pooled connection invalidated: %s", exception)

    # Queries -----------------------------------------------------------

    @property
    def _interrupts_statements(self) -> bool:
        # aiosqlite runs statements on a worker thread that task cancellation
        # cannot stop, so the deadline is enforced with sqlite3's interrupt().
        return self.dialect_name == "sqlite"

    async def _interrupt_after(self, driver_connection: Any, delay: float) -> None:
        await asyncio.sleep(delay)
        logger.warning("Interrupting statement running for more than %ss", delay)
        await driver_connection.interrupt()

    async def _execute_once(self, statement: Executable, params: Params) -> Result:
        self._waiting += 1
        try:
            connection = await self._engine.connect()
        finally:
            self._waiting -= 1

        watchdog: asyncio.Task | None = None
        try:
            if self._interrupts_statements and self._query_timeout:
                raw = await connection.get_raw_connection()
                watchdog = asyncio.create_task(
                    self._interrupt_after(raw.driver_connection, self._query_timeout)
                )
            async with connection.begin():
                result = await connection.execute(statement, params)
                if result.returns_rows:
                    return result.freeze()()
                return result
        except sa_exc.OperationalError as exc:
            if watchdog is not None and watchdog.done() and not watchdog.cancelled():
                raise asyncio.TimeoutError(
                    f"statement exceeded {self._query_timeout}s and was interrupted"
                ) from exc
            raise
        finally:
            if watchdog is not None:
                watchdog.cancel()
            await connection.close()

    async def query(
        self,
        statement: str | Executable,
        params: Params = None,
        max_attempts: int | None = None,
    ) -> Result:
        """Execute ``statement`` in its own transaction, retrying transient faults.

        Returns a buffered result that stays readable after the connection has
        been handed back to the pool.
        """

        if self._shutting_down:
            raise PoolClosedError("Connection pool is shutting down; query rejected")
        if isinstance(statement, str):
            statement = text(statement)
        attempts = max(1, max_attempts or self._max_attempts)
        timeout = None if self._interrupts_statements else self._query_timeout

        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(self._execute_once(statement, params), timeout=timeout)
            except (sa_exc.SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
                logger.error(
                    "Query failed (attempt %d/%d): %s | %s",
                    attempt,
                    attempts,
                    exc.__class__.__name__,
                    _preview(statement),
                )
                fault = classify_fault(exc)
                if fault is None:
                    if isinstance(exc, sa_exc.IntegrityError):
                        raise ConstraintViolation(str(exc.orig or exc)) from exc
                    raise FatalQueryError(str(exc)) from exc
                if attempt == attempts:
                    raise TransientQueryError(
                        f"Query failed after {attempts} attempts: {fault.value}", fault, attempts
                    ) from exc
                await asyncio.sleep(backoff_delay(attempt, self._retry_delay))
                if self._shutting_down:
                    raise PoolClosedError("Connection pool is shutting down; retry abandoned") from exc

        raise AssertionError("unreachable")  # pragma: no cover

    # Lifecycle ---------------------------------------------------------

    def pool_status(self) -> PoolStatus:
        pool = self._engine.sync_engine.pool
        idle = pool.checkedin()
        return PoolStatus(total=idle + pool.checkedout(), idle=idle, waiting=self._waiting)

    async def health_check(self) -> PoolHealth:
        try:
            result = await self.query("SELECT CURRENT_TIMESTAMP AS checked_at")
            checked_at = result.scalar()
        except DatabaseError as exc:
            logger.error("Connection pool unhealthy: %s", exc)
            return PoolHealth(healthy=False, status=self.pool_status())
        status = self.pool_status()
        logger.info("Connection pool healthy at %s: %s", checked_at, status.as_dict())
        return PoolHealth(healthy=True, status=status)

    async def warm_up(self) -> None:
        """Open ``db_pool_min_idle`` connections so they sit idle in the pool."""

        count = min(self._settings.db_pool_min_idle, self._settings.db_pool_max_size)
        if count <= 0:
            return
        connections = await asyncio.gather(*(self._engine.connect() for _ in range(count)))
        for connection in connections:
            await connection.close()
        logger.info("Pre-opened %d idle connection(s)", count)

    async def create_schema(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Reject new queries and dispose the pool. Safe to call repeatedly."""

        self._shutting_down = True
        if self._closed:
            return
        self._closed = True
        logger.info("Closing connection pool: %s", self.pool_status().as_dict())
        try:
            await self._engine.dispose()
        except Exception:
            logger.exception("Error while closing the connection pool")
            return
        logger.info("Connection pool closed")


_manager: ConnectionManager | None = None


async def init_manager(settings: Settings) -> ConnectionManager:
    """Create the process-wide manager and confirm the database is reachable."""

    global _manager
    if _manager is not None and not _manager.is_shutting_down():
        return _manager
    manager = ConnectionManager(settings)
    await manager.warm_up()
    health = await manager.health_check()
    if not health.healthy:
        await manager.close()
        raise RuntimeError("Could not establish the initial database connection")
    _manager = manager
    return manager


def get_manager() -> ConnectionManager:
    if _manager is None:
        raise PoolClosedError("Connection manager has not been initialised")
    return _manager


def is_shutting_down() -> bool:
    return _manager is None or _manager.is_shutting_down()


async def shutdown_manager() -> None:
    global _manager
    manager, _manager = _manager, None
    if manager is not None:
        await manager.close()
