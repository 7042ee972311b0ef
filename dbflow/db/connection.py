"""Lazily created, process-shared SQLAlchemy engine."""

from typing import Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from dbflow.common.config import DatabaseSettings
from dbflow.common.errors import (
    ConnectionFailedError,
    FatalDatabaseError,
    MigrationFailedError,
    ModelsNotRegisteredError,
)
from dbflow.common.logging import logger
from dbflow.common.metrics import database_handle_initializations_total
from dbflow.common.once import Once
from dbflow.common.startup import log_startup_config
from dbflow.common.tracing import tracer
from dbflow.db.registry import ModelRegistry


class ConnectionManager:
    """Owns the one engine of its registry's schema.

    The engine is created by the first `get_handle` call: settings are
    resolved, the database is probed and every registered descriptor is
    migrated before the engine becomes visible. Concurrent first callers wait
    on the same guard and receive the same engine.

    A failed creation is latched. Every later caller gets the same fatal
    error; nothing is retried. The wait on the guard has no timeout, so an
    unreachable database stalls all first callers until the driver's own
    connect timeout fires.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        settings_factory: Callable[[], DatabaseSettings] = DatabaseSettings,
        engine_factory: Callable[..., Engine] = create_engine,
    ) -> None:
        self.registry = registry
        self.settings_factory = settings_factory
        self.engine_factory = engine_factory
        self._once = Once()
        self._engine: Engine | None = None
        self._init_error: FatalDatabaseError | None = None

    def get_handle(self) -> Engine:
        """Return the shared engine, creating and migrating it on first use."""

        with tracer.start_as_current_span("GetHandle"):
            if not self.registry.is_registered:
                raise ModelsNotRegisteredError(
                    "Models must be registered before requesting a database handle. "
                    "Call register_models first."
                )
            if self._engine is None:
                self._once.do(self._initialize)
            if self._engine is None:
                # Creation failed, either in this call or in a concurrent one.
                if self._init_error is None:
                    raise ConnectionFailedError("Database handle initialization was interrupted")
                raise self._init_error
            return self._engine

    def dispose(self) -> None:
        """Release pooled connections; the engine stays usable and reconnects lazily."""

        if self._engine is not None:
            self._engine.dispose()

    def _initialize(self) -> None:
        with tracer.start_as_current_span("InitHandle"):
            try:
                engine = self._create_engine()
            except Exception as exc:
                if isinstance(exc, FatalDatabaseError):
                    error = exc
                else:
                    error = ConnectionFailedError(f"Failed to initialize the database handle: {exc}")
                self._init_error = error
                database_handle_initializations_total.labels(result="failure").inc()
                logger.error("database handle initialization failed error=%s", error)
                if error is exc:
                    raise
                raise error from exc
            self._engine = engine
            database_handle_initializations_total.labels(result="success").inc()

    def _create_engine(self) -> Engine:
        try:
            settings = self.settings_factory()
            url = settings.url()
        except Exception as exc:
            raise ConnectionFailedError(f"Failed to resolve the database configuration: {exc}") from exc
        log_startup_config(settings.service_name, settings.startup_config())

        try:
            engine = self.engine_factory(url, pool_pre_ping=True)
        except (SQLAlchemyError, ImportError) as exc:
            raise ConnectionFailedError(f"Failed to create the database engine: {exc}") from exc
        try:
            with engine.connect():
                pass
        except SQLAlchemyError as exc:
            engine.dispose()
            raise ConnectionFailedError(f"Failed to connect to the database: {exc}") from exc

        current = None
        try:
            with engine.begin() as connection:
                for current in self.registry.descriptors:
                    logger.info("migrating schema=%s", current.name)
                    current.migrate(connection)
        except Exception as exc:
            engine.dispose()
            failed = current.name if current is not None else "<none>"
            raise MigrationFailedError(f"Failed to migrate the models schema={failed}: {exc}") from exc

        logger.info(
            "database handle ready url=%s migrated=%s",
            url.render_as_string(hide_password=True),
            len(self.registry.descriptors),
        )
        return engine
