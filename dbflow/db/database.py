"""Composition of registry, connection manager and transaction executor.

The embedding application builds one `Database` at startup and shares it:

    database = Database()
    database.register_models(Account, LedgerEntry)
    init_or_exit(database)
    database.run_in_transaction(lambda session: session.add(Account(...)))
"""

from typing import Any, Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from dbflow.common.config import DatabaseSettings
from dbflow.db.connection import ConnectionManager
from dbflow.db.registry import ModelRegistry
from dbflow.db.transaction import TransactionExecutor

T = TypeVar("T")


class Database:
    """One registry, one lazily created engine and a transaction wrapper over it."""

    def __init__(
        self,
        settings_factory: Callable[[], DatabaseSettings] = DatabaseSettings,
        engine_factory: Callable[..., Engine] = create_engine,
    ) -> None:
        self.registry = ModelRegistry()
        self.connections = ConnectionManager(self.registry, settings_factory, engine_factory)
        self.transactions = TransactionExecutor(self.connections)

    def register_models(self, *models: Any) -> bool:
        """Register schema descriptors once; later calls are logged no-ops."""

        return self.registry.register(*models)

    def get_handle(self) -> Engine:
        """Shared engine, created and migrated on first use."""

        return self.connections.get_handle()

    def run_in_transaction(self, unit_of_work: Callable[[Session], T]) -> T:
        """Run `unit_of_work(session)` inside a transaction; commit or roll back."""

        return self.transactions.run(unit_of_work)

    def dispose(self) -> None:
        """Release pooled connections."""

        self.connections.dispose()
