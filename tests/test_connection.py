"""Connection manager: guarded creation, migration and fatal errors."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine, inspect

from helpers import sample, settings_for
from dbflow.common.errors import (
    ConnectionFailedError,
    FatalDatabaseError,
    MigrationFailedError,
    ModelsNotRegisteredError,
)
from dbflow.db.connection import ConnectionManager
from dbflow.db.registry import ModelRegistry
from models import Account, LedgerEntry


class RecordingDescriptor:
    def __init__(self, name, log, fail=False):
        self.name = name
        self.log = log
        self.fail = fail

    def migrate(self, connection):
        self.log.append(self.name)
        if self.fail:
            raise RuntimeError(f"{self.name} cannot be applied")


class CountingFactory:
    """Wrap `create_engine` to count how often an engine is built."""

    def __init__(self, delay: float = 0.0) -> None:
        self.calls = 0
        self.delay = delay
        self.engines = []

    def __call__(self, url, **kwargs):
        self.calls += 1
        time.sleep(self.delay)
        engine = create_engine(url, **kwargs)
        self.engines.append(engine)
        return engine


def _manager(db_url, *models, engine_factory=create_engine):
    registry = ModelRegistry()
    if models:
        registry.register(*models)
    return ConnectionManager(registry, settings_for(db_url), engine_factory)


def test_handle_before_registration_is_fatal(db_url):
    factory = CountingFactory()
    manager = ConnectionManager(ModelRegistry(), settings_for(db_url), factory)

    with pytest.raises(ModelsNotRegisteredError) as exc_info:
        manager.get_handle()

    assert isinstance(exc_info.value, FatalDatabaseError)
    assert factory.calls == 0


def test_first_call_creates_and_migrates(db_url):
    manager = _manager(db_url, Account, LedgerEntry)

    engine = manager.get_handle()

    assert {"accounts", "ledger_entries"} <= set(inspect(engine).get_table_names())
    manager.dispose()


def test_sequential_calls_reuse_the_handle(db_url):
    log = []
    factory = CountingFactory()
    manager = _manager(db_url, RecordingDescriptor("schema", log), engine_factory=factory)
    before = sample("database_handle_initializations_total", {"result": "success"})

    first = manager.get_handle()
    second = manager.get_handle()

    assert first is second
    assert factory.calls == 1
    assert log == ["schema"]
    assert sample("database_handle_initializations_total", {"result": "success"}) == before + 1
    manager.dispose()


def test_concurrent_first_calls_share_one_initialization(db_url):
    log = []
    factory = CountingFactory(delay=0.05)
    manager = _manager(db_url, RecordingDescriptor("schema", log), engine_factory=factory)
    callers = 12
    barrier = threading.Barrier(callers)

    def get():
        barrier.wait()
        return manager.get_handle()

    with ThreadPoolExecutor(max_workers=callers) as pool:
        handles = list(pool.map(lambda _: get(), range(callers)))

    assert factory.calls == 1
    assert log == ["schema"]
    assert all(handle is handles[0] for handle in handles)
    manager.dispose()


def test_concurrent_first_calls_share_one_failure(db_url):
    log = []
    factory = CountingFactory(delay=0.05)
    manager = _manager(db_url, RecordingDescriptor("broken", log, fail=True), engine_factory=factory)
    callers = 12
    barrier = threading.Barrier(callers)

    def get():
        barrier.wait()
        try:
            manager.get_handle()
        except FatalDatabaseError as exc:
            return exc
        return None

    with ThreadPoolExecutor(max_workers=callers) as pool:
        errors = list(pool.map(lambda _: get(), range(callers)))

    assert isinstance(errors[0], MigrationFailedError)
    assert all(error is errors[0] for error in errors)
    assert factory.calls == 1
    assert log == ["broken"]


def test_migrations_run_in_registration_order(db_url):
    log = []
    manager = _manager(db_url, *(RecordingDescriptor(name, log) for name in ["c", "a", "b"]))

    manager.get_handle()

    assert log == ["c", "a", "b"]
    manager.dispose()


def test_unreachable_database_is_fatal(tmp_path):
    url = f"sqlite:///{tmp_path / 'missing' / 'dir' / 'db.sqlite'}"
    manager = _manager(url, Account)

    with pytest.raises(ConnectionFailedError) as exc_info:
        manager.get_handle()

    assert exc_info.value.__cause__ is not None


def test_unknown_driver_is_fatal():
    manager = _manager("nosuchdialect://nowhere", Account)

    with pytest.raises(ConnectionFailedError):
        manager.get_handle()


def test_migration_failure_is_fatal_and_stops_later_descriptors(db_url):
    log = []
    manager = _manager(
        db_url,
        RecordingDescriptor("first", log),
        RecordingDescriptor("broken", log, fail=True),
        RecordingDescriptor("never", log),
    )

    with pytest.raises(MigrationFailedError) as exc_info:
        manager.get_handle()

    assert "broken" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert log == ["first", "broken"]


def test_failed_initialization_is_latched(db_url):
    log = []
    factory = CountingFactory()
    manager = _manager(db_url, RecordingDescriptor("broken", log, fail=True), engine_factory=factory)

    with pytest.raises(MigrationFailedError) as first:
        manager.get_handle()
    with pytest.raises(MigrationFailedError) as second:
        manager.get_handle()

    assert first.value is second.value
    assert factory.calls == 1
    assert log == ["broken"]


def test_malformed_database_url_is_fatal_on_every_call():
    manager = _manager("not a url at all", Account)

    with pytest.raises(ConnectionFailedError) as first:
        manager.get_handle()
    with pytest.raises(ConnectionFailedError) as second:
        manager.get_handle()

    assert first.value is second.value
    assert "database configuration" in str(first.value)
    assert first.value.__cause__ is not None


def test_unexpected_creation_error_is_wrapped_as_fatal(db_url):
    calls = []

    def broken_factory(url, **kwargs):
        calls.append(url)
        raise ValueError("unsupported pool option")

    manager = _manager(db_url, Account, engine_factory=broken_factory)

    with pytest.raises(ConnectionFailedError) as first:
        manager.get_handle()
    with pytest.raises(ConnectionFailedError) as second:
        manager.get_handle()

    assert isinstance(first.value.__cause__, ValueError)
    assert first.value is second.value
    assert len(calls) == 1


def test_settings_failure_is_fatal():
    def broken_settings():
        raise RuntimeError("settings source unavailable")

    registry = ModelRegistry()
    registry.register(Account)
    manager = ConnectionManager(registry, broken_settings)

    with pytest.raises(ConnectionFailedError) as exc_info:
        manager.get_handle()

    assert isinstance(exc_info.value.__cause__, RuntimeError)
