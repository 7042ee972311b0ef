"""Shared fixtures: file-backed SQLite databases and an in-memory span exporter."""

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import event

from dbflow.db.database import Database
from helpers import settings_for


_exporter = InMemorySpanExporter()
_provider = TracerProvider()
_provider.add_span_processor(SimpleSpanProcessor(_exporter))
trace.set_tracer_provider(_provider)


@pytest.fixture
def spans():
    _exporter.clear()
    yield _exporter
    _exporter.clear()


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'dbflow.sqlite'}"


@pytest.fixture
def database(db_url):
    db = Database(settings_factory=settings_for(db_url))
    yield db
    db.dispose()


@pytest.fixture
def tx_events():
    """Count connection-level commits and rollbacks on an engine."""

    attached = []

    def attach(engine) -> dict:
        counts = {"commit": 0, "rollback": 0}

        def on_commit(conn):
            counts["commit"] += 1

        def on_rollback(conn):
            counts["rollback"] += 1

        event.listen(engine, "commit", on_commit)
        event.listen(engine, "rollback", on_rollback)
        attached.append((engine, on_commit, on_rollback))
        return counts

    yield attach
    for engine, on_commit, on_rollback in attached:
        event.remove(engine, "commit", on_commit)
        event.remove(engine, "rollback", on_rollback)
