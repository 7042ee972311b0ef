"""Schema descriptors applied when the shared engine is first created.

Each descriptor knows how to bring its own piece of the schema up to date on
a connection. The connection manager runs them in registration order inside
one transaction, so it never has to inspect what it migrates.
"""

from typing import Any, Protocol, runtime_checkable

from alembic import command
from alembic.config import Config
from sqlalchemy import MetaData, Table
from sqlalchemy.engine import Connection


@runtime_checkable
class SchemaDescriptor(Protocol):
    name: str

    def migrate(self, connection: Connection) -> None: ...


class TableDescriptor:
    """Create one table if it does not exist yet."""

    def __init__(self, table: Table) -> None:
        self.table = table
        self.name = table.name

    def migrate(self, connection: Connection) -> None:
        self.table.create(connection, checkfirst=True)

    def __repr__(self) -> str:
        return f"TableDescriptor({self.name!r})"


class MetadataDescriptor:
    """Create every missing table of a `MetaData` collection."""

    def __init__(self, metadata: MetaData) -> None:
        self.metadata = metadata
        self.name = ",".join(sorted(metadata.tables)) or "metadata"

    def migrate(self, connection: Connection) -> None:
        self.metadata.create_all(connection)


class AlembicDescriptor:
    """Upgrade an Alembic-managed schema to `revision`.

    The open connection is handed to the migration environment through
    `config.attributes["connection"]`; the project's `env.py` must use it
    instead of building its own engine.
    """

    def __init__(self, config_path: str, revision: str = "head") -> None:
        self.config_path = config_path
        self.revision = revision
        self.name = f"alembic:{config_path}@{revision}"

    def migrate(self, connection: Connection) -> None:
        config = Config(self.config_path)
        config.attributes["connection"] = connection
        command.upgrade(config, self.revision)


def as_descriptor(item: Any) -> SchemaDescriptor:
    """Normalize a model class, `Table` or `MetaData` into a descriptor."""

    if isinstance(item, SchemaDescriptor):
        return item
    if isinstance(item, Table):
        return TableDescriptor(item)
    if isinstance(item, MetaData):
        return MetadataDescriptor(item)
    table = getattr(item, "__table__", None)
    if isinstance(table, Table):
        return TableDescriptor(table)
    raise TypeError(
        f"Cannot migrate {item!r}: expected a mapped model class, Table, MetaData or SchemaDescriptor"
    )
