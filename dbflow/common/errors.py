"""Error taxonomy for the shared database handle and transaction wrapper.

Fatal errors describe a startup precondition that cannot be recovered from
inside the process (no schema registered, no connectivity, failed migration).
They are raised, not acted upon: the application's startup sequence decides
to terminate (see `dbflow.common.startup.init_or_exit`).

Transaction errors are returned to the call site and always chain the
underlying exception through `__cause__`.
"""


class DatabaseFlowError(Exception):
    """Base class for every error raised by dbflow."""


class FatalDatabaseError(DatabaseFlowError):
    """No safe continuation exists without a working database."""


class ModelsNotRegisteredError(FatalDatabaseError):
    """A handle was requested before any schema descriptors were registered."""


class ConnectionFailedError(FatalDatabaseError):
    """The engine could not be created or could not reach the database."""


class MigrationFailedError(FatalDatabaseError):
    """A registered schema descriptor failed to migrate."""


class TransactionError(DatabaseFlowError):
    """A transaction phase failed; recoverable by the caller."""


class TransactionBeginError(TransactionError):
    """The transaction could not be started; the unit of work never ran."""


class TransactionRolledBackError(TransactionError):
    """The unit of work raised and the transaction was rolled back."""


class TransactionCommitError(TransactionError):
    """The unit of work succeeded but the commit failed."""
