"""Commit-or-rollback envelope around a caller-supplied unit of work."""

from time import perf_counter
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dbflow.common.errors import TransactionBeginError, TransactionCommitError, TransactionRolledBackError
from dbflow.common.logging import logger
from dbflow.common.metrics import transaction_duration_seconds, transactions_total
from dbflow.common.tracing import tracer

T = TypeVar("T")


class TransactionExecutor:
    """Runs each unit of work in its own session and transaction.

    Exactly one of commit or rollback is issued per call, none when the
    transaction could not be started. The session never outlives the call.
    """

    def __init__(self, connections) -> None:
        self.connections = connections

    def run(self, unit_of_work: Callable[[Session], T]) -> T:
        """Call `unit_of_work(session)` inside a transaction and return its result.

        Raises `TransactionBeginError`, `TransactionRolledBackError` or
        `TransactionCommitError`, each chained from the underlying exception.
        Fatal errors from creating the shared engine propagate unchanged.
        """

        with tracer.start_as_current_span("HandleTransaction") as span:
            engine = self.connections.get_handle()
            started = perf_counter()
            outcome = "begin_failed"
            # `expire_on_commit=False` keeps returned ORM objects readable after the call.
            session = Session(bind=engine, autoflush=False, expire_on_commit=False)
            try:
                try:
                    session.begin()
                    session.connection()
                except SQLAlchemyError as exc:
                    raise TransactionBeginError(f"Failed to start the transaction: {exc}") from exc
                outcome = "aborted"

                try:
                    result = unit_of_work(session)
                except Exception as exc:
                    outcome = "rolled_back"
                    self._rollback(session)
                    raise TransactionRolledBackError(f"Transaction failed, rolled back: {exc}") from exc

                try:
                    session.commit()
                except SQLAlchemyError as exc:
                    outcome = "commit_failed"
                    raise TransactionCommitError(f"Failed to commit the transaction: {exc}") from exc
                outcome = "committed"
                return result
            finally:
                session.close()
                span.set_attribute("db.transaction.outcome", outcome)
                transactions_total.labels(outcome=outcome).inc()
                transaction_duration_seconds.observe(perf_counter() - started)

    @staticmethod
    def _rollback(session: Session) -> None:
        # Best effort: the unit of work's error is what the caller needs to see.
        try:
            session.rollback()
        except SQLAlchemyError as exc:
            logger.warning("transaction rollback failed error=%s", exc)
