"""Prometheus metric definitions for the database handle and transactions."""

from prometheus_client import Counter, Histogram


transactions_total = Counter(
    "transactions_total",
    "Transactions handled, by outcome",
    ["outcome"],
)
transaction_duration_seconds = Histogram(
    "transaction_duration_seconds",
    "Wall time of one transaction envelope including commit or rollback",
)
database_handle_initializations_total = Counter(
    "database_handle_initializations_total",
    "Guarded engine creation attempts",
    ["result"],
)
model_registration_duplicates_total = Counter(
    "model_registration_duplicates_total",
    "Model registrations ignored because models were already registered",
)
