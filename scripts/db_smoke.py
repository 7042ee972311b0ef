"""Exercise the shared handle end to end and print a JSON summary."""

import argparse
import json

from sqlalchemy import Integer, String, func, select
from sqlalchemy.orm import Mapped, mapped_column

from dbflow.common.config import DatabaseSettings
from dbflow.common.errors import TransactionError
from dbflow.common.logging import configure_logging
from dbflow.common.startup import init_or_exit
from dbflow.common.tracing import setup_tracing
from dbflow.db.base import Base
from dbflow.db.database import Database


class SmokeCheck(Base):
    __tablename__ = "smoke_checks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    label: Mapped[str] = mapped_column(String)


def main() -> None:
    """CLI entrypoint for database smoke checks."""

    parser = argparse.ArgumentParser(description="Connect, migrate and run two transactions.")
    parser.add_argument("--database-url", default=None, help="overrides DATABASE_URL and DB_* settings")
    parser.add_argument(
        "--otlp-endpoint", default=None, help="span exporter endpoint, defaults to OTEL_EXPORTER_OTLP_ENDPOINT"
    )
    args = parser.parse_args()

    settings = DatabaseSettings()
    if args.database_url:
        settings = settings.model_copy(update={"database_url": args.database_url})
    configure_logging(settings.service_name, settings.log_level)
    setup_tracing(settings, args.otlp_endpoint)

    database = Database(settings_factory=lambda: settings)
    database.register_models(SmokeCheck)
    init_or_exit(database)

    database.run_in_transaction(lambda session: session.add(SmokeCheck(label="committed")))

    def failing(session):
        session.add(SmokeCheck(label="rolled back"))
        raise RuntimeError("deliberate failure")

    rollback_error = None
    try:
        database.run_in_transaction(failing)
    except TransactionError as exc:
        rollback_error = str(exc)

    rows = database.run_in_transaction(
        lambda session: session.execute(select(func.count()).select_from(SmokeCheck)).scalar_one()
    )
    print(json.dumps({"rows": rows, "rollback_error": rollback_error}, indent=2))
    database.dispose()


if __name__ == "__main__":
    main()
