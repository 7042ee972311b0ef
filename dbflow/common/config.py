"""Environment-driven database settings.

The connection manager builds these once, inside its guarded initializer.
Values come from the environment or a local `.env` file. A missing or
unparsable connection value never stops startup: the documented default is
used and a warning names the variable that was ignored.
"""

from typing import Any

from pydantic import Field, ValidationError, ValidationInfo, ValidatorFunctionWrapHandler, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

from dbflow.common.logging import logger


DEFAULTS: dict[str, Any] = {
    "host": "db",
    "username": "test",
    "password": "test",
    "name": "test",
    "timezone": "Europe/Berlin",
    "connect_timeout_seconds": 10,
    "port": 5432,
    "ssl_mode": True,
}


class DatabaseSettings(BaseSettings):
    """Typed view of the database connection configuration."""

    # Unaliased fields read `DB_<FIELD>`; `None` marks "not provided" so the
    # fallback validator can report it.
    host: str = Field(None, validate_default=True)
    username: str = Field(None, validate_default=True)
    password: str = Field(None, validate_default=True)
    name: str = Field(None, validate_default=True)
    timezone: str = Field(None, validation_alias="TZ", validate_default=True)
    connect_timeout_seconds: int = Field(None, validation_alias="CONNECT_TIMEOUT_SECONDS", validate_default=True)
    port: int = Field(None, validate_default=True)
    ssl_mode: bool = Field(None, validate_default=True)

    database_url: str | None = Field(None, validation_alias="DATABASE_URL")
    service_name: str = Field("dbflow", validation_alias="SERVICE_NAME")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    otel_exporter_otlp_endpoint: str = Field(
        "http://otel-collector:4318/v1/traces", validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT"
    )
    model_config = SettingsConfigDict(env_prefix="DB_", env_file=".env", extra="ignore")

    @field_validator(*DEFAULTS, mode="wrap")
    @classmethod
    def _fallback_to_default(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        variable = cls.model_fields[info.field_name].validation_alias or (
            cls.model_config["env_prefix"] + info.field_name
        ).upper()
        if value is None or value == "":
            logger.warning("%s not set, using default", variable)
            return DEFAULTS[info.field_name]
        try:
            return handler(value)
        except ValidationError as exc:
            logger.warning(
                "Failed to parse %s, using default error=%s", variable, exc.errors()[0]["msg"]
            )
            return DEFAULTS[info.field_name]

    def url(self) -> URL:
        """Connection URL for the engine; `DATABASE_URL` wins when set."""

        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            "postgresql+psycopg",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.name,
            query={
                "sslmode": "require" if self.ssl_mode else "disable",
                "connect_timeout": str(self.connect_timeout_seconds),
                "options": f"-c TimeZone={self.timezone}",
            },
        )

    def startup_config(self) -> dict[str, Any]:
        """Resolved values worth logging at startup; secrets are redacted later."""

        config = self.model_dump(exclude={"database_url"})
        config["url"] = self.url().render_as_string(hide_password=True)
        return config
