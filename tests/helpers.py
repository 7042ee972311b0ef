"""Small helpers shared by test modules."""

from prometheus_client import REGISTRY

from dbflow.common.config import DatabaseSettings


def sample(name: str, labels: dict | None = None) -> float:
    """Current value of a Prometheus sample, 0.0 when never observed."""

    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def settings_for(url: str):
    def factory() -> DatabaseSettings:
        return DatabaseSettings(DATABASE_URL=url, _env_file=None)

    return factory
