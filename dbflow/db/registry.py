"""Model registry: the schema descriptors migrated when the engine is created."""

from typing import Any

from dbflow.common.logging import logger
from dbflow.common.metrics import model_registration_duplicates_total
from dbflow.common.once import Once
from dbflow.common.tracing import tracer
from dbflow.db.migrations import SchemaDescriptor, as_descriptor


class ModelRegistry:
    """Ordered, write-once collection of schema descriptors.

    Only the first registration is kept; later attempts are logged and
    ignored. Registration order is migration order.
    """

    def __init__(self) -> None:
        self._once = Once()
        self._descriptors: tuple[SchemaDescriptor, ...] = ()

    @property
    def is_registered(self) -> bool:
        return self._once.done

    @property
    def descriptors(self) -> tuple[SchemaDescriptor, ...]:
        return self._descriptors

    def register(self, *models: Any) -> bool:
        """Store `models` unless a registration already happened.

        Returns True when this call's descriptors were stored. A repeated
        registration is not an error.
        """

        with tracer.start_as_current_span("RegisterModels") as span:
            descriptors = tuple(as_descriptor(model) for model in models)
            span.set_attribute("db.models.count", len(descriptors))

            def store() -> None:
                self._descriptors = descriptors

            if self._once.do(store):
                logger.info(
                    "models_registered count=%s names=%s",
                    len(descriptors),
                    [descriptor.name for descriptor in descriptors],
                )
                return True

            model_registration_duplicates_total.inc()
            span.set_attribute("db.models.duplicate", True)
            logger.error("Models have already been registered, ignoring count=%s", len(descriptors))
            return False
