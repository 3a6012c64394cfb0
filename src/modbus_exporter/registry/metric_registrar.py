import logging
import math
import threading
from collections.abc import Iterable

from prometheus_client import CollectorRegistry, Counter, Gauge
from prometheus_client.metrics import MetricWrapperBase
from prometheus_client.metrics_core import Metric

from modbus_exporter.exception import (
    InvalidCounterUpdateError,
    MetricRegistrationError,
    ModbusExporterError,
)
from modbus_exporter.model.enum.metric_type_enum import MetricType
from modbus_exporter.model.observation import MetricIdentity, Observation
from modbus_exporter.schema.metric_definition_schema import MODULE_LABEL

logger = logging.getLogger("MetricRegistrar")

COLLECTOR_CLASSES: dict[MetricType, type[MetricWrapperBase]] = {
    MetricType.COUNTER: Counter,
    MetricType.GAUGE: Gauge,
}


class MetricRegistrar:
    """
    Registers observations into a Prometheus registry exactly once per metric identity.

    A metric identity is (name, help, sorted label keys). The first observation of an
    identity creates and registers a Counter/Gauge; later observations reuse it and only
    differ by label values or value. Collectors are cached for the lifetime of the
    registrar and never unregistered.

    Thread-safe: lookup, registration and value updates are serialized on one lock,
    so several poll cycles may share a registrar.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry: CollectorRegistry = registry if registry is not None else CollectorRegistry()
        self._collectors: dict[MetricIdentity, MetricWrapperBase] = {}
        self._lock = threading.RLock()

    def register_and_set(self, module_name: str, observations: Iterable[Observation]) -> None:
        """
        Register (if needed) and update every observation of one module.

        Every observation is attempted; failures are logged and the first one is
        raised after the batch. Collectors registered earlier in the batch stay
        registered.

        Raises:
            InvalidCounterUpdateError: a counter received a negative delta.
            MetricRegistrationError: an identity clashes with an incompatible collector.
        """
        first_error: ModbusExporterError | None = None

        for observation in observations:
            if module_name:
                observation = observation.with_labels({MODULE_LABEL: module_name})
            try:
                with self._lock:
                    collector = self._get_or_register(observation)
                    self._apply_value(collector, observation)
            except ModbusExporterError as e:
                logger.warning(f"[{module_name}] {observation.name}: {e}")
                if first_error is None:
                    first_error = e

        if first_error is not None:
            raise first_error

    def collect(self) -> list[Metric]:
        """Return the registry's current metric families."""
        return list(self.registry.collect())

    def registered_identities(self) -> list[MetricIdentity]:
        with self._lock:
            return list(self._collectors)

    def _get_or_register(self, observation: Observation) -> MetricWrapperBase:
        identity = observation.identity
        collector = self._collectors.get(identity)

        if collector is None:
            collector = self._register(identity, observation.metric_type)
            self._collectors[identity] = collector
            return collector

        if not isinstance(collector, COLLECTOR_CLASSES[observation.metric_type]):
            raise MetricRegistrationError(
                f"metric '{identity.name}' already registered with a different type "
                f"than '{observation.metric_type.value}'",
                identity.name,
            )
        return collector

    def _register(self, identity: MetricIdentity, metric_type: MetricType) -> MetricWrapperBase:
        collector_cls = COLLECTOR_CLASSES[metric_type]
        try:
            collector = collector_cls(identity.name, identity.help, labelnames=identity.label_keys, registry=None)
        except ValueError as e:
            raise MetricRegistrationError(f"cannot create {metric_type.value} '{identity.name}': {e}", identity.name) from e

        try:
            self.registry.register(collector)
        except ValueError as e:
            existing = self._find_registered(identity, collector_cls)
            if existing is None:
                raise MetricRegistrationError(f"cannot register '{identity.name}': {e}", identity.name) from e
            logger.debug(f"Duplicate registration of '{identity.name}' suppressed, reusing existing collector")
            return existing

        logger.debug(f"Registered {metric_type.value} '{identity.name}' labels={list(identity.label_keys)}")
        return collector

    def _find_registered(
        self, identity: MetricIdentity, collector_cls: type[MetricWrapperBase]
    ) -> MetricWrapperBase | None:
        """Find an equivalent collector already held by the registry (e.g. registered by another registrar)."""
        # CollectorRegistry has no public lookup by name
        existing = getattr(self.registry, "_names_to_collectors", {}).get(identity.name)
        if not isinstance(existing, collector_cls):
            return None
        if getattr(existing, "_documentation", None) != identity.help:
            return None
        if tuple(getattr(existing, "_labelnames", ())) != identity.label_keys:
            return None
        return existing

    @staticmethod
    def _apply_value(collector: MetricWrapperBase, observation: Observation) -> None:
        label_keys = observation.identity.label_keys
        value = observation.value
        is_gauge = observation.metric_type == MetricType.GAUGE

        if not is_gauge and (math.isnan(value) or value < 0):
            raise InvalidCounterUpdateError(
                f"metric '{observation.name}', type 'counter', value '{value}', "
                f"labels '{dict(observation.labels)}': counters can only be incremented by non-negative amounts",
                name=observation.name,
                value=value,
                labels=dict(observation.labels),
            )

        child = collector.labels(*(observation.labels[k] for k in label_keys)) if label_keys else collector
        if is_gauge:
            child.set(value)
            return

        try:
            child.inc(value)
        except ValueError as e:
            raise InvalidCounterUpdateError(
                f"metric '{observation.name}': {e}", name=observation.name, value=value, labels=dict(observation.labels)
            ) from e
