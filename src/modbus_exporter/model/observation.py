from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import NamedTuple

from modbus_exporter.model.enum.metric_type_enum import MetricType


class MetricIdentity(NamedTuple):
    """Key under which a collector is registered: name, help and sorted label keys."""

    name: str
    help: str
    label_keys: tuple[str, ...]


@dataclass(frozen=True)
class Observation:
    """A fully resolved metric sample, ready to be applied to the registry."""

    name: str
    help: str
    labels: Mapping[str, str] = field(default_factory=dict)
    value: float = 0.0
    metric_type: MetricType = MetricType.GAUGE

    def __post_init__(self):
        object.__setattr__(self, "metric_type", MetricType(self.metric_type))
        object.__setattr__(self, "value", float(self.value))

    @property
    def identity(self) -> MetricIdentity:
        return MetricIdentity(self.name, self.help, tuple(sorted(self.labels)))

    def with_labels(self, extra: Mapping[str, str]) -> "Observation":
        """Return a copy whose labels are overlaid with ``extra`` (extra wins)."""
        return Observation(
            name=self.name,
            help=self.help,
            labels={**self.labels, **extra},
            value=self.value,
            metric_type=self.metric_type,
        )
