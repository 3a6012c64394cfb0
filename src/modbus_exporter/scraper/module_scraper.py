import logging
from dataclasses import dataclass, field

from modbus_exporter.device.modbus_bus import RegisterReader
from modbus_exporter.exception import ModbusExporterError
from modbus_exporter.model.observation import Observation
from modbus_exporter.registry.metric_registrar import MetricRegistrar
from modbus_exporter.schema.metric_definition_schema import MetricDefinition, ModuleConfig
from modbus_exporter.util.data_decoder import REGISTER_BYTES, decode_metric_data, required_byte_width
from modbus_exporter.util.logging_noise import RateLimitFilter
from modbus_exporter.util.value_transformer import apply_transformations

logger = logging.getLogger("ModuleScraper")
logger.addFilter(RateLimitFilter(period_sec=60.0))


@dataclass
class ScrapeResult:
    observations: list[Observation] = field(default_factory=list)
    # one entry per failed definition; names repeat when definitions differ only by labels
    errors: list[tuple[MetricDefinition, ModbusExporterError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def errors_for(self, name: str) -> list[ModbusExporterError]:
        return [error for definition, error in self.errors if definition.name == name]


def read_count(definition: MetricDefinition) -> int:
    """Number of registers (or coils) to request for one metric."""
    if definition.register_type.is_bit_type:
        return (definition.bit_offset or 0) + 1
    return -(-required_byte_width(definition.data_type) // REGISTER_BYTES)


class ModuleScraper:
    """
    Runs one poll cycle for a module: read → decode → transform → register.

    A metric that fails to read, decode or transform is recorded in the result
    and skipped; the remaining metrics of the module are still registered.
    """

    def __init__(self, module: ModuleConfig, reader: RegisterReader, registrar: MetricRegistrar):
        self.module = module
        self.reader = reader
        self.registrar = registrar

    async def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        pending: list[tuple[MetricDefinition, Observation]] = []

        for definition in self.module.metrics:
            try:
                pending.append((definition, await self.observe(definition)))
            except ModbusExporterError as e:
                logger.warning(f"[{self.module.name}] {definition.name}: {e}")
                result.errors.append((definition, e))

        # register one at a time so a bad update only marks its own metric as failed
        for definition, observation in pending:
            try:
                self.registrar.register_and_set(self.module.name, [observation])
            except ModbusExporterError as e:
                result.errors.append((definition, e))
                continue
            result.observations.append(observation)

        logger.debug(f"[{self.module.name}] scraped {len(result.observations)}/{len(self.module.metrics)} metrics")
        return result

    async def observe(self, definition: MetricDefinition) -> Observation:
        """Read and resolve a single metric definition into an Observation."""
        raw = await self.reader.read(definition.register_type, definition.offset, read_count(definition))
        decoded = decode_metric_data(definition, raw)
        value = apply_transformations(definition.factor, definition.bias, definition.expression, decoded)

        return Observation(
            name=definition.name,
            help=definition.help,
            labels={**self.module.labels, **definition.labels},
            value=value,
            metric_type=definition.metric_type,
        )
