"""Modbus Exporter Exception Definitions"""


class ModbusExporterError(Exception):
    """Base exception for the exporter"""

    pass


class InsufficientRegistersError(ModbusExporterError):
    """Raw buffer is shorter than the declared data type requires"""

    def __init__(self, required: int, actual: int):
        super().__init__(f"insufficient register data: required {required} bytes, got {actual}")
        self.required = required
        self.actual = actual


class ExpressionEvaluationError(ModbusExporterError):
    """Transformation expression could not be parsed or evaluated"""

    def __init__(self, message: str, expression: str | None = None):
        super().__init__(message)
        self.expression = expression


class MetricError(ModbusExporterError):
    """Base class for metric registration exceptions"""

    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name


class MetricRegistrationError(MetricError):
    """Metric identity collides with an incompatible registered collector"""

    pass


class InvalidCounterUpdateError(MetricError):
    """Counter update with a negative delta"""

    def __init__(self, message: str, name: str | None = None, value=None, labels: dict | None = None):
        super().__init__(message, name)
        self.value = value
        self.labels = labels or {}


class MetricConfigError(ModbusExporterError):
    """Exporter configuration could not be loaded or validated"""

    pass


class DeviceReadError(ModbusExporterError):
    """Register read failed (connection or Modbus error response)"""

    def __init__(self, message: str, register_type: str | None = None, offset: int | None = None):
        super().__init__(message)
        self.register_type = register_type
        self.offset = offset
