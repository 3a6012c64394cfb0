"""
Metric Definition Schema for the Modbus exporter
Describes how one register read is decoded, transformed and exposed
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modbus_exporter.exception import ExpressionEvaluationError
from modbus_exporter.model.enum.data_type_enum import DataType
from modbus_exporter.model.enum.endianness_enum import Endianness
from modbus_exporter.model.enum.metric_type_enum import MetricType
from modbus_exporter.model.enum.register_type_enum import RegisterType
from modbus_exporter.util.expression_evaluator import validate_expression

METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
MODULE_LABEL = "module"
MAX_BIT_OFFSET = 7


def check_label_names(labels: dict[str, str]) -> dict[str, str]:
    for key in labels:
        if not LABEL_NAME_RE.match(key) or key.startswith("__"):
            raise ValueError(f"invalid label name '{key}'")
        if key == MODULE_LABEL:
            raise ValueError(f"label '{MODULE_LABEL}' is reserved")
    return labels


class MetricDefinition(BaseModel):
    """One metric read from a single Modbus address"""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    name: str = Field(..., description="Prometheus metric name")
    help: str = Field(default="", description="Metric help text")
    labels: dict[str, str] = Field(default_factory=dict, description="Static labels for this metric")
    address: int = Field(..., ge=0, description="Modbus address, leading digit selects the register type")
    data_type: DataType = Field(..., alias="dataType", description="Register data type")
    endianness: Endianness = Field(default=Endianness.BIG, description="Byte ordering on the wire")
    bit_offset: int | None = Field(default=None, alias="bitOffset", description="Bit index for bool values")
    factor: float | None = Field(default=None, description="Scale factor applied before bias")
    bias: float | None = Field(default=None, description="Bias subtracted after scaling")
    expression: str | None = Field(default=None, description="Formula over the decoded value, overrides factor/bias")
    metric_type: MetricType = Field(..., alias="metricType", description="counter or gauge")

    @field_validator("data_type", mode="before")
    @classmethod
    def _parse_data_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return DataType.from_string(v) or v
        return v

    @field_validator("endianness", mode="before")
    @classmethod
    def _parse_endianness(cls, v: Any) -> Any:
        if v is None:
            return Endianness.BIG
        if isinstance(v, str):
            return Endianness.from_string(v) or v
        return v

    @field_validator("metric_type", mode="before")
    @classmethod
    def _parse_metric_type(cls, v: Any) -> Any:
        return v.lower().strip() if isinstance(v, str) else v

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        if not METRIC_NAME_RE.match(v):
            raise ValueError(f"invalid metric name '{v}'")
        return v

    @field_validator("labels")
    @classmethod
    def _check_labels(cls, v: dict[str, str]) -> dict[str, str]:
        return check_label_names(v)

    @field_validator("expression")
    @classmethod
    def _check_expression(cls, v: str | None) -> str | None:
        if not v:
            return None
        try:
            validate_expression(v)
        except ExpressionEvaluationError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def _check_consistency(self) -> MetricDefinition:
        problems: list[str] = []

        try:
            register_type, _ = RegisterType.from_address(self.address)
        except ValueError as e:
            problems.append(str(e))
            register_type = None

        if register_type is not None and register_type.is_bit_type and self.data_type is not DataType.BOOL:
            problems.append(f"{register_type.value} address {self.address} only supports data type 'bool'")

        if self.bit_offset is not None:
            if self.data_type is not DataType.BOOL:
                problems.append("bit_offset is only valid for data type 'bool'")
            elif not 0 <= self.bit_offset <= MAX_BIT_OFFSET:
                problems.append(f"bit_offset must be between 0 and {MAX_BIT_OFFSET}")

        if problems:
            raise ValueError("; ".join(problems))
        return self

    @property
    def register_type(self) -> RegisterType:
        return RegisterType.from_address(self.address)[0]

    @property
    def offset(self) -> int:
        return RegisterType.from_address(self.address)[1]


class ModuleConfig(BaseModel):
    """A named group of metric definitions read from one device model"""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, description="Module name, exposed as the 'module' label")
    labels: dict[str, str] = Field(default_factory=dict, description="Labels added to every metric of this module")
    metrics: list[MetricDefinition] = Field(default_factory=list)

    @field_validator("labels")
    @classmethod
    def _check_labels(cls, v: dict[str, str]) -> dict[str, str]:
        return check_label_names(v)


class ExporterConfig(BaseModel):
    """Complete exporter configuration"""

    modules: list[ModuleConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_modules(self) -> ExporterConfig:
        seen: set[str] = set()
        for module in self.modules:
            if module.name in seen:
                raise ValueError(f"duplicate module name '{module.name}'")
            seen.add(module.name)
        return self

    def get_module(self, name: str) -> ModuleConfig | None:
        return next((m for m in self.modules if m.name == name), None)
