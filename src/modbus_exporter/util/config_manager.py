import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from modbus_exporter.exception import MetricConfigError
from modbus_exporter.schema.metric_definition_schema import ExporterConfig

logger = logging.getLogger("ConfigManager")

ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::-([^\}]*))?\}")  # ${VAR_NAME:-default} or ${VAR_NAME}


class ConfigManager:

    @staticmethod
    def load_yaml_file(path: str | Path) -> dict:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @staticmethod
    def parse_env_var_with_default(value: str) -> bool | int | float | str | None:
        """
        Resolve a value that is exactly one ``${VAR}`` / ``${VAR:-default}`` reference.

        Returns the value unchanged when it is not a reference, and None when
        the variable is unset and no default is given.
        """
        match = ENV_VAR_PATTERN.fullmatch(value.strip())
        if not match:
            return value

        var_name = match.group(1)
        default_value = match.group(2)

        resolved_value = os.getenv(var_name) or default_value
        if resolved_value is not None:
            return ConfigManager._parse_value_by_type(resolved_value)
        return None

    @staticmethod
    def expand_env_vars(node: Any) -> Any:
        """Recursively resolve ${VAR} references in every string of a loaded YAML tree."""
        if isinstance(node, dict):
            return {k: ConfigManager.expand_env_vars(v) for k, v in node.items()}
        if isinstance(node, list):
            return [ConfigManager.expand_env_vars(v) for v in node]
        if isinstance(node, str):
            return ConfigManager.parse_env_var_with_default(node)
        return node

    @staticmethod
    def load_exporter_config(config_path: str | Path, env_file: str | Path | None = None) -> ExporterConfig:
        """
        Load and validate the exporter configuration.

        Raises:
            MetricConfigError: file missing, invalid YAML, or schema validation failure.
        """
        if env_file is not None:
            load_dotenv(dotenv_path=env_file, override=False)

        try:
            raw_config = ConfigManager.load_yaml_file(config_path)
        except (OSError, yaml.YAMLError) as e:
            raise MetricConfigError(f"cannot read config '{config_path}': {e}") from e

        try:
            config = ExporterConfig.model_validate(ConfigManager.expand_env_vars(raw_config))
        except ValidationError as e:
            raise MetricConfigError(f"invalid config '{config_path}': {e}") from e

        metric_count = sum(len(m.metrics) for m in config.modules)
        logger.info(f"Loaded {len(config.modules)} module(s), {metric_count} metric(s) from {config_path}")
        return config

    @staticmethod
    def _parse_value_by_type(value: str) -> bool | int | float | str:
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value
