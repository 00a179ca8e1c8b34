"""Configuration for the run command.

Example config file (run.yaml):

    data:
      source: json
      params:
        file_path: velocityDataOHLCV.json
        dataset: biometric
    indicators:
      - preset: "SMA"
      - preset: "Lorentzian KNN Signal"
      - name: "Spread minus youth"
        expression: "spread - youth"
      - name: "Custom"
        script_file: custom.py      # relative to this file
    engine:
      max_steps: 1000000
      time_limit_seconds: 5.0
      max_workers: 4
    logging:
      level: INFO
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from aadhaar_velocity.exceptions import ConfigError, UnknownPresetError
from aadhaar_velocity.indicators.catalog import preset_definition
from aadhaar_velocity.types import (
    DataConfig,
    EngineConfig,
    IndicatorDefinition,
    IndicatorKind,
    RunConfig,
    ScriptLanguage,
)

# Valid bar source types
VALID_SOURCES = frozenset(["json", "csv", "synthetic"])

# Valid logging levels
VALID_LOG_LEVELS = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])

# Keys that say where an indicator's source comes from; exactly one is allowed
INDICATOR_SOURCE_KEYS = ("preset", "expression", "script", "script_file")


def _parse_data(raw_data: Any) -> DataConfig:
    if not isinstance(raw_data, dict):
        raise ConfigError("'data' must be a mapping with 'source' and optional 'params'")
    source = raw_data.get("source")
    if not isinstance(source, str):
        raise ConfigError("'data.source' is required")
    if source.lower() not in VALID_SOURCES:
        raise ConfigError(
            f"Invalid data source '{source}'. Valid options: {sorted(VALID_SOURCES)}"
        )
    params = raw_data.get("params", {})
    if not isinstance(params, dict):
        raise ConfigError("'data.params' must be a mapping")
    return DataConfig(source=source.lower(), params=params)


def _parse_indicator(index: int, raw: Any, base_dir: Path) -> IndicatorDefinition:
    """Build one indicator definition.

    :param index: Position in the list, used in error messages.
    :param raw: Mapping from the config file.
    :param base_dir: Directory that relative ``script_file`` paths resolve against.
    :raises ConfigError: If the entry is invalid.
    """
    where = f"indicators[{index}]"
    if not isinstance(raw, dict):
        raise ConfigError(f"'{where}' must be a mapping")

    present = [key for key in INDICATOR_SOURCE_KEYS if key in raw]
    if len(present) != 1:
        raise ConfigError(
            f"'{where}' must have exactly one of: {', '.join(INDICATOR_SOURCE_KEYS)}"
        )
    key = present[0]

    if key == "preset":
        try:
            definition = preset_definition(str(raw["preset"]))
        except UnknownPresetError as e:
            raise ConfigError(f"'{where}': {e}") from e
        if "name" in raw:
            definition = definition.model_copy(update={"name": str(raw["name"])})
        return definition

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigError(f"'{where}.name' is required for {key} indicators")

    if key == "script_file":
        script_path = Path(raw["script_file"])
        if not script_path.is_absolute():
            script_path = base_dir / script_path
        try:
            source = script_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"'{where}': cannot read script file {script_path}: {e}") from e
    else:
        source = raw[key]
        if not isinstance(source, str) or not source.strip():
            raise ConfigError(f"'{where}.{key}' must be a non-empty string")

    language = ScriptLanguage.EXPRESSION if key == "expression" else ScriptLanguage.PYTHON
    definition = IndicatorDefinition.from_script(name, source, language=language)

    if "kind" in raw:
        try:
            kind = IndicatorKind(raw["kind"])
        except ValueError as e:
            raise ConfigError(
                f"'{where}.kind' must be one of: {', '.join(k.value for k in IndicatorKind)}"
            ) from e
        definition = definition.model_copy(update={"kind": kind})
    return definition


def _parse_engine(raw_engine: Any) -> EngineConfig:
    if raw_engine is None:
        return EngineConfig()
    if not isinstance(raw_engine, dict):
        raise ConfigError("'engine' must be a mapping")
    unknown = sorted(set(raw_engine) - set(EngineConfig.model_fields))
    if unknown:
        raise ConfigError(f"Unknown engine settings: {', '.join(unknown)}")
    try:
        return EngineConfig(**raw_engine)
    except ValidationError as e:
        raise ConfigError(f"Invalid engine configuration: {e}") from e


def _parse_log_level(raw_logging: Any) -> str:
    if raw_logging is None:
        return "INFO"
    if not isinstance(raw_logging, dict):
        raise ConfigError("'logging' must be a mapping")
    level = str(raw_logging.get("level", "INFO")).upper()
    if level not in VALID_LOG_LEVELS:
        raise ConfigError(
            f"Invalid logging level '{level}'. Valid options: {sorted(VALID_LOG_LEVELS)}"
        )
    return level


def load_run_config(config_path: str | Path) -> RunConfig:
    """Parse and validate a run configuration file.

    :param config_path: Path to YAML configuration file.
    :returns: Validated RunConfig object.
    :raises ConfigError: If file cannot be read or config is invalid.
    """
    config_path = Path(config_path)

    # Read and parse YAML
    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a YAML mapping")

    if "data" not in raw_config:
        raise ConfigError("Missing required field: data")
    data = _parse_data(raw_config["data"])

    raw_indicators = raw_config.get("indicators")
    if not isinstance(raw_indicators, list) or len(raw_indicators) == 0:
        raise ConfigError("'indicators' must be a non-empty list")
    base_dir = config_path.resolve().parent
    indicators = [
        _parse_indicator(index, raw, base_dir) for index, raw in enumerate(raw_indicators)
    ]

    names = [d.name for d in indicators]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate indicator names: {', '.join(duplicates)}")

    return RunConfig(
        data=data,
        indicators=indicators,
        engine=_parse_engine(raw_config.get("engine")),
        log_level=_parse_log_level(raw_config.get("logging")),
    )
