"""Bar source implementations.

This module provides an abstract interface for bar sources and concrete
implementations for JSON files, CSV files, and synthetic data.
"""

from __future__ import annotations

import csv
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from aadhaar_velocity.data.synthetic import generate_sample_bars
from aadhaar_velocity.exceptions import DataSourceError, DataValidationError
from aadhaar_velocity.types import AUXILIARY_FIELDS, Bar, TimeValue

# Columns read from CSV files besides time and OHLC
OPTIONAL_COLUMNS = ("volume",) + AUXILIARY_FIELDS


class BarSource(ABC):
    """Abstract base class for bar sources.

    All bar source implementations must inherit from this class and implement
    the `load_bars` method.
    """

    @abstractmethod
    def load_bars(self) -> list[Bar]:
        """Load bars in chronological order.

        :returns: List of Bar objects.
        :raises DataSourceError: If loading fails.
        :raises DataValidationError: If the bars are not ordered by time.
        """
        ...


def _require_file(params: dict[str, Any], source_name: str) -> Path:
    file_path = params.get("file_path")
    if not file_path:
        raise DataSourceError(f"{source_name} requires 'file_path' in params")
    return Path(file_path)


def _parse_time(value: str) -> TimeValue:
    """Integer-looking values become unix times; anything else stays text."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def validate_bar_order(bars: list[Bar]) -> list[Bar]:
    """Check that bar times never decrease.

    :param bars: Bars to check.
    :returns: The same bars, for chaining.
    :raises DataValidationError: If a bar is earlier than its predecessor or
        times of different types are mixed.
    """
    for index in range(1, len(bars)):
        previous, current = bars[index - 1].time, bars[index].time
        try:
            out_of_order = current < previous  # type: ignore[operator]
        except TypeError as e:
            raise DataValidationError(
                f"Bar {index} has a time of type {type(current).__name__}, "
                f"previous bar has {type(previous).__name__}"
            ) from e
        if out_of_order:
            raise DataValidationError(
                f"Bars must be ordered by time: bar {index} ({current!r}) "
                f"precedes bar {index - 1} ({previous!r})"
            )
    return bars


def bars_from_records(records: list[Any]) -> list[Bar]:
    """Validate a list of bar mappings into Bar objects.

    :raises DataSourceError: If a record is not a valid bar.
    """
    bars: list[Bar] = []
    for index, record in enumerate(records):
        try:
            bars.append(Bar.model_validate(record))
        except ValidationError as e:
            raise DataSourceError(f"Invalid bar at index {index}: {e}") from e
    return bars


class JSONBarSource(BarSource):
    """Bar source that reads a JSON file.

    The file holds either a list of bar objects, or an object mapping dataset
    names (e.g. ``biometric``, ``enrolment``, ``demographic``) to such lists.

    :param params: Required parameters:
        - file_path: Path to the JSON file.
        Optional parameters:
        - dataset: Key to select when the file is a mapping. Required if the
          mapping holds more than one dataset.
    """

    def __init__(self, params: dict[str, Any] | None = None) -> None:
        self.params = params or {}
        self.file_path = _require_file(self.params, "JSONBarSource")
        self.dataset = self.params.get("dataset")

    def _select(self, payload: Any) -> list[Any]:
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            raise DataSourceError(
                f"Expected a list of bars or a mapping of datasets in {self.file_path}"
            )
        if self.dataset is None:
            if len(payload) != 1:
                raise DataSourceError(
                    f"{self.file_path} holds several datasets; choose one with 'dataset': "
                    f"{', '.join(sorted(payload))}"
                )
            name, records = next(iter(payload.items()))
        elif self.dataset in payload:
            name, records = self.dataset, payload[self.dataset]
        else:
            raise DataSourceError(
                f"Dataset '{self.dataset}' not found in {self.file_path}. "
                f"Available: {', '.join(sorted(payload))}"
            )
        if not isinstance(records, list):
            raise DataSourceError(f"Dataset '{name}' must be a list of bars")
        return records

    def load_bars(self) -> list[Bar]:
        if not self.file_path.exists():
            raise DataSourceError(f"JSON file not found: {self.file_path}")
        try:
            with open(self.file_path, encoding="utf-8") as f:
                payload = json.load(f)
        except json.JSONDecodeError as e:
            raise DataSourceError(f"Invalid JSON in {self.file_path}: {e}") from e
        except OSError as e:
            raise DataSourceError(f"Failed to read JSON file: {e}") from e

        return validate_bar_order(bars_from_records(self._select(payload)))


class CSVBarSource(BarSource):
    """Bar source that reads bars from a CSV file with a header row.

    Expected columns: ``time``, ``open``, ``high``, ``low``, ``close`` and
    optionally ``volume`` and the auxiliary fields. Empty cells are missing
    values.

    :param params: Required parameters:
        - file_path: Path to the CSV file.
        Optional parameters:
        - time_col: Column name for the bar time (default: "time")
        - delimiter: CSV delimiter (default: ",")
    """

    def __init__(self, params: dict[str, Any] | None = None) -> None:
        self.params = params or {}
        self.file_path = _require_file(self.params, "CSVBarSource")
        self.time_col = self.params.get("time_col", "time")
        self.delimiter = self.params.get("delimiter", ",")

    def _row_to_bar(self, row: dict[str, str], line: int) -> Bar:
        time_text = row.get(self.time_col)
        if not time_text:
            raise DataSourceError(f"Row {line} has no '{self.time_col}' value")
        try:
            fields: dict[str, Any] = {
                "time": _parse_time(time_text),
                "open": float(row["open"]),
                "high": float(row["high"]),
                "low": float(row["low"]),
                "close": float(row["close"]),
            }
            for column in OPTIONAL_COLUMNS:
                cell = row.get(column)
                if cell not in (None, ""):
                    fields[column] = float(cell)
        except (KeyError, ValueError) as e:
            raise DataSourceError(f"Failed to parse row {line}: {e}") from e
        return Bar(**fields)

    def load_bars(self) -> list[Bar]:
        if not self.file_path.exists():
            raise DataSourceError(f"CSV file not found: {self.file_path}")

        try:
            with open(self.file_path, newline="", encoding="utf-8") as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)
                bars = [self._row_to_bar(row, line) for line, row in enumerate(reader, start=2)]
        except csv.Error as e:
            raise DataSourceError(f"CSV parsing error: {e}") from e
        except OSError as e:
            raise DataSourceError(f"Failed to read CSV file: {e}") from e

        return validate_bar_order(bars)


class SyntheticBarSource(BarSource):
    """Bar source backed by the random-walk generator.

    :param params: Optional parameters:
        - n: Number of bars (default: 200)
        - seed: Random seed (default: None)
        - start_value: Starting level (default: 1500)
        - with_auxiliary: Fill auxiliary fields (default: True)
    """

    def __init__(self, params: dict[str, Any] | None = None) -> None:
        self.params = params or {}
        self.n = self.params.get("n", 200)
        if not isinstance(self.n, int) or self.n < 0:
            raise DataSourceError("SyntheticBarSource 'n' must be a non-negative integer")
        self.seed = self.params.get("seed")
        self.start_value = float(self.params.get("start_value", 1500.0))
        self.with_auxiliary = bool(self.params.get("with_auxiliary", True))

    def load_bars(self) -> list[Bar]:
        return generate_sample_bars(
            self.n,
            seed=self.seed,
            start_value=self.start_value,
            with_auxiliary=self.with_auxiliary,
        )


def resolve_bar_source(source: str, params: dict[str, Any] | None = None) -> BarSource:
    """Construct a bar source from its type name.

    :param source: Source type ("json", "csv" or "synthetic").
    :param params: Source-specific parameters.
    :returns: BarSource instance for the specified type.
    :raises DataSourceError: If the source type is unrecognized.
    """
    source_type = source.lower()

    if source_type == "json":
        return JSONBarSource(params)
    elif source_type == "csv":
        return CSVBarSource(params)
    elif source_type == "synthetic":
        return SyntheticBarSource(params)
    else:
        raise DataSourceError(
            f"Unrecognized data source type: '{source}'. "
            f"Supported types: json, csv, synthetic"
        )


def load_bars_file(path: str | Path, dataset: str | None = None) -> list[Bar]:
    """Load bars from a JSON or CSV file, chosen by extension."""
    path = Path(path)
    params: dict[str, Any] = {"file_path": str(path)}
    if path.suffix.lower() == ".csv":
        return CSVBarSource(params).load_bars()
    if dataset is not None:
        params["dataset"] = dataset
    return JSONBarSource(params).load_bars()
