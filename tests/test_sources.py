"""Tests for bar sources and synthetic data."""

import json
from pathlib import Path

import pytest

from aadhaar_velocity.data import (
    BarSource,
    CSVBarSource,
    JSONBarSource,
    SyntheticBarSource,
    generate_sample_bars,
    load_bars_file,
    resolve_bar_source,
    validate_bar_order,
)
from aadhaar_velocity.exceptions import DataSourceError, DataValidationError
from aadhaar_velocity.types import Bar

BAR_RECORDS = [
    {"time": "2025-03-03", "open": 1.0, "high": 5.0, "low": -2.0, "close": 4.0, "volume": 120},
    {"time": "2025-03-10", "open": 4.0, "high": 9.0, "low": 3.0, "close": 8.0, "volume": 300},
]


@pytest.fixture
def list_json(tmp_path: Path) -> Path:
    """JSON file holding a plain list of bars."""
    path = tmp_path / "bars.json"
    path.write_text(json.dumps(BAR_RECORDS))
    return path


@pytest.fixture
def mapping_json(tmp_path: Path) -> Path:
    """JSON file holding several named datasets."""
    path = tmp_path / "velocity.json"
    path.write_text(json.dumps({"biometric": BAR_RECORDS, "enrolment": BAR_RECORDS[:1]}))
    return path


class TestBarSourceProtocol:
    """Tests for the BarSource abstract base class."""

    def test_bar_source_is_abstract(self) -> None:
        """BarSource cannot be instantiated directly."""
        with pytest.raises(TypeError, match="abstract"):
            BarSource()  # type: ignore[abstract]

    def test_subclass_must_implement_load_bars(self) -> None:
        """Subclasses must implement load_bars."""

        class IncompleteSource(BarSource):
            pass

        with pytest.raises(TypeError, match="abstract"):
            IncompleteSource()  # type: ignore[abstract]


class TestJSONBarSource:
    """Tests for JSONBarSource."""

    def test_requires_file_path(self) -> None:
        """file_path is mandatory."""
        with pytest.raises(DataSourceError, match="file_path"):
            JSONBarSource({})

    def test_list_file(self, list_json: Path) -> None:
        """A list of bar objects loads in order."""
        bars = JSONBarSource({"file_path": str(list_json)}).load_bars()

        assert len(bars) == 2
        assert bars[0].time == "2025-03-03"
        assert bars[1].close == 8.0
        assert bars[0].spread is None

    def test_mapping_with_dataset(self, mapping_json: Path) -> None:
        """The dataset parameter selects one series."""
        source = JSONBarSource({"file_path": str(mapping_json), "dataset": "enrolment"})

        assert len(source.load_bars()) == 1

    def test_mapping_requires_dataset(self, mapping_json: Path) -> None:
        """Several datasets without a choice is an error."""
        with pytest.raises(DataSourceError, match="biometric, enrolment"):
            JSONBarSource({"file_path": str(mapping_json)}).load_bars()

    def test_single_dataset_mapping(self, tmp_path: Path) -> None:
        """A mapping with one dataset needs no selection."""
        path = tmp_path / "one.json"
        path.write_text(json.dumps({"demographic": BAR_RECORDS}))

        assert len(JSONBarSource({"file_path": str(path)}).load_bars()) == 2

    def test_single_dataset_must_be_list(self, tmp_path: Path) -> None:
        """A lone dataset that is not a list is rejected by name."""
        path = tmp_path / "scalar.json"
        path.write_text(json.dumps({"a": 5}))

        with pytest.raises(DataSourceError, match="Dataset 'a' must be a list of bars"):
            JSONBarSource({"file_path": str(path)}).load_bars()

    def test_unknown_dataset(self, mapping_json: Path) -> None:
        """Selecting a missing dataset names the available ones."""
        source = JSONBarSource({"file_path": str(mapping_json), "dataset": "demographic"})

        with pytest.raises(DataSourceError, match="Available"):
            source.load_bars()

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing files raise DataSourceError."""
        with pytest.raises(DataSourceError, match="not found"):
            JSONBarSource({"file_path": str(tmp_path / "nope.json")}).load_bars()

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Malformed JSON raises DataSourceError."""
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        with pytest.raises(DataSourceError, match="Invalid JSON"):
            JSONBarSource({"file_path": str(path)}).load_bars()

    def test_invalid_bar(self, tmp_path: Path) -> None:
        """Records missing OHLC fields are rejected with their index."""
        path = tmp_path / "partial.json"
        path.write_text(json.dumps([{"time": 1, "open": 1.0}]))

        with pytest.raises(DataSourceError, match="index 0"):
            JSONBarSource({"file_path": str(path)}).load_bars()

    def test_out_of_order(self, tmp_path: Path) -> None:
        """Bars must be ordered by time."""
        path = tmp_path / "reversed.json"
        path.write_text(json.dumps(list(reversed(BAR_RECORDS))))

        with pytest.raises(DataValidationError, match="ordered by time"):
            JSONBarSource({"file_path": str(path)}).load_bars()


class TestCSVBarSource:
    """Tests for CSVBarSource."""

    def test_reads_rows(self, tmp_path: Path) -> None:
        """Rows become bars; empty optional cells are missing values."""
        path = tmp_path / "bars.csv"
        path.write_text(
            "time,open,high,low,close,volume,spread\n"
            "1700000000,1,2,0,1.5,100,0.25\n"
            "1700604800,1.5,3,1,2.5,,\n"
        )

        bars = CSVBarSource({"file_path": str(path)}).load_bars()

        assert [b.time for b in bars] == [1700000000, 1700604800]
        assert bars[0].spread == 0.25
        assert bars[1].volume is None
        assert bars[1].spread is None

    def test_custom_time_column_and_delimiter(self, tmp_path: Path) -> None:
        """Column name and delimiter are configurable; text times stay text."""
        path = tmp_path / "bars.csv"
        path.write_text("week;open;high;low;close\n2025-W10;1;2;0;1\n")

        bars = CSVBarSource(
            {"file_path": str(path), "time_col": "week", "delimiter": ";"}
        ).load_bars()

        assert bars[0].time == "2025-W10"

    def test_bad_number(self, tmp_path: Path) -> None:
        """Unparseable numbers report the row."""
        path = tmp_path / "bars.csv"
        path.write_text("time,open,high,low,close\n1,abc,2,0,1\n")

        with pytest.raises(DataSourceError, match="row 2"):
            CSVBarSource({"file_path": str(path)}).load_bars()

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing files raise DataSourceError."""
        with pytest.raises(DataSourceError, match="not found"):
            CSVBarSource({"file_path": str(tmp_path / "nope.csv")}).load_bars()


class TestValidateBarOrder:
    """Tests for the ordering check."""

    def test_equal_times_allowed(self) -> None:
        """Non-decreasing means ties are fine."""
        bars = [Bar(time=1, open=1, high=1, low=1, close=1)] * 3

        assert validate_bar_order(bars) == bars

    def test_mixed_time_types(self) -> None:
        """Times that cannot be compared are rejected."""
        bars = [
            Bar(time=1, open=1, high=1, low=1, close=1),
            Bar(time="2025-03-01", open=1, high=1, low=1, close=1),
        ]

        with pytest.raises(DataValidationError, match="type"):
            validate_bar_order(bars)


class TestSyntheticData:
    """Tests for the random-walk generator."""

    def test_seeded_reproducible(self) -> None:
        """The same seed yields the same bars."""
        assert generate_sample_bars(50, seed=1) == generate_sample_bars(50, seed=1)
        assert generate_sample_bars(50, seed=1) != generate_sample_bars(50, seed=2)

    def test_ohlc_consistency(self) -> None:
        """High and low bracket the body; opens follow the previous close."""
        bars = generate_sample_bars(200, seed=9, start_value=1500.0)

        assert abs(bars[0].open - 1500.0) <= 5
        for previous, bar in zip(bars, bars[1:]):
            assert abs(bar.open - previous.close) <= 5
        for bar in bars:
            assert bar.high >= max(bar.open, bar.close)
            assert bar.low <= min(bar.open, bar.close)
            assert abs(bar.close - bar.open) <= 10

    def test_weekly_times(self) -> None:
        """Bars are one week apart."""
        bars = generate_sample_bars(3, seed=0)

        assert bars[1].time - bars[0].time == 7 * 24 * 60 * 60
        assert validate_bar_order(bars) == bars

    def test_auxiliary_fields(self) -> None:
        """Auxiliary fields are filled unless disabled."""
        with_aux = generate_sample_bars(5, seed=0)
        without_aux = generate_sample_bars(5, seed=0, with_auxiliary=False)

        assert all(b.spread is not None and b.raw_bio is not None for b in with_aux)
        assert all(b.volume == b.raw_bio + b.raw_enrol for b in with_aux)
        assert all(b.spread is None and b.volume is None for b in without_aux)

    def test_negative_count(self) -> None:
        """n must be non-negative."""
        with pytest.raises(ValueError):
            generate_sample_bars(-1)


class TestResolveBarSource:
    """Tests for source construction."""

    def test_json(self, list_json: Path) -> None:
        assert isinstance(resolve_bar_source("json", {"file_path": str(list_json)}), JSONBarSource)

    def test_csv_case_insensitive(self, tmp_path: Path) -> None:
        source = resolve_bar_source("CSV", {"file_path": str(tmp_path / "x.csv")})

        assert isinstance(source, CSVBarSource)

    def test_synthetic(self) -> None:
        """Synthetic source honours n and seed."""
        source = resolve_bar_source("synthetic", {"n": 12, "seed": 4})

        assert isinstance(source, SyntheticBarSource)
        assert source.load_bars() == generate_sample_bars(12, seed=4)

    def test_synthetic_bad_count(self) -> None:
        with pytest.raises(DataSourceError, match="non-negative"):
            SyntheticBarSource({"n": "many"})

    def test_unknown_type(self) -> None:
        """Unknown source types are rejected."""
        with pytest.raises(DataSourceError, match="Unrecognized data source type"):
            resolve_bar_source("parquet", {})


class TestLoadBarsFile:
    """Tests for extension-based loading."""

    def test_json_by_extension(self, mapping_json: Path) -> None:
        assert len(load_bars_file(mapping_json, dataset="biometric")) == 2

    def test_csv_by_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "bars.CSV"
        path.write_text("time,open,high,low,close\n1,1,1,1,1\n")

        assert len(load_bars_file(path)) == 1
