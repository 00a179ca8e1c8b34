#!/usr/bin/env python3
"""Command-line interface for the velocity indicator engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any


def configure_logging(level: str) -> None:
    """Configure the root logger for CLI runs."""
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def _print_points(points: list[Any], output_format: str) -> None:
    if output_format == "json":
        print(json.dumps([p.model_dump(mode="json") for p in points], indent=2))
        return
    print(f"{'Time':<28} {'Value':>16}")
    print("-" * 45)
    for point in points:
        print(f"{str(point.time):<28} {point.value:>16.6f}")


def cmd_presets(args: argparse.Namespace) -> int:
    """List the built-in indicator presets."""
    from aadhaar_velocity.indicators import Preset, preset_definition

    print("=" * 60)
    print("PRESETS")
    print("=" * 60)
    print(f"{'Name':<32} {'Key':<24} {'Kind':<8}")
    print("-" * 60)
    for preset in Preset:
        definition = preset_definition(preset)
        print(f"{preset.value:<32} {preset.name.lower():<24} {definition.kind.value:<8}")

    if args.show_scripts:
        from aadhaar_velocity.indicators import preset_catalog

        for name, script in preset_catalog().items():
            print(f"\n--- {name} ---")
            print(script.rstrip())

    return 0


def cmd_compute(args: argparse.Namespace) -> int:
    """Compute one indicator over a bar file."""
    from aadhaar_velocity.data import load_bars_file
    from aadhaar_velocity.exceptions import (
        DataSourceError,
        DataValidationError,
        InsufficientDataError,
        UnknownPresetError,
    )
    from aadhaar_velocity.indicators import compute_preset
    from aadhaar_velocity.scripting import ScriptExecutor
    from aadhaar_velocity.types import ScriptLanguage

    try:
        bars = load_bars_file(args.bars, dataset=args.dataset)
    except (DataSourceError, DataValidationError) as e:
        print(f"Data error: {e}")
        return 1

    if args.preset:
        try:
            points = compute_preset(args.preset, bars, strict=args.strict)
        except UnknownPresetError as e:
            print(f"Error: {e}")
            return 1
        except InsufficientDataError as e:
            print(f"Insufficient data: {e}")
            return 1
        _print_points(points, args.format)
        return 0

    if args.script_file:
        try:
            source = Path(args.script_file).read_text(encoding="utf-8")
        except OSError as e:
            print(f"Error: cannot read script file: {e}")
            return 1
        language = ScriptLanguage.PYTHON
    else:
        source = args.expression
        language = ScriptLanguage.EXPRESSION

    result = ScriptExecutor().execute(source, bars, language=language, name="cli")
    if not result.ok:
        print(f"Indicator failed ({result.error_kind}): {result.message}")
        return 1
    if args.strict and not result.points:
        print("Insufficient data: indicator produced no points")
        return 1
    _print_points(result.points, args.format)
    return 0


def cmd_classify(args: argparse.Namespace) -> int:
    """Run the Lorentzian k-NN classifier over a bar file."""
    from pydantic import ValidationError

    from aadhaar_velocity.data import load_bars_file
    from aadhaar_velocity.exceptions import DataSourceError, DataValidationError
    from aadhaar_velocity.indicators import lorentzian_classify
    from aadhaar_velocity.types import LorentzianSettings

    try:
        bars = load_bars_file(args.bars, dataset=args.dataset)
    except (DataSourceError, DataValidationError) as e:
        print(f"Data error: {e}")
        return 1

    try:
        settings = LorentzianSettings(
            neighbors_count=args.neighbors,
            max_bars_back=args.max_bars_back,
            feature_count=args.feature_count,
        )
    except ValidationError as e:
        print(f"Error: invalid classifier settings: {e.errors()[0]['msg']}")
        return 1
    points = lorentzian_classify(bars, settings)

    if args.format == "json":
        print(json.dumps([p.model_dump(mode="json") for p in points], indent=2))
        return 0

    print("=" * 60)
    print("LORENTZIAN CLASSIFICATION")
    print("=" * 60)
    print(f"Bars:        {len(bars)}")
    print(f"Neighbors:   {settings.neighbors_count}")
    print(f"Lookback:    {settings.max_bars_back}")
    print(f"Features:    {settings.feature_count}")
    if not points:
        print("\nNot enough bars to classify.")
        return 0
    print()
    print(f"{'Time':<28} {'Score':>8} {'Signal':<12}")
    print("-" * 50)
    for point in points:
        print(f"{str(point.time):<28} {point.value:>8.0f} {point.signal.value:<12}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Compute every indicator in a run configuration."""
    from aadhaar_velocity.commands import load_run_config
    from aadhaar_velocity.data import resolve_bar_source
    from aadhaar_velocity.exceptions import ConfigError, DataSourceError, DataValidationError
    from aadhaar_velocity.scripting import ScriptExecutor, compute_indicators

    try:
        config = load_run_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    if args.log_level is None:
        configure_logging(config.log_level)

    print("=" * 60)
    print("INDICATOR RUN")
    print("=" * 60)
    print(f"Source:      {config.data.source}")
    print(f"Indicators:  {len(config.indicators)}")
    print(f"Workers:     {config.engine.max_workers}")

    try:
        bars = resolve_bar_source(config.data.source, config.data.params).load_bars()
    except (DataSourceError, DataValidationError) as e:
        print(f"Data error: {e}")
        return 1
    print(f"Bars:        {len(bars)}")

    executor = ScriptExecutor(config.engine)
    results = compute_indicators(config.indicators, bars, executor=executor)

    print()
    print(f"{'Indicator':<32} {'Kind':<8} {'Status':<7} {'Points':>7} {'Last':>14}")
    print("-" * 72)
    failures = 0
    for definition in config.indicators:
        result = results[definition.name]
        last = f"{result.points[-1].value:.4f}" if result.points else "-"
        print(
            f"{definition.name:<32} {definition.kind.value:<8} "
            f"{result.status.value:<7} {len(result.points):>7} {last:>14}"
        )
        if not result.ok:
            failures += 1
            print(f"   {result.error_kind}: {result.message}")

    if args.output:
        payload = {name: result.model_dump(mode="json") for name, result in results.items()}
        Path(args.output).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"\nResults written to {args.output}")

    return 1 if failures and args.fail_on_error else 0


def cmd_gen_synth(args: argparse.Namespace) -> int:
    """Write a synthetic bar series to a JSON file."""
    from aadhaar_velocity.data import generate_sample_bars

    bars = generate_sample_bars(
        args.count,
        seed=args.seed,
        start_value=args.start_value,
        with_auxiliary=not args.no_auxiliary,
    )
    records = [bar.model_dump(mode="json", exclude_none=True) for bar in bars]
    Path(args.output).write_text(json.dumps(records, indent=2), encoding="utf-8")

    print(f"Wrote {len(bars)} bars to {args.output}")
    return 0


def cmd_velocity(args: argparse.Namespace) -> int:
    """Compute daily velocities and rule flags from a JSON file."""
    from pydantic import ValidationError

    from aadhaar_velocity.indicators import calculate_velocity
    from aadhaar_velocity.types import VelocityPoint

    try:
        with open(args.file, encoding="utf-8") as f:
            raw = json.load(f)
        points = [VelocityPoint.model_validate(item) for item in raw]
    except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
        print(f"Data error: {e}")
        return 1

    results = calculate_velocity(
        points,
        spike_threshold=args.spike_threshold,
        exclusion_threshold=args.exclusion_threshold,
    )

    if args.format == "json":
        print(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
        return 0

    print(f"{'Date':<12} {'V(enrol)':>10} {'V(bio)':>10}  Flags")
    print("-" * 50)
    for r in results:
        flags = []
        if r.is_school_admission_spike:
            flags.append("school-admission-spike")
        if r.is_exclusion_zone:
            flags.append("exclusion-zone")
        print(
            f"{r.date:<12} {r.velocity_enrolment:>10.1f} {r.velocity_biometric:>10.1f}  "
            f"{', '.join(flags)}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aadhaar-velocity",
        description="Indicator engine for identity-update velocity series",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: from config, else WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Presets command
    presets_parser = subparsers.add_parser("presets", help="List built-in presets")
    presets_parser.add_argument(
        "--show-scripts", action="store_true", help="Print each preset's script"
    )

    # Compute command
    compute_parser = subparsers.add_parser("compute", help="Compute one indicator")
    compute_parser.add_argument("bars", help="Path to a JSON or CSV bar file")
    compute_parser.add_argument("--dataset", help="Dataset key for mapping-shaped JSON")
    source_group = compute_parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument("-p", "--preset", help="Preset name")
    source_group.add_argument("--script-file", help="Path to an indicator script")
    source_group.add_argument("-e", "--expression", help="Indicator expression")
    compute_parser.add_argument(
        "--format", choices=["table", "json"], default="table", help="Output format"
    )
    compute_parser.add_argument(
        "--strict", action="store_true", help="Fail when no points are produced"
    )

    # Classify command
    classify_parser = subparsers.add_parser("classify", help="Lorentzian k-NN signal")
    classify_parser.add_argument("bars", help="Path to a JSON or CSV bar file")
    classify_parser.add_argument("--dataset", help="Dataset key for mapping-shaped JSON")
    classify_parser.add_argument("-k", "--neighbors", type=int, default=8, help="Neighbors count")
    classify_parser.add_argument(
        "--max-bars-back", type=int, default=50, help="Bars scanned behind each target"
    )
    classify_parser.add_argument(
        "--feature-count", type=int, default=4, choices=[2, 3, 4], help="Features used"
    )
    classify_parser.add_argument(
        "--format", choices=["table", "json"], default="table", help="Output format"
    )

    # Run command
    run_parser = subparsers.add_parser("run", help="Compute indicators from configuration")
    run_parser.add_argument("config", help="Path to YAML configuration file")
    run_parser.add_argument("-o", "--output", help="Write results to a JSON file")
    run_parser.add_argument(
        "--fail-on-error", action="store_true", help="Exit 1 if any indicator fails"
    )

    # Gen synth command
    synth_parser = subparsers.add_parser("gen-synth", help="Generate synthetic bars")
    synth_parser.add_argument("output", help="Path of the JSON file to write")
    synth_parser.add_argument("-n", "--count", type=int, default=200, help="Number of bars")
    synth_parser.add_argument("--seed", type=int, help="Random seed")
    synth_parser.add_argument(
        "--start-value", type=float, default=1500.0, help="Starting level"
    )
    synth_parser.add_argument(
        "--no-auxiliary", action="store_true", help="Only write OHLC fields"
    )

    # Velocity command
    velocity_parser = subparsers.add_parser("velocity", help="Daily velocity flags")
    velocity_parser.add_argument(
        "file", help="JSON list of {date, enrolment_0_5, biometric_5_17}"
    )
    velocity_parser.add_argument(
        "--spike-threshold", type=float, default=20.0, help="Biometric spike threshold"
    )
    velocity_parser.add_argument(
        "--exclusion-threshold", type=float, default=2.0, help="Enrolment exclusion threshold"
    )
    velocity_parser.add_argument(
        "--format", choices=["table", "json"], default="table", help="Output format"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level or "WARNING")

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "presets":
        return cmd_presets(args)
    elif args.command == "compute":
        return cmd_compute(args)
    elif args.command == "classify":
        return cmd_classify(args)
    elif args.command == "run":
        return cmd_run(args)
    elif args.command == "gen-synth":
        return cmd_gen_synth(args)
    elif args.command == "velocity":
        return cmd_velocity(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
