"""Command line tools for content designers."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .calibration import BadgeThresholdCalibrator, ContentBundle
from .repositories import (
    FileScenarioLookup,
    InMemoryContentBundleLookup,
    InMemoryScenarioLookup,
)
from .scenario_loader import load_scenario_from_file
from .scene_graph import Scenario
from .settings import StoryCompassSettings
from .validator import (
    compute_scene_reachability,
    format_validation_report,
    validate_scenario,
)

logger = logging.getLogger(__name__)

_CLI_BUNDLE_ID = "command-line"


def _parse_args(
    argv: Sequence[str] | None, settings: StoryCompassSettings
) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="storycompass",
        description="Validate scenarios and calibrate compass badge thresholds.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity for diagnostic output.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser(
        "validate", help="Check scene references and reachability."
    )
    validate.add_argument(
        "scenario_files",
        nargs="*",
        type=Path,
        help=(
            "Scenario JSON documents. Defaults to every document in the "
            "scenario root."
        ),
    )

    calibrate = subparsers.add_parser(
        "calibrate",
        help="Compute per-axis percentile thresholds across the given scenarios.",
    )
    calibrate.add_argument(
        "scenario_files",
        nargs="*",
        type=Path,
        help=(
            "Scenario JSON documents treated as one content bundle. Defaults to "
            "every document in the scenario root."
        ),
    )
    calibrate.add_argument(
        "--percentile",
        dest="percentiles",
        action="append",
        type=float,
        help=(
            "Percentile to compute (0-100). May be repeated. Defaults to "
            + ", ".join(f"{value:g}" for value in settings.default_percentiles)
            + "."
        ),
    )
    calibrate.add_argument(
        "--max-depth",
        type=int,
        default=settings.calibration_max_depth,
        help="Maximum number of scenes followed along one path.",
    )
    return parser.parse_args(argv)


def _resolve_scenario_files(
    paths: Sequence[Path], settings: StoryCompassSettings
) -> list[Path] | None:
    if paths:
        return list(paths)
    if settings.scenario_root is None:
        print("No scenario files given and STORYCOMPASS_SCENARIO_ROOT is not set.")
        return None
    scenario_ids = FileScenarioLookup(settings.scenario_root).list_scenarios()
    if not scenario_ids:
        print(f"No scenario documents found in '{settings.scenario_root}'.")
        return None
    return [
        settings.scenario_root / f"{scenario_id}.json" for scenario_id in scenario_ids
    ]


def _load_scenarios(
    paths: Sequence[Path], settings: StoryCompassSettings
) -> list[Scenario] | None:
    resolved = _resolve_scenario_files(paths, settings)
    if resolved is None:
        return None
    logger.debug("Loading %d scenario documents", len(resolved))

    scenarios: list[Scenario] = []
    for path in resolved:
        try:
            scenarios.append(load_scenario_from_file(path))
        except (OSError, ValueError) as exc:
            print(f"Failed to load scenario from '{path}': {exc}")
            return None
    return scenarios


def _run_validate(args: argparse.Namespace, settings: StoryCompassSettings) -> int:
    scenarios = _load_scenarios(args.scenario_files, settings)
    if scenarios is None:
        return 2

    exit_code = 0
    for index, scenario in enumerate(scenarios):
        result = validate_scenario(scenario)
        reachability = compute_scene_reachability(scenario)
        if index:
            print()
        print(format_validation_report(scenario, result, reachability))
        if not result.is_valid:
            exit_code = 1
    return exit_code


def _run_calibrate(args: argparse.Namespace, settings: StoryCompassSettings) -> int:
    scenarios = _load_scenarios(args.scenario_files, settings)
    if scenarios is None:
        return 2

    percentiles = args.percentiles or list(settings.default_percentiles)
    bundle = ContentBundle(
        id=_CLI_BUNDLE_ID,
        title="Command line bundle",
        scenario_ids=[scenario.id for scenario in scenarios],
    )

    try:
        calibrator = BadgeThresholdCalibrator(
            InMemoryContentBundleLookup([bundle]),
            InMemoryScenarioLookup(scenarios),
            max_depth=args.max_depth,
        )
        results = calibrator.calculate_badge_scores(bundle.id, percentiles)
    except ValueError as exc:
        print(f"Calibration failed: {exc}")
        return 2

    print("Badge threshold calibration")
    print("===========================")
    print(f"Scenarios: {len(scenarios)}")
    if not results:
        print("No compass axis scores found.")
        return 0

    for result in results:
        print()
        print(f"{result.axis_name} ({result.sample_count} paths)")
        for percentile, score in result.percentile_scores.items():
            print(f"- p{percentile:g}: {score:g}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by the ``storycompass`` console script."""

    settings = StoryCompassSettings.from_env()
    args = _parse_args(argv, settings)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Running %s command", args.command)

    if args.command == "validate":
        return _run_validate(args, settings)
    return _run_calibrate(args, settings)


if __name__ == "__main__":  # pragma: no cover - convenience CLI
    raise SystemExit(main())
