"""Percentile-based badge threshold calibration over a content bundle.

Every scenario in a bundle is walked depth-first from its entry scene. Each
distinct route to an ending yields one sample of the cumulative compass score
per axis, and the requested percentiles of those samples become candidate
``required_score`` values for badge tiers.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Sequence

from .errors import ResourceNotFoundError
from .scene_graph import Scenario

if TYPE_CHECKING:  # pragma: no cover - imported only for type checking
    from .repositories import ContentBundleLookup, ScenarioLookup

logger = logging.getLogger(__name__)

DEFAULT_MAX_TRAVERSAL_DEPTH = 256
"""Longest path, in scenes, followed before a route is truncated and sampled."""


@dataclass(frozen=True)
class ContentBundle:
    """A named group of scenarios calibrated together."""

    id: str
    title: str = ""
    scenario_ids: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "scenario_ids", tuple(self.scenario_ids))


@dataclass(frozen=True)
class CompassAxisScoreResult:
    """Percentile scores computed for a single compass axis."""

    axis_name: str
    percentile_scores: Mapping[float, float]
    sample_count: int

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "percentile_scores", MappingProxyType(dict(self.percentile_scores))
        )


def _validate_percentiles(percentiles: Iterable[float] | None) -> tuple[float, ...]:
    if percentiles is None:
        raise ValueError("Percentiles cannot be null or empty")
    values = tuple(float(value) for value in percentiles)
    if not values:
        raise ValueError("Percentiles cannot be null or empty")
    if any(math.isnan(value) or value < 0 or value > 100 for value in values):
        raise ValueError("Percentiles must be between 0 and 100")
    return values


def calculate_percentile(sorted_scores: Sequence[float], percentile: float) -> float:
    """Return the ``percentile`` of ascending ``sorted_scores``.

    Uses linear interpolation between the two nearest ranks, with
    ``rank = percentile / 100 * (n - 1)``. An empty sequence yields ``0.0``.
    """

    if not sorted_scores:
        return 0.0
    if len(sorted_scores) == 1:
        return float(sorted_scores[0])

    position = (percentile / 100.0) * (len(sorted_scores) - 1)
    lower_index = math.floor(position)
    upper_index = math.ceil(position)

    if lower_index < 0:
        return float(sorted_scores[0])
    if upper_index >= len(sorted_scores):
        return float(sorted_scores[-1])
    if lower_index == upper_index:
        return float(sorted_scores[lower_index])

    lower_value = sorted_scores[lower_index]
    upper_value = sorted_scores[upper_index]
    fraction = position - lower_index
    return float(lower_value + (upper_value - lower_value) * fraction)


def calculate_percentiles(
    scores: Iterable[float], percentiles: Iterable[float]
) -> Dict[float, float]:
    """Return a mapping of each requested percentile to its interpolated score."""

    ordered = sorted(float(score) for score in scores)
    if not ordered:
        return {}
    return {
        float(percentile): calculate_percentile(ordered, float(percentile))
        for percentile in percentiles
    }


def traverse_scenario_paths(
    scenario: Scenario,
    *,
    max_depth: int = DEFAULT_MAX_TRAVERSAL_DEPTH,
    axis_names: Dict[str, str] | None = None,
) -> List[Dict[str, float]]:
    """Return the cumulative axis scores of every route through ``scenario``.

    A scene with branches fans out into one route per branch; a scene without
    branches follows its ``next_scene_id``. A route ends at an ending marker,
    a missing target, a terminal scene, a scene already visited on the same
    route, or after ``max_depth`` scenes. Routes that never touched an axis
    produce no sample.

    Args:
        scenario: The scenario to walk.
        max_depth: Maximum number of scenes expanded along one route.
        axis_names: Optional mapping of case-folded axis name to the spelling
            first seen; shared across scenarios so axis names group
            case-insensitively.
    """

    if max_depth < 1:
        raise ValueError("max_depth must be a positive integer")

    paths: List[Dict[str, float]] = []
    entry = scenario.entry_scene_id
    if entry is None:
        return paths

    names = axis_names if axis_names is not None else {}

    def _record(scores: Dict[str, float]) -> None:
        if scores:
            paths.append(dict(scores))

    frontier: list[tuple[str, Dict[str, float], frozenset[str], int]] = [
        (entry, {}, frozenset(), 0)
    ]
    while frontier:
        scene_id, scores, visited, depth = frontier.pop()
        if scene_id in visited or depth >= max_depth:
            _record(scores)
            continue

        scene = scenario.get_scene(scene_id)
        route_visited = visited | {scene_id}

        if scene.branches:
            for branch in reversed(scene.branches):
                branch_scores = dict(scores)
                change = branch.compass_change
                if change is not None:
                    axis = names.setdefault(change.axis.casefold(), change.axis)
                    branch_scores[axis] = branch_scores.get(axis, 0.0) + change.signed_delta

                target = branch.next_scene_id
                if target and scenario.has_scene(target):
                    frontier.append((target, branch_scores, route_visited, depth + 1))
                else:
                    _record(branch_scores)
        elif scene.next_scene_id and scenario.has_scene(scene.next_scene_id):
            frontier.append((scene.next_scene_id, scores, route_visited, depth + 1))
        else:
            _record(scores)

    return paths


class BadgeThresholdCalibrator:
    """Compute per-axis percentile thresholds for every scenario in a bundle."""

    def __init__(
        self,
        bundles: ContentBundleLookup,
        scenarios: ScenarioLookup,
        *,
        max_depth: int = DEFAULT_MAX_TRAVERSAL_DEPTH,
    ) -> None:
        if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 1:
            raise ValueError("max_depth must be a positive integer")
        self._bundles = bundles
        self._scenarios = scenarios
        self._max_depth = max_depth

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def calculate_badge_scores(
        self, bundle_id: str, percentiles: Sequence[float]
    ) -> list[CompassAxisScoreResult]:
        """Return percentile scores per axis for the scenarios in ``bundle_id``.

        Raises:
            ValueError: If ``bundle_id`` is blank or ``percentiles`` is empty
                or contains values outside 0..100.
            ResourceNotFoundError: If the bundle does not exist.
        """

        if not isinstance(bundle_id, str) or not bundle_id.strip():
            raise ValueError("Content bundle ID cannot be null or empty")
        requested = _validate_percentiles(percentiles)

        bundle = self._bundles.get_by_id(bundle_id)
        if bundle is None:
            raise ResourceNotFoundError("Content bundle", bundle_id)

        logger.info(
            "Calculating badge scores for bundle %s with %d scenarios",
            bundle_id,
            len(bundle.scenario_ids),
        )

        scenarios: list[Scenario] = []
        for scenario_id in bundle.scenario_ids:
            scenario = self._scenarios.get_by_id(scenario_id)
            if scenario is None:
                logger.warning(
                    "Scenario %s not found in bundle %s", scenario_id, bundle_id
                )
                continue
            scenarios.append(scenario)

        if not scenarios:
            logger.warning("No scenarios found for bundle %s", bundle_id)
            return []

        results = self.calculate_for_scenarios(scenarios, requested)
        logger.info(
            "Badge score calculation complete for bundle %s: %d axes processed",
            bundle_id,
            len(results),
        )
        return results

    def calculate_for_scenarios(
        self, scenarios: Iterable[Scenario], percentiles: Sequence[float]
    ) -> list[CompassAxisScoreResult]:
        """Return percentile scores per axis across ``scenarios``.

        Axes are reported in the order they were first encountered.
        """

        requested = _validate_percentiles(percentiles)
        axis_names: Dict[str, str] = {}
        samples: Dict[str, List[float]] = {}

        for scenario in scenarios:
            paths = traverse_scenario_paths(
                scenario, max_depth=self._max_depth, axis_names=axis_names
            )
            logger.debug("Found %d paths in scenario %s", len(paths), scenario.id)
            for path in paths:
                for axis, score in path.items():
                    samples.setdefault(axis, []).append(score)

        results: list[CompassAxisScoreResult] = []
        for axis, scores in samples.items():
            if not scores:
                continue
            results.append(
                CompassAxisScoreResult(
                    axis_name=axis,
                    percentile_scores=calculate_percentiles(scores, requested),
                    sample_count=len(scores),
                )
            )
            logger.info(
                "Calculated percentiles for axis %s: %d paths analysed",
                axis,
                len(scores),
            )
        return results


__all__ = [
    "DEFAULT_MAX_TRAVERSAL_DEPTH",
    "ContentBundle",
    "CompassAxisScoreResult",
    "calculate_percentile",
    "calculate_percentiles",
    "traverse_scenario_paths",
    "BadgeThresholdCalibrator",
]
