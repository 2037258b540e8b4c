"""Referential integrity and reachability checks for scenario graphs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from .errors import ScenarioValidationError
from .scene_graph import Scenario

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScenarioValidationResult:
    """Outcome of :func:`validate_scenario`.

    Unpacks as ``(is_valid, errors)``. Warnings never affect ``is_valid``.
    """

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    unreachable_scenes: tuple[str, ...] = ()

    def __iter__(self) -> Iterator[object]:
        yield self.is_valid
        yield self.errors


@dataclass(frozen=True)
class ScenarioReachabilityReport:
    """Summary of which scenes a walk from the entry scene can reach."""

    entry_scene: str | None
    reachable_scenes: tuple[str, ...]
    unreachable_scenes: tuple[str, ...]

    @property
    def fully_reachable(self) -> bool:
        return not self.unreachable_scenes


def _missing_reference(scene_id: str, target: str) -> str:
    return f"Scene '{scene_id}' references non-existent scene '{target}'"


def validate_scenario(scenario: Scenario) -> ScenarioValidationResult:
    """Check that every scene reference in ``scenario`` resolves.

    A scenario is invalid when it has no scenes or when a next-scene, branch or
    echo-reveal trigger names a scene the scenario does not contain. The empty
    ending marker is never a dangling reference.

    Scenes that no other scene points at (other than the entry scene) are
    reported as warnings and in ``unreachable_scenes`` but do not make the
    scenario invalid.
    """

    if not scenario.scenes:
        return ScenarioValidationResult(
            is_valid=False, errors=("Scenario must have at least one scene",)
        )

    scene_ids = set(scenario.scene_ids)
    errors: list[str] = []
    referenced: set[str] = set()

    for scene in scenario.scenes:
        if scene.next_scene_id:
            referenced.add(scene.next_scene_id)
            if scene.next_scene_id not in scene_ids:
                errors.append(_missing_reference(scene.id, scene.next_scene_id))

        for branch in scene.branches:
            if branch.is_ending:
                continue
            referenced.add(branch.next_scene_id)
            if branch.next_scene_id not in scene_ids:
                errors.append(_missing_reference(scene.id, branch.next_scene_id))

        for reveal in scene.echo_reveals:
            trigger = reveal.trigger_scene_id
            if trigger not in scene_ids:
                errors.append(_missing_reference(scene.id, trigger))

    entry = scenario.entry_scene_id
    unreachable = tuple(
        scene_id
        for scene_id in scenario.scene_ids
        if scene_id != entry and scene_id not in referenced
    )
    warnings = tuple(
        f"Scene '{scene_id}' is not referenced by any other scene"
        for scene_id in unreachable
    )
    if unreachable:
        logger.warning(
            "Scenario %s has unreachable scenes: %s",
            scenario.id,
            ", ".join(unreachable),
        )

    return ScenarioValidationResult(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=warnings,
        unreachable_scenes=unreachable,
    )


def require_valid_scenario(scenario: Scenario) -> ScenarioValidationResult:
    """Return the validation result, raising when ``scenario`` is invalid.

    Raises:
        ScenarioValidationError: If validation reported any error.
    """

    result = validate_scenario(scenario)
    if not result.is_valid:
        raise ScenarioValidationError(scenario.id, result.errors)
    return result


def compute_scene_reachability(scenario: Scenario) -> ScenarioReachabilityReport:
    """Determine which scenes are reachable from the entry scene.

    Unlike :func:`validate_scenario`, which only asks whether a scene is
    referenced at all, this walks the directed graph so islands of scenes that
    only point at each other are reported too. The result is advisory.
    """

    entry = scenario.entry_scene_id
    if entry is None:
        return ScenarioReachabilityReport(
            entry_scene=None, reachable_scenes=(), unreachable_scenes=()
        )

    visited: set[str] = set()
    frontier = [entry]

    while frontier:
        current = frontier.pop()
        if current in visited:
            continue

        visited.add(current)
        for target in scenario.get_scene(current).iter_targets():
            if target in visited:
                continue
            if scenario.has_scene(target):
                frontier.append(target)

    reachable = tuple(sorted(visited))
    unreachable = tuple(
        sorted(scene_id for scene_id in scenario.scene_ids if scene_id not in visited)
    )

    return ScenarioReachabilityReport(
        entry_scene=entry,
        reachable_scenes=reachable,
        unreachable_scenes=unreachable,
    )


def format_validation_report(
    scenario: Scenario,
    result: ScenarioValidationResult,
    reachability: ScenarioReachabilityReport | None = None,
) -> str:
    """Return a human-friendly report describing a validation run."""

    title = f"Scenario '{scenario.id}': {scenario.title}"
    lines = [
        title,
        "=" * len(title),
        f"Scenes: {len(scenario.scenes)}",
        f"Entry scene: {scenario.entry_scene_id or '-'}",
        f"Status: {'valid' if result.is_valid else 'INVALID'}",
    ]

    if result.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"- {error}" for error in result.errors)

    if result.warnings:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in result.warnings)

    if reachability is not None and reachability.unreachable_scenes:
        lines.append("")
        lines.append("Not reachable from the entry scene:")
        lines.extend(f"- {scene_id}" for scene_id in reachability.unreachable_scenes)

    return "\n".join(lines)


__all__ = [
    "ScenarioValidationResult",
    "ScenarioReachabilityReport",
    "validate_scenario",
    "require_valid_scenario",
    "compute_scene_reachability",
    "format_validation_report",
]
