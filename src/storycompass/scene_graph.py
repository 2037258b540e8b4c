"""In-memory model of a scenario's scenes, branches and echo reveals."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Sequence

ENDING_MARKER = ""
"""Branch/next-scene target that marks the end of the story."""

_POSITIVE_DIRECTIONS = frozenset({"positive", "pos", "+", "up"})
_NEGATIVE_DIRECTIONS = frozenset({"negative", "neg", "-", "down"})


def _validate_text(value: str, *, field_name: str) -> str:
    """Validate and normalise identifiers and labels used by the graph."""

    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")

    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must be a non-empty string")

    return stripped


def _normalise_target(value: str | None, *, field_name: str) -> str:
    if value is None:
        return ENDING_MARKER
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")
    return value.strip()


class SceneType(str, Enum):
    """Closed set of scene variants understood by the engine."""

    NARRATIVE = "narrative"
    CHOICE = "choice"
    ROLL = "roll"
    SPECIAL = "special"

    @classmethod
    def parse(cls, value: "str | SceneType") -> "SceneType":
        """Return the member matching ``value`` case-insensitively."""

        if isinstance(value, SceneType):
            return value
        if not isinstance(value, str):
            raise TypeError(f"scene type must be a string, got {type(value)!r}")
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid scene type: '{value}'") from exc

    @property
    def is_ending_type(self) -> bool:
        """Return ``True`` for variants that may close a story on their own."""

        return self is SceneType.SPECIAL


@dataclass(frozen=True)
class CompassChange:
    """Shift applied to a compass axis when a branch is chosen."""

    axis: str
    delta: float
    direction: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "axis", _validate_text(self.axis, field_name="axis"))
        if isinstance(self.delta, bool) or not isinstance(self.delta, (int, float)):
            raise TypeError(f"delta must be a number, got {type(self.delta)!r}")
        if not math.isfinite(self.delta):
            raise ValueError("delta must be a finite number")
        object.__setattr__(self, "delta", float(self.delta))

    @property
    def signed_delta(self) -> float:
        """Return the delta with ``direction`` applied to its sign."""

        if not self.direction:
            return self.delta

        normalised = self.direction.strip().lower()
        if normalised in _NEGATIVE_DIRECTIONS:
            return -abs(self.delta)
        if normalised in _POSITIVE_DIRECTIONS:
            return abs(self.delta)
        return self.delta


@dataclass(frozen=True)
class EchoLog:
    """Narrative echo recorded when a branch is chosen."""

    echo_type: str
    description: str = ""
    strength: float = 0.5

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "echo_type", _validate_text(self.echo_type, field_name="echo type")
        )


@dataclass(frozen=True)
class EchoReveal:
    """Callback surfaced when the session reaches ``trigger_scene_id``."""

    echo_type: str
    trigger_scene_id: str
    content: str = ""
    min_strength: float = 0.5
    reveal_mechanic: str = "none"
    required: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "echo_type", _validate_text(self.echo_type, field_name="echo type")
        )
        object.__setattr__(
            self,
            "trigger_scene_id",
            _normalise_target(self.trigger_scene_id, field_name="trigger scene id"),
        )


@dataclass(frozen=True)
class Branch:
    """A player-facing choice leading to another scene."""

    choice: str
    next_scene_id: str = ENDING_MARKER
    compass_change: CompassChange | None = None
    echo_log: EchoLog | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "choice", _validate_text(self.choice, field_name="choice label")
        )
        object.__setattr__(
            self,
            "next_scene_id",
            _normalise_target(self.next_scene_id, field_name="branch next scene id"),
        )

    @property
    def is_ending(self) -> bool:
        """Return ``True`` when choosing the branch ends the story."""

        return self.next_scene_id == ENDING_MARKER


@dataclass(frozen=True)
class Scene:
    """A single narrative beat in a scenario."""

    id: str
    title: str = ""
    description: str = ""
    type: SceneType = SceneType.NARRATIVE
    next_scene_id: str | None = None
    branches: Sequence[Branch] = field(default_factory=tuple)
    echo_reveals: Sequence[EchoReveal] = field(default_factory=tuple)
    difficulty: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _validate_text(self.id, field_name="scene id"))
        object.__setattr__(self, "type", SceneType.parse(self.type))

        next_scene_id = self.next_scene_id
        if next_scene_id is not None:
            next_scene_id = _normalise_target(
                next_scene_id, field_name="scene next scene id"
            )
        object.__setattr__(self, "next_scene_id", next_scene_id or None)

        branches = tuple(self.branches)
        seen_choices: set[str] = set()
        for branch in branches:
            if branch.choice in seen_choices:
                raise ValueError(
                    f"Scene '{self.id}' defines duplicate choice '{branch.choice}'."
                )
            seen_choices.add(branch.choice)
        object.__setattr__(self, "branches", branches)
        object.__setattr__(self, "echo_reveals", tuple(self.echo_reveals))

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` when the scene has no outgoing edge."""

        return self.next_scene_id is None and not self.branches

    def find_branch(self, choice: str) -> Branch | None:
        """Return the branch labelled ``choice`` if the scene offers it."""

        for branch in self.branches:
            if branch.choice == choice:
                return branch
        return None

    def iter_targets(self) -> Iterator[str]:
        """Yield every non-ending scene id this scene points at."""

        if self.next_scene_id:
            yield self.next_scene_id
        for branch in self.branches:
            if not branch.is_ending:
                yield branch.next_scene_id


@dataclass(frozen=True)
class Scenario:
    """A branching narrative unit; the first scene is the entry point.

    Scenes are kept in an id-keyed mapping so loops back to earlier scenes are
    plain string references rather than object cycles.
    """

    id: str
    title: str
    scenes: Sequence[Scene] = field(default_factory=tuple)
    description: str = ""
    compass_axes: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _validate_text(self.id, field_name="scenario id"))
        scenes = tuple(self.scenes)
        index: dict[str, Scene] = {}
        for scene in scenes:
            if scene.id in index:
                raise ValueError(
                    f"Scenario '{self.id}' defines duplicate scene id '{scene.id}'."
                )
            index[scene.id] = scene
        object.__setattr__(self, "scenes", scenes)
        object.__setattr__(self, "compass_axes", tuple(self.compass_axes))
        object.__setattr__(self, "_index", index)

    @property
    def scene_map(self) -> Mapping[str, Scene]:
        """Return a read-only mapping of scene id to scene."""

        return MappingProxyType(self._index)  # type: ignore[attr-defined]

    @property
    def scene_ids(self) -> tuple[str, ...]:
        return tuple(scene.id for scene in self.scenes)

    @property
    def entry_scene_id(self) -> str | None:
        """Return the id of the first scene, or ``None`` for an empty scenario."""

        return self.scenes[0].id if self.scenes else None

    def has_scene(self, scene_id: str) -> bool:
        return scene_id in self.scene_map

    def find_scene(self, scene_id: str) -> Scene | None:
        return self.scene_map.get(scene_id)

    def get_scene(self, scene_id: str) -> Scene:
        """Return the scene with ``scene_id``.

        Raises:
            KeyError: If the scenario does not contain the scene.
        """

        try:
            return self.scene_map[scene_id]
        except KeyError as exc:
            raise KeyError(
                f"Scene '{scene_id}' does not exist in scenario '{self.id}'"
            ) from exc

    def iter_edges(self) -> Iterator[tuple[str, str]]:
        """Yield ``(source, target)`` pairs for every non-ending edge."""

        for scene in self.scenes:
            for target in scene.iter_targets():
                yield scene.id, target

    def reveals_for(self, scene_id: str) -> tuple[EchoReveal, ...]:
        """Return every echo reveal, across all scenes, triggered at ``scene_id``."""

        return tuple(
            reveal
            for scene in self.scenes
            for reveal in scene.echo_reveals
            if reveal.trigger_scene_id == scene_id
        )


__all__ = [
    "ENDING_MARKER",
    "SceneType",
    "CompassChange",
    "EchoLog",
    "EchoReveal",
    "Branch",
    "Scene",
    "Scenario",
]
