"""Parse scenario and badge configuration documents into domain objects.

Documents are plain JSON objects, typically authored by content designers. The
pydantic models below accept the field spellings used by older exports (for
example ``nextSceneId`` next to ``next_scene_id``) and convert the validated
payload into the frozen dataclasses from :mod:`storycompass.scene_graph`.
Dangling scene references are deliberately *not* rejected here; reporting them
is the validator's job.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Sequence

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .badges import BadgeConfiguration
from .scene_graph import (
    ENDING_MARKER,
    Branch,
    CompassChange,
    EchoLog,
    EchoReveal,
    Scenario,
    Scene,
    SceneType,
)


def _strip_required(value: Any) -> Any:
    if not isinstance(value, str):
        raise ValueError("Value must be provided as a string.")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError("Value must be a non-empty string.")
    return trimmed


class _Document(BaseModel):
    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, allow_inf_nan=False
    )


class CompassChangeDocument(_Document):
    axis: str
    delta: float
    direction: str | None = None

    @field_validator("axis")
    @classmethod
    def _validate_axis(cls, value: Any) -> str:
        return _strip_required(value)


class EchoLogDocument(_Document):
    echo_type: str = Field(validation_alias=AliasChoices("echo_type", "echoType", "type"))
    description: str = ""
    strength: float = Field(default=0.5, ge=0.1, le=1.0)


class EchoRevealDocument(_Document):
    echo_type: str = Field(validation_alias=AliasChoices("echo_type", "echoType", "type"))
    trigger_scene_id: str = Field(
        validation_alias=AliasChoices("trigger_scene_id", "triggerSceneId")
    )
    content: str = Field(
        default="", validation_alias=AliasChoices("content", "description")
    )
    min_strength: float = Field(
        default=0.5,
        validation_alias=AliasChoices("min_strength", "minStrength", "threshold"),
    )
    reveal_mechanic: str = Field(
        default="none",
        validation_alias=AliasChoices("reveal_mechanic", "revealMechanic"),
    )
    required: bool = False

    @field_validator("min_strength")
    @classmethod
    def _clamp_strength(cls, value: float) -> float:
        return min(1.0, max(0.1, value))


class BranchDocument(_Document):
    choice: str = Field(validation_alias=AliasChoices("choice", "text"))
    next_scene_id: str | None = Field(
        default=ENDING_MARKER,
        validation_alias=AliasChoices("next_scene_id", "nextSceneId", "next_scene"),
    )
    compass_change: CompassChangeDocument | None = Field(
        default=None, validation_alias=AliasChoices("compass_change", "compassChange")
    )
    echo_log: EchoLogDocument | None = Field(
        default=None, validation_alias=AliasChoices("echo_log", "echoLog")
    )

    @field_validator("choice")
    @classmethod
    def _validate_choice(cls, value: Any) -> str:
        return _strip_required(value)


class SceneDocument(_Document):
    id: str
    title: str
    description: str
    type: SceneType = SceneType.NARRATIVE
    next_scene_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("next_scene_id", "nextSceneId", "next_scene"),
    )
    branches: list[BranchDocument] = Field(
        default_factory=list, validation_alias=AliasChoices("branches", "choices")
    )
    echo_reveals: list[EchoRevealDocument] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "echo_reveals", "echoReveals", "echoRevealReferences"
        ),
    )
    difficulty: int | None = None

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: Any) -> str:
        return _strip_required(value)

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value: Any) -> Any:
        if value is None:
            return SceneType.NARRATIVE
        if isinstance(value, str):
            return SceneType.parse(value)
        return value

    @field_validator("next_scene_id", mode="before")
    @classmethod
    def _blank_next_scene(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ScenarioDocument(_Document):
    id: str
    title: str
    description: str = ""
    compass_axes: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("compass_axes", "compassAxes", "core_axes"),
    )
    scenes: list[SceneDocument]

    @field_validator("id", "title")
    @classmethod
    def _validate_text_fields(cls, value: Any) -> str:
        return _strip_required(value)

    @field_validator("scenes")
    @classmethod
    def _require_scenes(cls, value: list[SceneDocument]) -> list[SceneDocument]:
        if not value:
            raise ValueError("Scenario does not contain any scenes.")
        return value

    def to_scenario(self) -> Scenario:
        return Scenario(
            id=self.id,
            title=self.title,
            description=self.description,
            compass_axes=tuple(self.compass_axes),
            scenes=tuple(_scene_from_document(scene) for scene in self.scenes),
        )


class BadgeConfigurationDocument(_Document):
    id: str
    age_group_id: str = Field(validation_alias=AliasChoices("age_group_id", "ageGroupId"))
    compass_axis_id: str = Field(
        validation_alias=AliasChoices("compass_axis_id", "compassAxisId", "axis")
    )
    tier: str
    tier_order: int = Field(validation_alias=AliasChoices("tier_order", "tierOrder"))
    title: str
    description: str = ""
    required_score: float = Field(
        validation_alias=AliasChoices("required_score", "requiredScore")
    )
    image_id: str | None = Field(
        default=None, validation_alias=AliasChoices("image_id", "imageId")
    )

    @field_validator("id", "age_group_id", "compass_axis_id", "tier", "title")
    @classmethod
    def _validate_text_fields(cls, value: Any) -> str:
        return _strip_required(value)

    def to_configuration(self) -> BadgeConfiguration:
        return BadgeConfiguration(
            id=self.id,
            age_group_id=self.age_group_id,
            compass_axis_id=self.compass_axis_id,
            tier=self.tier,
            tier_order=self.tier_order,
            title=self.title,
            description=self.description,
            required_score=self.required_score,
            image_id=self.image_id,
        )


def _scene_from_document(document: SceneDocument) -> Scene:
    branches = []
    for branch in document.branches:
        compass_change = None
        if branch.compass_change is not None:
            compass_change = CompassChange(
                axis=branch.compass_change.axis,
                delta=branch.compass_change.delta,
                direction=branch.compass_change.direction,
            )
        echo_log = None
        if branch.echo_log is not None:
            echo_log = EchoLog(
                echo_type=branch.echo_log.echo_type,
                description=branch.echo_log.description,
                strength=branch.echo_log.strength,
            )
        branches.append(
            Branch(
                choice=branch.choice,
                next_scene_id=branch.next_scene_id or ENDING_MARKER,
                compass_change=compass_change,
                echo_log=echo_log,
            )
        )

    reveals = tuple(
        EchoReveal(
            echo_type=reveal.echo_type,
            trigger_scene_id=reveal.trigger_scene_id,
            content=reveal.content,
            min_strength=reveal.min_strength,
            reveal_mechanic=reveal.reveal_mechanic,
            required=reveal.required,
        )
        for reveal in document.echo_reveals
    )

    return Scene(
        id=document.id,
        title=document.title,
        description=document.description,
        type=document.type,
        next_scene_id=document.next_scene_id,
        branches=tuple(branches),
        echo_reveals=reveals,
        difficulty=document.difficulty,
    )


def _describe_validation_error(prefix: str, exc: ValidationError) -> str:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        details.append(f"{location or '<root>'}: {error.get('msg', 'invalid value')}")
    return f"{prefix}: " + "; ".join(details)


def load_scenario_from_mapping(definition: Mapping[str, Any]) -> Scenario:
    """Convert a scenario document into a :class:`Scenario`.

    Raises:
        ValueError: If the document is malformed. Duplicate scene ids and
            duplicate choice labels inside a scene are also rejected.
    """

    if not isinstance(definition, Mapping):
        raise ValueError("Scenario documents must be objects.")

    try:
        document = ScenarioDocument.model_validate(dict(definition))
    except ValidationError as exc:
        scenario_id = definition.get("id", "<unknown>")
        raise ValueError(
            _describe_validation_error(f"Scenario '{scenario_id}' is malformed", exc)
        ) from exc

    return document.to_scenario()


def load_scenario_from_file(path: str | Path) -> Scenario:
    """Load a scenario document from a JSON file on disk."""

    data_path = Path(path)
    with data_path.open("r", encoding="utf-8") as handle:
        raw_data = json.load(handle)

    if not isinstance(raw_data, Mapping):
        raise ValueError("Scenario files must contain an object at the top level.")

    return load_scenario_from_mapping(raw_data)


def load_badge_configurations_from_mapping(
    definitions: Sequence[Mapping[str, Any]],
) -> list[BadgeConfiguration]:
    """Convert a list of badge configuration documents."""

    if isinstance(definitions, (str, bytes)) or not isinstance(definitions, Sequence):
        raise ValueError("Badge configuration documents must be provided as a list.")

    configurations: list[BadgeConfiguration] = []
    for index, definition in enumerate(definitions):
        if not isinstance(definition, Mapping):
            raise ValueError(f"Badge configuration #{index} must be an object.")
        try:
            document = BadgeConfigurationDocument.model_validate(dict(definition))
        except ValidationError as exc:
            raise ValueError(
                _describe_validation_error(
                    f"Badge configuration #{index} is malformed", exc
                )
            ) from exc
        configurations.append(document.to_configuration())
    return configurations


def load_badge_configurations_from_file(path: str | Path) -> list[BadgeConfiguration]:
    """Load badge configuration documents from a JSON file on disk."""

    data_path = Path(path)
    with data_path.open("r", encoding="utf-8") as handle:
        raw_data = json.load(handle)

    return load_badge_configurations_from_mapping(raw_data)


__all__ = [
    "ScenarioDocument",
    "SceneDocument",
    "BranchDocument",
    "EchoRevealDocument",
    "BadgeConfigurationDocument",
    "load_scenario_from_mapping",
    "load_scenario_from_file",
    "load_badge_configurations_from_mapping",
    "load_badge_configurations_from_file",
]
