"""Test configuration for the storycompass project."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from storycompass.scene_graph import Branch, CompassChange, Scenario, Scene
from storycompass.testing_toolkit import InMemoryHarness, build_in_memory_engine


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def brave_or_cautious_scenario() -> Scenario:
    """Entry scene ``A`` with two scored choices leading to ending ``B``."""

    return Scenario(
        id="S1",
        title="The Bridge",
        scenes=(
            Scene(
                id="A",
                title="The rope bridge",
                type="choice",
                branches=(
                    Branch(
                        choice="brave",
                        next_scene_id="B",
                        compass_change=CompassChange(axis="Courage", delta=5),
                    ),
                    Branch(
                        choice="cautious",
                        next_scene_id="B",
                        compass_change=CompassChange(axis="Courage", delta=1),
                    ),
                ),
            ),
            Scene(id="B", title="The other side"),
        ),
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def bridge_scenario() -> Scenario:
    return brave_or_cautious_scenario()


@pytest.fixture()
def harness(clock: FakeClock, bridge_scenario: Scenario) -> InMemoryHarness:
    """Return a session engine wired to in-memory stores holding ``S1``."""

    return build_in_memory_engine([bridge_scenario], clock=clock)


@pytest.fixture()
def scenario_document() -> dict[str, Any]:
    """Return a scenario document exercising most optional fields."""

    return {
        "id": "forest",
        "title": "Into the Forest",
        "description": "A short walk among the trees.",
        "compassAxes": ["Courage", "Kindness"],
        "scenes": [
            {
                "id": "gate",
                "title": "The gate",
                "description": "An old gate creaks open.",
                "type": "Narrative",
                "nextSceneId": "clearing",
            },
            {
                "id": "clearing",
                "title": "The clearing",
                "description": "A fox watches you.",
                "type": "choice",
                "choices": [
                    {
                        "text": "Share your bread",
                        "nextSceneId": "den",
                        "compassChange": {"axis": "Kindness", "delta": 2},
                        "echoLog": {
                            "echoType": "gift",
                            "description": "You fed the fox.",
                            "strength": 0.8,
                        },
                    },
                    {
                        "choice": "Walk past",
                        "next_scene_id": "",
                    },
                ],
            },
            {
                "id": "den",
                "title": "The den",
                "description": "The fox remembers.",
                "type": "special",
                "echoRevealReferences": [
                    {
                        "echoType": "gift",
                        "triggerSceneId": "den",
                        "content": "The fox brings you a key.",
                        "minStrength": 2.5,
                    }
                ],
            },
        ],
    }


__all__ = ["FakeClock", "brave_or_cautious_scenario"]
