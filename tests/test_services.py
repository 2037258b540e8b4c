import json
from pathlib import Path
from typing import Any

import pytest

from conftest import FakeClock, brave_or_cautious_scenario
from storycompass.badges import BadgeConfiguration, UserProfile
from storycompass.persistence import FileGameSessionStore
from storycompass.repositories import FileScenarioLookup, InMemoryGameSessionStore
from storycompass.services import build_services
from storycompass.settings import StoryCompassSettings


def _courage_badge(age_group: str) -> BadgeConfiguration:
    return BadgeConfiguration(
        id=f"courage-{age_group}",
        age_group_id=age_group,
        compass_axis_id="Courage",
        tier="bronze",
        tier_order=1,
        title="Brave Start",
        required_score=3,
    )


def test_in_memory_services_without_roots(clock: FakeClock) -> None:
    services = build_services(
        StoryCompassSettings(),
        scenarios=[brave_or_cautious_scenario()],
        clock=clock,
    )

    assert isinstance(services.sessions, InMemoryGameSessionStore)
    session = services.engine.start_session("S1", "acc", "p1")
    services.engine.make_choice(session.id, "A", "brave")
    assert services.sessions.list_sessions() == [session.id]


def test_services_read_scenarios_and_write_sessions_below_roots(
    tmp_path: Path, clock: FakeClock, scenario_document: dict[str, Any]
) -> None:
    scenario_root = tmp_path / "scenarios"
    scenario_root.mkdir()
    (scenario_root / "forest.json").write_text(
        json.dumps(scenario_document), encoding="utf-8"
    )
    settings = StoryCompassSettings(
        scenario_root=scenario_root, session_root=tmp_path / "sessions"
    )

    services = build_services(settings, clock=clock)
    session = services.engine.start_session("forest", "acc", "p1")

    assert isinstance(services.scenarios, FileScenarioLookup)
    assert isinstance(services.sessions, FileGameSessionStore)
    assert (tmp_path / "sessions" / f"{session.id}.json").is_file()


def test_finalizer_uses_configured_default_age_group(clock: FakeClock) -> None:
    services = build_services(
        StoryCompassSettings(default_age_group="10-12"),
        scenarios=[brave_or_cautious_scenario()],
        badge_configurations=[_courage_badge("6-9"), _courage_badge("10-12")],
        profiles=[UserProfile(id="p1", name="Ada")],
        clock=clock,
    )
    session = services.engine.start_session("S1", "acc", "p1")
    services.engine.make_choice(session.id, "A", "brave")

    awarded = services.finalizer.finalize(session.id)

    assert [badge.badge_id for badge in awarded] == ["courage-10-12"]
    assert [b.badge_id for b in services.user_badges.get_by_profile_id("p1")] == [
        "courage-10-12"
    ]


def test_build_services_reads_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, clock: FakeClock
) -> None:
    monkeypatch.delenv("STORYCOMPASS_SCENARIO_ROOT", raising=False)
    monkeypatch.setenv("STORYCOMPASS_SESSION_ROOT", str(tmp_path))
    monkeypatch.setenv("STORYCOMPASS_DEFAULT_AGE_GROUP", "10-12")

    services = build_services(clock=clock)

    assert services.settings.session_root == tmp_path
    assert services.awarding_engine.resolve_age_group(UserProfile(id="p1")) == "10-12"
    assert isinstance(services.sessions, FileGameSessionStore)
