"""Assemble the session engine and awarding services from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from .badges import BadgeAwardingEngine, BadgeConfiguration, UserProfile
from .persistence import FileGameSessionStore
from .repositories import (
    FileScenarioLookup,
    GameSessionStore,
    InMemoryBadgeConfigurationStore,
    InMemoryGameSessionStore,
    InMemoryProfileLookup,
    InMemoryScenarioLookup,
    InMemoryUserBadgeStore,
    ScenarioLookup,
    UnitOfWork,
)
from .scene_graph import Scenario
from .session_engine import GameSessionEngine, SessionFinalizer
from .settings import StoryCompassSettings

logger = logging.getLogger(__name__)


@dataclass
class StoryCompassServices:
    """Engine, finalizer and the stores they share one unit of work through."""

    settings: StoryCompassSettings
    unit_of_work: UnitOfWork
    scenarios: ScenarioLookup
    sessions: GameSessionStore
    badge_configurations: InMemoryBadgeConfigurationStore
    user_badges: InMemoryUserBadgeStore
    profiles: InMemoryProfileLookup
    engine: GameSessionEngine
    awarding_engine: BadgeAwardingEngine
    finalizer: SessionFinalizer


def build_services(
    settings: StoryCompassSettings | None = None,
    *,
    scenarios: Iterable[Scenario] = (),
    badge_configurations: Iterable[BadgeConfiguration] = (),
    profiles: Iterable[UserProfile] = (),
    clock: Callable[[], datetime] | None = None,
) -> StoryCompassServices:
    """Return services configured from ``settings``.

    Scenario documents are read from ``settings.scenario_root`` when it is set,
    otherwise ``scenarios`` are served from memory. Sessions are written below
    ``settings.session_root`` when it is set and kept in memory otherwise.
    Profiles without an age group are awarded badges for
    ``settings.default_age_group``.
    """

    resolved_settings = settings or StoryCompassSettings.from_env()
    unit_of_work = UnitOfWork()

    scenario_lookup: ScenarioLookup
    if resolved_settings.scenario_root is not None:
        scenario_lookup = FileScenarioLookup(resolved_settings.scenario_root)
    else:
        scenario_lookup = InMemoryScenarioLookup(scenarios)

    sessions: GameSessionStore
    if resolved_settings.session_root is not None:
        sessions = FileGameSessionStore(resolved_settings.session_root, unit_of_work)
    else:
        sessions = InMemoryGameSessionStore(unit_of_work)

    configuration_store = InMemoryBadgeConfigurationStore(badge_configurations)
    user_badges = InMemoryUserBadgeStore(unit_of_work)
    profile_lookup = InMemoryProfileLookup(profiles)

    engine = GameSessionEngine(scenario_lookup, sessions, unit_of_work, clock=clock)
    awarding_engine = BadgeAwardingEngine(
        configuration_store,
        user_badges,
        unit_of_work,
        default_age_group=resolved_settings.default_age_group,
        clock=clock,
    )
    finalizer = SessionFinalizer(sessions, profile_lookup, awarding_engine, unit_of_work)
    logger.debug(
        "Built services with scenario root %s and session root %s",
        resolved_settings.scenario_root,
        resolved_settings.session_root,
    )

    return StoryCompassServices(
        settings=resolved_settings,
        unit_of_work=unit_of_work,
        scenarios=scenario_lookup,
        sessions=sessions,
        badge_configurations=configuration_store,
        user_badges=user_badges,
        profiles=profile_lookup,
        engine=engine,
        awarding_engine=awarding_engine,
        finalizer=finalizer,
    )


__all__ = ["StoryCompassServices", "build_services"]
