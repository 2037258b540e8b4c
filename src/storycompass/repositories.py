"""Repository ports consumed by the core, plus in-memory adapters.

Writes are never applied directly: stores stage them on a shared
:class:`UnitOfWork` and they become visible only once the unit of work commits.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Tuple

from .badges import BadgeConfiguration, UserBadge, UserProfile, check_tier_ordering
from .calibration import ContentBundle
from .errors import BadgeConfigurationError, SessionConflictError, StoryCompassError
from .scene_graph import Scenario
from .session import GameSession

Check = Callable[[], None]
Apply = Callable[[], None]


class UnitOfWork:
    """Collects the pending writes of one logical operation.

    Each staged write may carry a check. :meth:`commit` runs every check before
    applying any write, so either the whole batch lands or none of it does.
    """

    def __init__(self) -> None:
        self._pending: List[Tuple[Check | None, Apply]] = []
        self.commit_count = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def stage(self, apply: Apply, *, check: Check | None = None) -> None:
        """Queue ``apply`` to run on the next commit, guarded by ``check``."""

        self._pending.append((check, apply))

    def commit(self) -> int:
        """Apply every staged write and return how many were applied.

        The staged batch is cleared whether or not the commit succeeds; an
        exception raised by a check propagates and nothing is applied.
        """

        pending, self._pending = self._pending, []
        for check, _ in pending:
            if check is not None:
                check()
        for _, apply in pending:
            apply()
        self.commit_count += 1
        return len(pending)

    def rollback(self) -> None:
        """Discard every staged write."""

        self._pending.clear()


class ScenarioLookup(ABC):
    """Read access to scenario content."""

    @abstractmethod
    def get_by_id(self, scenario_id: str) -> Scenario | None:
        """Return the scenario or ``None`` when it does not exist."""


class GameSessionStore(ABC):
    """Read/write access to game sessions."""

    @abstractmethod
    def get_by_id(self, session_id: str) -> GameSession | None:
        """Return a copy of the stored session or ``None`` when missing."""

    @abstractmethod
    def save(self, session: GameSession, *, expected_scene_id: str | None = None) -> None:
        """Stage ``session`` for the next commit.

        When ``expected_scene_id`` is given the commit fails with
        :class:`~storycompass.errors.SessionConflictError` unless the persisted
        session still sits on that scene.
        """


class BadgeConfigurationLookup(ABC):
    """Read access to badge tier reference data."""

    @abstractmethod
    def get_by_age_group(self, age_group_id: str) -> List[BadgeConfiguration]:
        """Return every badge configuration defined for ``age_group_id``."""


class UserBadgeStore(ABC):
    """Read/write access to badges earned by profiles."""

    @abstractmethod
    def get_by_profile_id(self, profile_id: str) -> List[UserBadge]:
        """Return the badges already earned by ``profile_id``."""

    @abstractmethod
    def add(self, badge: UserBadge) -> None:
        """Stage ``badge`` for the next commit."""


class ProfileLookup(ABC):
    """Read access to player profiles."""

    @abstractmethod
    def get_by_id(self, profile_id: str) -> UserProfile | None:
        """Return the profile or ``None`` when it does not exist."""


class ContentBundleLookup(ABC):
    """Read access to content bundles."""

    @abstractmethod
    def get_by_id(self, bundle_id: str) -> ContentBundle | None:
        """Return the bundle or ``None`` when it does not exist."""


def _validate_identifier(value: str, *, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must be a non-empty string")
    return stripped


class InMemoryScenarioLookup(ScenarioLookup):
    """Keep scenarios in local process memory."""

    def __init__(self, scenarios: Iterable[Scenario] = ()) -> None:
        self._scenarios: Dict[str, Scenario] = {}
        for scenario in scenarios:
            self.add(scenario)

    def add(self, scenario: Scenario) -> None:
        self._scenarios[scenario.id] = scenario

    def get_by_id(self, scenario_id: str) -> Scenario | None:
        return self._scenarios.get(scenario_id)


class FileScenarioLookup(ScenarioLookup):
    """Read scenario documents stored as ``<root>/<scenario id>.json``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def get_by_id(self, scenario_id: str) -> Scenario | None:
        from .scenario_loader import load_scenario_from_file

        path = self.root / f"{_validate_identifier(scenario_id, field_name='scenario_id')}.json"
        if not path.is_file():
            return None
        return load_scenario_from_file(path)

    def list_scenarios(self) -> List[str]:
        return sorted(path.stem for path in self.root.glob("*.json") if path.is_file())


class InMemoryGameSessionStore(GameSessionStore):
    """Keep game sessions in local process memory."""

    def __init__(self, unit_of_work: UnitOfWork) -> None:
        self._unit_of_work = unit_of_work
        self._sessions: Dict[str, GameSession] = {}

    def get_by_id(self, session_id: str) -> GameSession | None:
        stored = self._sessions.get(session_id)
        return copy.deepcopy(stored) if stored is not None else None

    def save(self, session: GameSession, *, expected_scene_id: str | None = None) -> None:
        staged = copy.deepcopy(session)

        def check() -> None:
            if expected_scene_id is None:
                return
            stored = self._sessions.get(staged.id)
            current = stored.current_scene_id if stored is not None else None
            if current != expected_scene_id:
                raise SessionConflictError(
                    f"Session '{staged.id}' is no longer at scene '{expected_scene_id}'",
                    session_id=staged.id,
                )

        def apply() -> None:
            self._sessions[staged.id] = staged

        self._unit_of_work.stage(apply, check=check)

    def list_sessions(self) -> List[str]:
        return sorted(self._sessions)


class InMemoryBadgeConfigurationStore(BadgeConfigurationLookup):
    """Badge reference data held in memory.

    :meth:`save` refuses configurations whose ``required_score`` would drop
    below a lower tier of the same (age group, axis) group.
    """

    def __init__(self, configurations: Iterable[BadgeConfiguration] = ()) -> None:
        self._configurations: Dict[str, BadgeConfiguration] = {}
        for configuration in configurations:
            self.save(configuration)

    def save(self, configuration: BadgeConfiguration) -> None:
        group = [
            existing
            for existing in self._configurations.values()
            if existing.id != configuration.id
            and existing.age_group_id == configuration.age_group_id
            and existing.compass_axis_id == configuration.compass_axis_id
        ]
        problems = check_tier_ordering([*group, configuration])
        if problems:
            raise BadgeConfigurationError("; ".join(problems))
        self._configurations[configuration.id] = configuration

    def get_by_id(self, badge_id: str) -> BadgeConfiguration | None:
        return self._configurations.get(badge_id)

    def get_by_age_group(self, age_group_id: str) -> List[BadgeConfiguration]:
        return [
            configuration
            for configuration in self._configurations.values()
            if configuration.age_group_id == age_group_id
        ]


class InMemoryUserBadgeStore(UserBadgeStore):
    """Keep earned badges in local process memory."""

    def __init__(self, unit_of_work: UnitOfWork) -> None:
        self._unit_of_work = unit_of_work
        self._badges: List[UserBadge] = []

    def get_by_profile_id(self, profile_id: str) -> List[UserBadge]:
        return [
            copy.deepcopy(badge)
            for badge in self._badges
            if badge.user_profile_id == profile_id
        ]

    def add(self, badge: UserBadge) -> None:
        def check() -> None:
            for existing in self._badges:
                if (
                    existing.user_profile_id == badge.user_profile_id
                    and existing.badge_id == badge.badge_id
                ):
                    raise StoryCompassError(
                        f"Profile '{badge.user_profile_id}' already holds badge "
                        f"'{badge.badge_id}'"
                    )

        def apply() -> None:
            self._badges.append(badge)

        self._unit_of_work.stage(apply, check=check)

    def all_badges(self) -> List[UserBadge]:
        return list(self._badges)


class InMemoryProfileLookup(ProfileLookup):
    """Keep player profiles in local process memory."""

    def __init__(self, profiles: Iterable[UserProfile] = ()) -> None:
        self._profiles: Dict[str, UserProfile] = {}
        for profile in profiles:
            self.add(profile)

    def add(self, profile: UserProfile) -> None:
        self._profiles[profile.id] = profile

    def get_by_id(self, profile_id: str) -> UserProfile | None:
        return self._profiles.get(profile_id)


class InMemoryContentBundleLookup(ContentBundleLookup):
    """Keep content bundles in local process memory."""

    def __init__(self, bundles: Iterable[ContentBundle] = ()) -> None:
        self._bundles: Dict[str, ContentBundle] = {}
        for bundle in bundles:
            self.add(bundle)

    def add(self, bundle: ContentBundle) -> None:
        self._bundles[bundle.id] = bundle

    def get_by_id(self, bundle_id: str) -> ContentBundle | None:
        return self._bundles.get(bundle_id)


__all__ = [
    "UnitOfWork",
    "ScenarioLookup",
    "GameSessionStore",
    "BadgeConfigurationLookup",
    "UserBadgeStore",
    "ProfileLookup",
    "ContentBundleLookup",
    "InMemoryScenarioLookup",
    "FileScenarioLookup",
    "InMemoryGameSessionStore",
    "InMemoryBadgeConfigurationStore",
    "InMemoryUserBadgeStore",
    "InMemoryProfileLookup",
    "InMemoryContentBundleLookup",
]
