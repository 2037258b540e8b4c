"""Tiered compass badges and the engine that awards them."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Iterable, Mapping

if TYPE_CHECKING:  # pragma: no cover - imported only for type checking
    from .repositories import BadgeConfigurationLookup, UnitOfWork, UserBadgeStore

logger = logging.getLogger(__name__)

DEFAULT_AGE_GROUP = "6-9"


def _validate_text(value: str, *, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")

    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must be a non-empty string")
    return stripped


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UserProfile:
    """The player profile badges are awarded to."""

    id: str
    name: str = ""
    age_group: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _validate_text(self.id, field_name="profile id"))


@dataclass(frozen=True)
class BadgeConfiguration:
    """Reference data describing one tier of a compass-axis badge."""

    id: str
    age_group_id: str
    compass_axis_id: str
    tier: str
    tier_order: int
    title: str
    required_score: float
    description: str = ""
    image_id: str | None = None

    def __post_init__(self) -> None:
        for name in ("id", "age_group_id", "compass_axis_id", "tier", "title"):
            object.__setattr__(
                self, name, _validate_text(getattr(self, name), field_name=name)
            )
        if isinstance(self.tier_order, bool) or not isinstance(self.tier_order, int):
            raise TypeError("tier_order must be an integer")
        object.__setattr__(self, "required_score", float(self.required_score))


@dataclass(frozen=True)
class UserBadge:
    """A badge earned by a profile. Never updated or re-issued."""

    user_profile_id: str
    badge_id: str
    badge_name: str
    badge_message: str
    axis: str
    trigger_value: float
    threshold: float
    earned_at: datetime
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    image_id: str | None = None
    session_id: str | None = None
    scenario_id: str | None = None


@dataclass(frozen=True)
class BadgeTierProgress:
    """Progress towards a single badge tier."""

    badge_id: str
    tier: str
    tier_order: int
    title: str
    required_score: float
    is_earned: bool
    earned_at: datetime | None
    remaining_score: float


@dataclass(frozen=True)
class AxisBadgeProgress:
    """Progress across all tiers of one compass axis."""

    axis: str
    current_score: float
    tiers: tuple[BadgeTierProgress, ...]

    @property
    def earned_count(self) -> int:
        return sum(1 for tier in self.tiers if tier.is_earned)

    @property
    def next_tier(self) -> BadgeTierProgress | None:
        """Return the lowest tier that has not been earned yet."""

        for tier in self.tiers:
            if not tier.is_earned:
                return tier
        return None


def group_by_axis(
    configurations: Iterable[BadgeConfiguration],
) -> dict[str, list[BadgeConfiguration]]:
    """Group configurations by axis, each group sorted by ``tier_order``."""

    grouped: dict[str, list[BadgeConfiguration]] = defaultdict(list)
    for configuration in configurations:
        grouped[configuration.compass_axis_id].append(configuration)
    return {
        axis: sorted(badges, key=lambda badge: badge.tier_order)
        for axis, badges in grouped.items()
    }


def check_tier_ordering(configurations: Iterable[BadgeConfiguration]) -> list[str]:
    """Return a message for each tier whose required score drops below the previous tier.

    Within one (age group, axis) group the awarding engine stops at the first
    tier a score does not reach, so required scores must never decrease as
    ``tier_order`` increases.
    """

    by_group: dict[tuple[str, str], list[BadgeConfiguration]] = defaultdict(list)
    for configuration in configurations:
        by_group[(configuration.age_group_id, configuration.compass_axis_id)].append(
            configuration
        )

    problems: list[str] = []
    for (age_group, axis), badges in sorted(by_group.items()):
        ordered = sorted(badges, key=lambda badge: badge.tier_order)
        for previous, current in zip(ordered, ordered[1:]):
            if current.required_score < previous.required_score:
                problems.append(
                    f"Badge '{current.id}' (tier {current.tier_order}) on axis '{axis}' "
                    f"for age group '{age_group}' requires {current.required_score:g}, "
                    f"less than tier {previous.tier_order} ({previous.required_score:g})"
                )
    return problems


class BadgeAwardingEngine:
    """Compare axis scores against tiered thresholds and issue new badges."""

    def __init__(
        self,
        badge_configurations: BadgeConfigurationLookup,
        user_badges: UserBadgeStore,
        unit_of_work: UnitOfWork,
        *,
        default_age_group: str = DEFAULT_AGE_GROUP,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._badge_configurations = badge_configurations
        self._user_badges = user_badges
        self._unit_of_work = unit_of_work
        self._default_age_group = _validate_text(
            default_age_group, field_name="default age group"
        )
        self._clock = clock or _utcnow

    def resolve_age_group(self, profile: UserProfile) -> str:
        if profile.age_group and profile.age_group.strip():
            return profile.age_group.strip()
        return self._default_age_group

    def award_badges(
        self,
        profile: UserProfile,
        axis_scores: Mapping[str, float],
        *,
        session_id: str | None = None,
        scenario_id: str | None = None,
        commit: bool = True,
    ) -> list[UserBadge]:
        """Issue every badge tier ``axis_scores`` newly qualifies for.

        Tiers of each axis are evaluated in ascending ``tier_order``; the first
        tier whose required score is not met ends evaluation of that axis.
        Badges the profile already holds are skipped, so repeated calls with
        the same scores never issue duplicates.

        Args:
            profile: The profile receiving badges.
            axis_scores: Mapping of axis name to the score being evaluated.
            session_id: Optional session that produced the scores.
            scenario_id: Optional scenario that produced the scores.
            commit: When ``False`` the new badges are staged on the unit of work
                but not committed, letting the caller commit them together
                with its own writes.

        Returns:
            Only the badges created by this call.
        """

        age_group = self.resolve_age_group(profile)
        badges_by_axis = group_by_axis(
            self._badge_configurations.get_by_age_group(age_group)
        )
        earned_badge_ids = {
            badge.badge_id
            for badge in self._user_badges.get_by_profile_id(profile.id)
            if badge.badge_id
        }

        new_badges: list[UserBadge] = []
        for axis, score in axis_scores.items():
            tiers = badges_by_axis.get(axis)
            if not tiers:
                continue

            for badge in tiers:
                if badge.id in earned_badge_ids:
                    continue
                if not score >= badge.required_score:
                    break

                user_badge = UserBadge(
                    user_profile_id=profile.id,
                    badge_id=badge.id,
                    badge_name=badge.title,
                    badge_message=badge.description,
                    axis=axis,
                    trigger_value=float(score),
                    threshold=badge.required_score,
                    earned_at=self._clock(),
                    image_id=badge.image_id,
                    session_id=session_id,
                    scenario_id=scenario_id,
                )
                self._user_badges.add(user_badge)
                new_badges.append(user_badge)
                earned_badge_ids.add(badge.id)
                logger.info(
                    "Awarded badge %s (%s) to profile %s on axis %s",
                    badge.id,
                    badge.title,
                    profile.id,
                    axis,
                )

        if new_badges:
            if commit:
                self._unit_of_work.commit()
            logger.info("Awarded %d badges to profile %s", len(new_badges), profile.id)

        return new_badges

    def badge_progress(
        self,
        profile: UserProfile,
        axis_scores: Mapping[str, float] | None = None,
    ) -> list[AxisBadgeProgress]:
        """Summarise tier progress per axis for ``profile``.

        Without ``axis_scores`` the current score of an axis is derived from the
        badges already earned on it (the highest trigger value or threshold).
        """

        age_group = self.resolve_age_group(profile)
        badges_by_axis = group_by_axis(
            self._badge_configurations.get_by_age_group(age_group)
        )
        earned = {
            badge.badge_id: badge
            for badge in self._user_badges.get_by_profile_id(profile.id)
        }

        progress: list[AxisBadgeProgress] = []
        for axis in sorted(badges_by_axis):
            tiers = badges_by_axis[axis]
            if axis_scores is not None:
                current = float(axis_scores.get(axis, 0.0))
            else:
                current = max(
                    (
                        max(earned[badge.id].trigger_value, earned[badge.id].threshold)
                        for badge in tiers
                        if badge.id in earned
                    ),
                    default=0.0,
                )

            tier_progress = tuple(
                BadgeTierProgress(
                    badge_id=badge.id,
                    tier=badge.tier,
                    tier_order=badge.tier_order,
                    title=badge.title,
                    required_score=badge.required_score,
                    is_earned=badge.id in earned,
                    earned_at=earned[badge.id].earned_at if badge.id in earned else None,
                    remaining_score=max(0.0, badge.required_score - current),
                )
                for badge in tiers
            )
            progress.append(
                AxisBadgeProgress(axis=axis, current_score=current, tiers=tier_progress)
            )
        return progress


__all__ = [
    "DEFAULT_AGE_GROUP",
    "UserProfile",
    "BadgeConfiguration",
    "UserBadge",
    "BadgeTierProgress",
    "AxisBadgeProgress",
    "group_by_axis",
    "check_tier_ordering",
    "BadgeAwardingEngine",
]
