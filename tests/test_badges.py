import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pytest

from conftest import FakeClock
from storycompass.badges import (
    BadgeAwardingEngine,
    BadgeConfiguration,
    UserProfile,
    check_tier_ordering,
    group_by_axis,
)
from storycompass.repositories import (
    BadgeConfigurationLookup,
    InMemoryBadgeConfigurationStore,
    InMemoryUserBadgeStore,
    UnitOfWork,
)


def _badge(
    badge_id: str,
    tier_order: int,
    required_score: float,
    *,
    axis: str = "Courage",
    age_group: str = "6-9",
) -> BadgeConfiguration:
    return BadgeConfiguration(
        id=badge_id,
        age_group_id=age_group,
        compass_axis_id=axis,
        tier=f"tier-{tier_order}",
        tier_order=tier_order,
        title=f"{axis} {tier_order}",
        description=f"Reached {required_score:g} {axis}",
        required_score=required_score,
    )


@dataclass
class _UncheckedConfigurations(BadgeConfigurationLookup):
    """Returns configurations exactly as given, even when misordered."""

    configurations: list[BadgeConfiguration] = field(default_factory=list)
    requested: list[str] = field(default_factory=list)

    def get_by_age_group(self, age_group_id: str) -> list[BadgeConfiguration]:
        self.requested.append(age_group_id)
        return [c for c in self.configurations if c.age_group_id == age_group_id]


def _engine(configurations: BadgeConfigurationLookup, clock: FakeClock):
    unit_of_work = UnitOfWork()
    badges = InMemoryUserBadgeStore(unit_of_work)
    engine = BadgeAwardingEngine(configurations, badges, unit_of_work, clock=clock)
    return engine, badges, unit_of_work


def test_awards_tiers_up_to_score(clock: FakeClock) -> None:
    store = InMemoryBadgeConfigurationStore(
        [_badge("c1", 1, 10), _badge("c2", 2, 30), _badge("c3", 3, 60)]
    )
    engine, badges, _ = _engine(store, clock)

    awarded = engine.award_badges(UserProfile(id="p1"), {"Courage": 45})

    assert [badge.badge_id for badge in awarded] == ["c1", "c2"]
    first = awarded[0]
    assert first.user_profile_id == "p1"
    assert first.axis == "Courage"
    assert first.trigger_value == 45.0
    assert first.threshold == 10.0
    assert first.badge_name == "Courage 1"
    assert first.badge_message == "Reached 10 Courage"
    assert first.earned_at == clock.now
    assert len(badges.get_by_profile_id("p1")) == 2


def test_evaluation_stops_at_first_unmet_tier(clock: FakeClock) -> None:
    lookup = _UncheckedConfigurations(
        [_badge("c1", 1, 10), _badge("c2", 2, 30), _badge("c3", 3, 60), _badge("c4", 4, 40)]
    )
    engine, _, _ = _engine(lookup, clock)

    awarded = engine.award_badges(UserProfile(id="p1"), {"Courage": 45})

    assert [badge.badge_id for badge in awarded] == ["c1", "c2"]


def test_nan_score_earns_nothing(clock: FakeClock) -> None:
    store = InMemoryBadgeConfigurationStore(
        [_badge("c1", 1, 10), _badge("c2", 2, 30), _badge("c3", 3, 60)]
    )
    engine, badges, unit_of_work = _engine(store, clock)

    awarded = engine.award_badges(UserProfile(id="p1"), {"Courage": math.nan})

    assert awarded == []
    assert badges.get_by_profile_id("p1") == []
    assert unit_of_work.commit_count == 0


def test_awarding_is_idempotent(clock: FakeClock) -> None:
    store = InMemoryBadgeConfigurationStore([_badge("c1", 1, 10), _badge("c2", 2, 30)])
    engine, badges, unit_of_work = _engine(store, clock)
    profile = UserProfile(id="p1")

    first = engine.award_badges(profile, {"Courage": 45})
    commits = unit_of_work.commit_count
    second = engine.award_badges(profile, {"Courage": 45})

    assert len(first) == 2
    assert second == []
    assert unit_of_work.commit_count == commits
    assert len(badges.get_by_profile_id("p1")) == 2


def test_higher_score_awards_only_new_tiers(clock: FakeClock) -> None:
    store = InMemoryBadgeConfigurationStore(
        [_badge("c1", 1, 10), _badge("c2", 2, 30), _badge("c3", 3, 60)]
    )
    engine, _, _ = _engine(store, clock)
    profile = UserProfile(id="p1")

    engine.award_badges(profile, {"Courage": 12})
    later = engine.award_badges(profile, {"Courage": 75})

    assert [badge.badge_id for badge in later] == ["c2", "c3"]


def test_only_axes_present_in_scores_are_evaluated(clock: FakeClock) -> None:
    store = InMemoryBadgeConfigurationStore(
        [_badge("c1", 1, 0), _badge("w1", 1, 0, axis="Wisdom")]
    )
    engine, _, _ = _engine(store, clock)

    awarded = engine.award_badges(UserProfile(id="p1"), {"Wisdom": 1, "Kindness": 50})

    assert [badge.badge_id for badge in awarded] == ["w1"]


def test_no_new_badges_means_no_commit(clock: FakeClock) -> None:
    store = InMemoryBadgeConfigurationStore([_badge("c1", 1, 10)])
    engine, _, unit_of_work = _engine(store, clock)

    assert engine.award_badges(UserProfile(id="p1"), {"Courage": 2}) == []
    assert unit_of_work.commit_count == 0


def test_commit_false_only_stages(clock: FakeClock) -> None:
    store = InMemoryBadgeConfigurationStore([_badge("c1", 1, 10)])
    engine, badges, unit_of_work = _engine(store, clock)

    awarded = engine.award_badges(UserProfile(id="p1"), {"Courage": 20}, commit=False)

    assert len(awarded) == 1
    assert badges.get_by_profile_id("p1") == []
    assert unit_of_work.pending_count == 1

    unit_of_work.commit()
    assert [badge.badge_id for badge in badges.get_by_profile_id("p1")] == ["c1"]


def test_age_group_falls_back_to_default(clock: FakeClock) -> None:
    lookup = _UncheckedConfigurations([_badge("young", 1, 1, age_group="6-9")])
    engine, _, _ = _engine(lookup, clock)

    awarded = engine.award_badges(UserProfile(id="p1"), {"Courage": 5})
    engine.award_badges(UserProfile(id="p2", age_group="10-12"), {"Courage": 5})

    assert [badge.badge_id for badge in awarded] == ["young"]
    assert lookup.requested == ["6-9", "10-12"]


def test_badge_progress_reports_tiers(clock: FakeClock) -> None:
    store = InMemoryBadgeConfigurationStore(
        [_badge("c1", 1, 10), _badge("c2", 2, 30), _badge("w1", 1, 5, axis="Wisdom")]
    )
    engine, _, _ = _engine(store, clock)
    profile = UserProfile(id="p1")
    engine.award_badges(profile, {"Courage": 12})

    progress = {entry.axis: entry for entry in engine.badge_progress(profile)}

    courage = progress["Courage"]
    assert courage.current_score == 12.0
    assert courage.earned_count == 1
    assert courage.next_tier is not None
    assert courage.next_tier.badge_id == "c2"
    assert courage.next_tier.remaining_score == 18.0
    assert courage.tiers[0].earned_at == clock.now

    wisdom = progress["Wisdom"]
    assert wisdom.current_score == 0.0
    assert wisdom.earned_count == 0

    explicit = engine.badge_progress(profile, {"Courage": 40})
    assert explicit[0].axis == "Courage"
    assert explicit[0].tiers[1].remaining_score == 0.0


def test_check_tier_ordering_reports_regressions() -> None:
    problems = check_tier_ordering(
        [
            _badge("c1", 1, 10),
            _badge("c2", 2, 5),
            _badge("c3", 3, 20),
            _badge("w1", 1, 10, axis="Wisdom"),
            _badge("w2", 2, 10, axis="Wisdom"),
        ]
    )

    assert len(problems) == 1
    assert "Badge 'c2' (tier 2)" in problems[0]


def test_group_by_axis_sorts_by_tier_order() -> None:
    grouped = group_by_axis([_badge("c2", 2, 30), _badge("c1", 1, 10)])

    assert [badge.id for badge in grouped["Courage"]] == ["c1", "c2"]


def test_badge_configuration_validates_fields() -> None:
    with pytest.raises(ValueError):
        _badge(" ", 1, 10)
    with pytest.raises(TypeError):
        BadgeConfiguration(
            id="x",
            age_group_id="6-9",
            compass_axis_id="Courage",
            tier="gold",
            tier_order="1",  # type: ignore[arg-type]
            title="Gold",
            required_score=1,
        )


def test_engine_requires_default_age_group() -> None:
    with pytest.raises(ValueError):
        BadgeAwardingEngine(
            InMemoryBadgeConfigurationStore(),
            InMemoryUserBadgeStore(UnitOfWork()),
            UnitOfWork(),
            default_age_group="  ",
            clock=lambda: datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
