import pytest

from storycompass.compass import apply_compass_change, get_axis_score, snapshot
from storycompass.scene_graph import CompassChange
from storycompass.session import GameSession


def _session(**totals: float) -> GameSession:
    return GameSession(
        scenario_id="S1", account_id="acc", profile_id="p", compass_totals=dict(totals)
    )


def test_get_axis_score_defaults_to_zero() -> None:
    session = _session(Courage=5.0)

    assert get_axis_score(session, "Courage") == 5.0
    assert get_axis_score(session, "Wisdom") == 0.0


def test_snapshot_is_read_only_copy() -> None:
    session = _session(Courage=5.0)

    view = snapshot(session)
    session.compass_totals["Courage"] = 7.0

    assert view == {"Courage": 5.0}
    with pytest.raises(TypeError):
        view["Courage"] = 1.0  # type: ignore[index]


def test_apply_compass_change_creates_and_accumulates() -> None:
    totals: dict[str, float] = {}

    assert apply_compass_change(totals, CompassChange(axis="Courage", delta=2)) == 2.0
    assert apply_compass_change(
        totals, CompassChange(axis="Courage", delta=3, direction="negative")
    ) == -3.0
    assert apply_compass_change(totals, None) is None
    assert totals == {"Courage": -1.0}
