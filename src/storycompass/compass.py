"""Read model over a session's per-axis compass totals."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, MutableMapping

from .scene_graph import CompassChange
from .session import GameSession


def get_axis_score(session: GameSession, axis: str) -> float:
    """Return the accumulated score for ``axis`` or ``0.0`` when untouched."""

    return float(session.compass_totals.get(axis, 0.0))


def snapshot(session: GameSession) -> Mapping[str, float]:
    """Return a read-only copy of the session's compass totals."""

    return MappingProxyType(dict(session.compass_totals))


def apply_compass_change(
    totals: MutableMapping[str, float], change: CompassChange | None
) -> float | None:
    """Add ``change`` to ``totals`` and return the applied delta.

    The axis entry is created on first use. ``None`` is returned, and nothing
    is modified, when no change is supplied.
    """

    if change is None:
        return None

    delta = change.signed_delta
    totals[change.axis] = totals.get(change.axis, 0.0) + delta
    return delta


__all__ = ["get_axis_score", "snapshot", "apply_compass_change"]
