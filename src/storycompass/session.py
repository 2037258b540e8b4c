"""Game session data model and its status state machine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping

from .errors import InvalidSessionOperationError


class SessionStatus(str, Enum):
    """Lifecycle of a game session. ``COMPLETED`` is terminal."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is SessionStatus.COMPLETED


class SessionEvent(str, Enum):
    """Events that drive :func:`transition`."""

    START = "start"
    CHOOSE = "choose"
    ADVANCE = "advance"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"


_TRANSITIONS: Mapping[tuple[SessionStatus, SessionEvent], SessionStatus] = (
    MappingProxyType(
        {
            (SessionStatus.NOT_STARTED, SessionEvent.START): SessionStatus.IN_PROGRESS,
            (SessionStatus.IN_PROGRESS, SessionEvent.CHOOSE): SessionStatus.IN_PROGRESS,
            (SessionStatus.IN_PROGRESS, SessionEvent.ADVANCE): SessionStatus.IN_PROGRESS,
            (SessionStatus.IN_PROGRESS, SessionEvent.PAUSE): SessionStatus.PAUSED,
            (SessionStatus.PAUSED, SessionEvent.RESUME): SessionStatus.IN_PROGRESS,
            (SessionStatus.IN_PROGRESS, SessionEvent.COMPLETE): SessionStatus.COMPLETED,
            (SessionStatus.PAUSED, SessionEvent.COMPLETE): SessionStatus.COMPLETED,
        }
    )
)


def transition(
    status: SessionStatus,
    event: SessionEvent,
    *,
    session_id: str | None = None,
) -> SessionStatus:
    """Return the status reached by applying ``event`` to ``status``.

    This is the only place that decides which status changes are legal; the
    session engine asks it before touching any session field.

    Raises:
        InvalidSessionOperationError: If ``event`` is not accepted in ``status``.
    """

    try:
        return _TRANSITIONS[(status, event)]
    except KeyError:
        if status.is_terminal:
            message = f"Session is already {status.value}; no further {event.value} is allowed"
        else:
            message = f"Cannot {event.value} a session with status {status.value}"
        raise InvalidSessionOperationError(message, session_id=session_id) from None


def allowed_events(status: SessionStatus) -> tuple[SessionEvent, ...]:
    """Return the events accepted while in ``status``."""

    return tuple(event for (source, event) in _TRANSITIONS if source is status)


@dataclass(frozen=True)
class SessionChoice:
    """A single choice recorded in a session's history."""

    scene_id: str
    scene_title: str
    choice_text: str
    next_scene_id: str
    chosen_at: datetime
    compass_axis: str | None = None
    compass_delta: float | None = None


@dataclass(frozen=True)
class EchoRecord:
    """Entry in a session's echo history.

    ``revealed`` distinguishes echo reveals surfaced on entering a scene from
    echo logs recorded by the branch a player chose.
    """

    echo_type: str
    scene_id: str
    recorded_at: datetime
    description: str = ""
    strength: float | None = None
    revealed: bool = False


def _new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class GameSession:
    """A single player's traversal of a scenario.

    Sessions are mutated only by :class:`~storycompass.session_engine.GameSessionEngine`
    and never after reaching :attr:`SessionStatus.COMPLETED`.
    """

    scenario_id: str
    account_id: str
    profile_id: str
    id: str = field(default_factory=_new_session_id)
    status: SessionStatus = SessionStatus.NOT_STARTED
    current_scene_id: str = ""
    choice_count: int = 0
    compass_totals: Dict[str, float] = field(default_factory=dict)
    choice_history: List[SessionChoice] = field(default_factory=list)
    echo_history: List[EchoRecord] = field(default_factory=list)
    player_names: List[str] = field(default_factory=list)
    target_age_group: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    elapsed_time: timedelta = field(default_factory=timedelta)
    total_paused: timedelta = field(default_factory=timedelta)
    is_paused: bool = False
    paused_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status.is_terminal

    def active_elapsed(self, now: datetime) -> timedelta:
        """Return the active play time up to ``now``, excluding every pause.

        Once the session is completed the recorded end time is used instead of
        ``now``.
        """

        if self.start_time is None:
            return timedelta()

        reference = self.end_time if self.end_time is not None else now
        paused = self.total_paused
        if self.is_paused and self.paused_at is not None and self.end_time is None:
            paused += reference - self.paused_at

        elapsed = (reference - self.start_time) - paused
        return max(elapsed, timedelta())


__all__ = [
    "SessionStatus",
    "SessionEvent",
    "transition",
    "allowed_events",
    "SessionChoice",
    "EchoRecord",
    "GameSession",
]
