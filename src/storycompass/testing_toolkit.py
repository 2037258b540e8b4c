"""Helpers for driving game sessions during tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Sequence

from .repositories import InMemoryGameSessionStore, InMemoryScenarioLookup, UnitOfWork
from .scene_graph import Scenario
from .session import GameSession, SessionStatus
from .session_engine import ChoiceOutcome, GameSessionEngine


@dataclass(frozen=True)
class SessionDebugSnapshot:
    """Structured view of a session's internal state for debugging."""

    session_id: str
    status: SessionStatus
    current_scene_id: str
    choice_count: int
    compass_totals: tuple[tuple[str, float], ...]
    recent_choices: tuple[str, ...]
    recent_echoes: tuple[str, ...]


@dataclass(frozen=True)
class StepResult:
    """Outcome of a single scripted step.

    ``choice`` is ``None`` for steps that advanced a scene without choices.
    """

    choice: str | None
    outcome: ChoiceOutcome


@dataclass(frozen=True)
class InMemoryHarness:
    """A session engine wired to fresh in-memory stores."""

    engine: GameSessionEngine
    scenarios: InMemoryScenarioLookup
    sessions: InMemoryGameSessionStore
    unit_of_work: UnitOfWork


__all__ = [
    "SessionDebugSnapshot",
    "StepResult",
    "InMemoryHarness",
    "build_in_memory_engine",
    "debug_snapshot",
    "play_through",
]


def build_in_memory_engine(
    scenarios: Iterable[Scenario] = (),
    *,
    clock: Callable[[], datetime] | None = None,
) -> InMemoryHarness:
    """Return a :class:`GameSessionEngine` backed by in-memory stores."""

    unit_of_work = UnitOfWork()
    scenario_lookup = InMemoryScenarioLookup(scenarios)
    sessions = InMemoryGameSessionStore(unit_of_work)
    engine = GameSessionEngine(scenario_lookup, sessions, unit_of_work, clock=clock)
    return InMemoryHarness(
        engine=engine,
        scenarios=scenario_lookup,
        sessions=sessions,
        unit_of_work=unit_of_work,
    )


def debug_snapshot(
    session: GameSession,
    *,
    choice_limit: int = 5,
    echo_limit: int = 5,
) -> SessionDebugSnapshot:
    """Capture a deterministic snapshot of ``session`` for debugging.

    Compass totals are sorted by axis name to provide stable comparisons in
    assertions or golden snapshots.

    Args:
        session: The session to introspect.
        choice_limit: Maximum number of recent choices to include. Must be a
            non-negative integer.
        echo_limit: Maximum number of recent echo entries to include. Must be
            a non-negative integer.
    """

    if choice_limit < 0:
        raise ValueError("choice_limit must be non-negative")
    if echo_limit < 0:
        raise ValueError("echo_limit must be non-negative")

    choices = session.choice_history[-choice_limit:] if choice_limit else []
    echoes = session.echo_history[-echo_limit:] if echo_limit else []

    return SessionDebugSnapshot(
        session_id=session.id,
        status=session.status,
        current_scene_id=session.current_scene_id,
        choice_count=session.choice_count,
        compass_totals=tuple(sorted(session.compass_totals.items())),
        recent_choices=tuple(
            f"{choice.scene_id}: {choice.choice_text}" for choice in choices
        ),
        recent_echoes=tuple(
            f"{'reveal' if echo.revealed else 'log'}:{echo.echo_type}@{echo.scene_id}"
            for echo in echoes
        ),
    )


def play_through(
    engine: GameSessionEngine,
    session_id: str,
    choices: Iterable[str | None],
) -> Sequence[StepResult]:
    """Apply a series of choices to a session one step at a time.

    ``None`` advances a scene that offers no choices.
    """

    steps: list[StepResult] = []

    for raw_choice in choices:
        session = engine.get_session(session_id)
        if session.is_completed:
            raise RuntimeError(
                "No further choices can be processed: the session is completed."
            )

        if raw_choice is None:
            outcome = engine.advance(session_id, session.current_scene_id)
            steps.append(StepResult(choice=None, outcome=outcome))
            continue

        if not isinstance(raw_choice, str):
            raise TypeError("Choices must be strings or None when using play_through.")

        choice = raw_choice.strip()
        if not choice:
            raise ValueError("Choices must be non-empty strings after trimming whitespace.")

        available = engine.available_choices(session_id)
        if choice not in available:
            formatted = ", ".join(available) or "(none)"
            raise ValueError(
                f"Choice '{choice}' is not available. Choose from: {formatted}."
            )

        outcome = engine.make_choice(session_id, session.current_scene_id, choice)
        steps.append(StepResult(choice=choice, outcome=outcome))

    return tuple(steps)
