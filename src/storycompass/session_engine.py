"""Operations that move a game session through a scenario."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Iterable

from .compass import apply_compass_change
from .errors import (
    InvalidSessionOperationError,
    ResourceNotFoundError,
    ScenarioValidationError,
)
from .scene_graph import Branch, EchoReveal, Scenario, Scene
from .session import (
    EchoRecord,
    GameSession,
    SessionChoice,
    SessionEvent,
    SessionStatus,
    transition,
)
from .validator import ScenarioValidationResult, validate_scenario

if TYPE_CHECKING:  # pragma: no cover - imported only for type checking
    from .badges import BadgeAwardingEngine, UserBadge
    from .repositories import GameSessionStore, ProfileLookup, ScenarioLookup, UnitOfWork

logger = logging.getLogger(__name__)

Validator = Callable[[Scenario], ScenarioValidationResult]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChoiceOutcome:
    """Result of :meth:`GameSessionEngine.make_choice` and ``advance``.

    ``branch`` is ``None`` for narrative advances. ``echo_reveals`` lists the
    reveals triggered by the scene the session moved to.
    """

    session: GameSession
    branch: Branch | None
    completed: bool
    echo_reveals: tuple[EchoReveal, ...] = ()


class GameSessionEngine:
    """Drive sessions through scenarios.

    Every operation loads a copy of the session, checks the requested
    transition and all its preconditions, and only then mutates the copy,
    stages it with the session store and commits the unit of work. A rejected
    operation therefore leaves persisted state untouched. ``sessions`` must
    stage its writes on ``unit_of_work``.
    """

    def __init__(
        self,
        scenarios: ScenarioLookup,
        sessions: GameSessionStore,
        unit_of_work: UnitOfWork,
        *,
        clock: Callable[[], datetime] | None = None,
        validator: Validator = validate_scenario,
    ) -> None:
        self._scenarios = scenarios
        self._sessions = sessions
        self._unit_of_work = unit_of_work
        self._clock = clock or _utcnow
        self._validator = validator

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_session(self, session_id: str) -> GameSession:
        """Return the stored session.

        Raises:
            ResourceNotFoundError: If the session does not exist.
        """

        session = self._sessions.get_by_id(session_id)
        if session is None:
            raise ResourceNotFoundError("Session", session_id)
        return session

    def available_choices(self, session_id: str) -> tuple[str, ...]:
        """Return the choice labels offered by the session's current scene.

        Completed or paused sessions offer no choices.
        """

        session = self.get_session(session_id)
        if session.status is not SessionStatus.IN_PROGRESS:
            return ()
        scenario = self._require_scenario(session.scenario_id)
        scene = scenario.find_scene(session.current_scene_id)
        if scene is None:
            return ()
        return tuple(branch.choice for branch in scene.branches)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def start_session(
        self,
        scenario_id: str,
        account_id: str,
        profile_id: str,
        *,
        player_names: Iterable[str] = (),
        target_age_group: str | None = None,
    ) -> GameSession:
        """Create a session positioned on the scenario's entry scene.

        Unreachable-scene warnings from the validator do not block the start.

        Raises:
            ResourceNotFoundError: If the scenario does not exist.
            ScenarioValidationError: If the scenario fails validation.
        """

        scenario = self._require_scenario(scenario_id)
        result = self._validator(scenario)
        if not result.is_valid:
            raise ScenarioValidationError(scenario.id, result.errors)

        entry = scenario.entry_scene_id
        if entry is None:
            raise ScenarioValidationError(
                scenario.id, ("Scenario must have at least one scene",)
            )

        now = self._clock()
        session = GameSession(
            scenario_id=scenario.id,
            account_id=account_id,
            profile_id=profile_id,
            player_names=[name for name in player_names],
            target_age_group=target_age_group,
        )
        session.status = transition(
            session.status, SessionEvent.START, session_id=session.id
        )
        session.current_scene_id = entry
        session.start_time = now
        self._record_reveals(session, scenario, entry, now)

        self._sessions.save(session)
        self._unit_of_work.commit()
        logger.info(
            "Started session %s for scenario %s (profile %s)",
            session.id,
            scenario.id,
            profile_id,
        )
        return session

    def make_choice(self, session_id: str, scene_id: str, choice: str) -> ChoiceOutcome:
        """Apply the branch labelled ``choice`` in ``scene_id``.

        Raises:
            ResourceNotFoundError: If the session or its scenario is missing.
            InvalidSessionOperationError: If the session is not in progress,
                ``scene_id`` is not the current scene, the choice does not
                exist or its target is not in the scenario.
            SessionConflictError: If the session moved on before the commit.
        """

        session = self.get_session(session_id)
        transition(session.status, SessionEvent.CHOOSE, session_id=session.id)
        scenario, scene = self._require_current_scene(session, scene_id)

        branch = scene.find_branch(choice)
        if branch is None:
            raise InvalidSessionOperationError(
                f"Scene '{scene.id}' has no choice '{choice}'", session_id=session.id
            )
        if not branch.is_ending and not scenario.has_scene(branch.next_scene_id):
            raise InvalidSessionOperationError(
                f"Choice '{choice}' leads to non-existent scene '{branch.next_scene_id}'",
                session_id=session.id,
            )

        now = self._clock()
        session.choice_count += 1
        applied = apply_compass_change(session.compass_totals, branch.compass_change)
        session.choice_history.append(
            SessionChoice(
                scene_id=scene.id,
                scene_title=scene.title,
                choice_text=branch.choice,
                next_scene_id=branch.next_scene_id,
                chosen_at=now,
                compass_axis=branch.compass_change.axis if branch.compass_change else None,
                compass_delta=applied,
            )
        )
        if branch.echo_log is not None:
            session.echo_history.append(
                EchoRecord(
                    echo_type=branch.echo_log.echo_type,
                    scene_id=scene.id,
                    recorded_at=now,
                    description=branch.echo_log.description,
                    strength=branch.echo_log.strength,
                )
            )

        reveals: tuple[EchoReveal, ...] = ()
        completed = branch.is_ending
        if not branch.is_ending:
            session.current_scene_id = branch.next_scene_id
            reveals = self._record_reveals(session, scenario, branch.next_scene_id, now)
            completed = scenario.get_scene(branch.next_scene_id).is_terminal

        self._finish_step(session, now, completed=completed)
        self._sessions.save(session, expected_scene_id=scene.id)
        self._unit_of_work.commit()

        logger.info(
            "Session %s chose '%s' in scene %s -> %s",
            session.id,
            branch.choice,
            scene.id,
            branch.next_scene_id or "<ending>",
        )
        if completed:
            logger.info("Session %s completed", session.id)
        return ChoiceOutcome(
            session=session, branch=branch, completed=completed, echo_reveals=reveals
        )

    def advance(self, session_id: str, scene_id: str) -> ChoiceOutcome:
        """Follow the ``next_scene_id`` of a scene that offers no choices.

        Raises:
            InvalidSessionOperationError: If the session is not in progress,
                ``scene_id`` is not the current scene, the scene requires a
                choice or it has no continuation.
        """

        session = self.get_session(session_id)
        transition(session.status, SessionEvent.ADVANCE, session_id=session.id)
        scenario, scene = self._require_current_scene(session, scene_id)

        if scene.branches:
            raise InvalidSessionOperationError(
                f"Scene '{scene.id}' requires a choice", session_id=session.id
            )
        target = scene.next_scene_id
        if not target:
            raise InvalidSessionOperationError(
                f"Scene '{scene.id}' has no next scene", session_id=session.id
            )
        if not scenario.has_scene(target):
            raise InvalidSessionOperationError(
                f"Scene '{scene.id}' references non-existent scene '{target}'",
                session_id=session.id,
            )

        now = self._clock()
        session.current_scene_id = target
        reveals = self._record_reveals(session, scenario, target, now)
        completed = scenario.get_scene(target).is_terminal

        self._finish_step(session, now, completed=completed)
        self._sessions.save(session, expected_scene_id=scene.id)
        self._unit_of_work.commit()

        logger.info("Session %s advanced from scene %s to %s", session.id, scene.id, target)
        if completed:
            logger.info("Session %s completed", session.id)
        return ChoiceOutcome(
            session=session, branch=None, completed=completed, echo_reveals=reveals
        )

    def pause(self, session_id: str) -> GameSession:
        """Pause an in-progress session."""

        session = self.get_session(session_id)
        session.status = transition(session.status, SessionEvent.PAUSE, session_id=session.id)

        now = self._clock()
        session.is_paused = True
        session.paused_at = now
        session.elapsed_time = session.active_elapsed(now)

        self._sessions.save(session, expected_scene_id=session.current_scene_id)
        self._unit_of_work.commit()
        logger.info("Paused session %s", session.id)
        return session

    def resume(self, session_id: str) -> GameSession:
        """Resume a paused session, adding the pause to ``total_paused``."""

        session = self.get_session(session_id)
        session.status = transition(session.status, SessionEvent.RESUME, session_id=session.id)

        now = self._clock()
        self._close_pause(session, now)
        session.elapsed_time = session.active_elapsed(now)

        self._sessions.save(session, expected_scene_id=session.current_scene_id)
        self._unit_of_work.commit()
        logger.info("Resumed session %s", session.id)
        return session

    def end_session(self, session_id: str) -> GameSession:
        """Complete an in-progress or paused session explicitly."""

        session = self.get_session(session_id)
        session.status = transition(
            session.status, SessionEvent.COMPLETE, session_id=session.id
        )

        now = self._clock()
        self._close_pause(session, now)
        session.end_time = now
        session.elapsed_time = session.active_elapsed(now)

        self._sessions.save(session, expected_scene_id=session.current_scene_id)
        self._unit_of_work.commit()
        logger.info("Ended session %s", session.id)
        return session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_scenario(self, scenario_id: str) -> Scenario:
        scenario = self._scenarios.get_by_id(scenario_id)
        if scenario is None:
            raise ResourceNotFoundError("Scenario", scenario_id)
        return scenario

    def _require_current_scene(
        self, session: GameSession, scene_id: str
    ) -> tuple[Scenario, Scene]:
        if scene_id != session.current_scene_id:
            raise InvalidSessionOperationError(
                f"Scene '{scene_id}' is not the current scene "
                f"'{session.current_scene_id}' of session '{session.id}'",
                session_id=session.id,
            )
        scenario = self._require_scenario(session.scenario_id)
        scene = scenario.find_scene(scene_id)
        if scene is None:
            raise InvalidSessionOperationError(
                f"Scene '{scene_id}' does not exist in scenario '{scenario.id}'",
                session_id=session.id,
            )
        return scenario, scene

    def _record_reveals(
        self, session: GameSession, scenario: Scenario, scene_id: str, now: datetime
    ) -> tuple[EchoReveal, ...]:
        reveals = scenario.reveals_for(scene_id)
        for reveal in reveals:
            session.echo_history.append(
                EchoRecord(
                    echo_type=reveal.echo_type,
                    scene_id=scene_id,
                    recorded_at=now,
                    description=reveal.content,
                    strength=reveal.min_strength,
                    revealed=True,
                )
            )
        return reveals

    def _finish_step(self, session: GameSession, now: datetime, *, completed: bool) -> None:
        if completed:
            session.status = transition(
                session.status, SessionEvent.COMPLETE, session_id=session.id
            )
            session.end_time = now
        session.elapsed_time = session.active_elapsed(now)

    @staticmethod
    def _close_pause(session: GameSession, now: datetime) -> None:
        if session.is_paused and session.paused_at is not None:
            session.total_paused += now - session.paused_at
        session.is_paused = False
        session.paused_at = None


class SessionFinalizer:
    """Award badges for a completed session.

    The session write and the new badges are committed together, so neither
    can be persisted without the other. ``sessions`` and the awarding engine
    must share ``unit_of_work``.
    """

    def __init__(
        self,
        sessions: GameSessionStore,
        profiles: ProfileLookup,
        awarding_engine: BadgeAwardingEngine,
        unit_of_work: UnitOfWork,
    ) -> None:
        self._sessions = sessions
        self._profiles = profiles
        self._awarding_engine = awarding_engine
        self._unit_of_work = unit_of_work

    def finalize(self, session_id: str) -> list[UserBadge]:
        """Award badges from the session's compass totals and return the new ones.

        Raises:
            ResourceNotFoundError: If the session does not exist.
            InvalidSessionOperationError: If the session is not completed.
        """

        session = self._sessions.get_by_id(session_id)
        if session is None:
            raise ResourceNotFoundError("Session", session_id)
        if session.status is not SessionStatus.COMPLETED:
            raise InvalidSessionOperationError(
                f"Session '{session.id}' must be completed before it is finalized",
                session_id=session.id,
            )

        profile = self._profiles.get_by_id(session.profile_id)
        if profile is None:
            logger.warning(
                "Profile %s for session %s not found; no badges awarded",
                session.profile_id,
                session.id,
            )
            return []

        try:
            badges = self._awarding_engine.award_badges(
                profile,
                session.compass_totals,
                session_id=session.id,
                scenario_id=session.scenario_id,
                commit=False,
            )
            self._sessions.save(session, expected_scene_id=session.current_scene_id)
            self._unit_of_work.commit()
        except Exception:
            self._unit_of_work.rollback()
            raise

        logger.info(
            "Finalized session %s: %d new badges for profile %s",
            session.id,
            len(badges),
            profile.id,
        )
        return badges


__all__ = ["ChoiceOutcome", "GameSessionEngine", "SessionFinalizer"]
