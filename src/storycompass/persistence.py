"""JSON persistence for game sessions."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from .errors import SessionConflictError
from .repositories import GameSessionStore, UnitOfWork
from .session import EchoRecord, GameSession, SessionChoice, SessionStatus


def _datetime_to_payload(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _datetime_from_payload(value: object, *, field_name: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Invalid session payload: {field_name} must be a string")
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(
            f"Invalid session payload: {field_name} is not an ISO timestamp"
        ) from exc


def _require_datetime(value: object, *, field_name: str) -> datetime:
    parsed = _datetime_from_payload(value, field_name=field_name)
    if parsed is None:
        raise ValueError(f"Invalid session payload: missing {field_name}")
    return parsed


def _sequence(payload: Mapping[str, Any], key: str) -> Iterable[Any]:
    value = payload.get(key, [])
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise ValueError(f"Invalid session payload: {key} must be a sequence")
    return value


def session_to_payload(session: GameSession) -> Dict[str, object]:
    """Return a JSON-serialisable representation of ``session``."""

    return {
        "id": session.id,
        "scenario_id": session.scenario_id,
        "account_id": session.account_id,
        "profile_id": session.profile_id,
        "status": session.status.value,
        "current_scene_id": session.current_scene_id,
        "choice_count": session.choice_count,
        "compass_totals": dict(session.compass_totals),
        "choice_history": [
            {
                "scene_id": choice.scene_id,
                "scene_title": choice.scene_title,
                "choice_text": choice.choice_text,
                "next_scene_id": choice.next_scene_id,
                "chosen_at": _datetime_to_payload(choice.chosen_at),
                "compass_axis": choice.compass_axis,
                "compass_delta": choice.compass_delta,
            }
            for choice in session.choice_history
        ],
        "echo_history": [
            {
                "echo_type": echo.echo_type,
                "scene_id": echo.scene_id,
                "recorded_at": _datetime_to_payload(echo.recorded_at),
                "description": echo.description,
                "strength": echo.strength,
                "revealed": echo.revealed,
            }
            for echo in session.echo_history
        ],
        "player_names": list(session.player_names),
        "target_age_group": session.target_age_group,
        "start_time": _datetime_to_payload(session.start_time),
        "end_time": _datetime_to_payload(session.end_time),
        "elapsed_seconds": session.elapsed_time.total_seconds(),
        "total_paused_seconds": session.total_paused.total_seconds(),
        "is_paused": session.is_paused,
        "paused_at": _datetime_to_payload(session.paused_at),
    }


def session_from_payload(payload: Mapping[str, Any]) -> GameSession:
    """Build a :class:`GameSession` from its stored payload representation."""

    if not isinstance(payload, Mapping):
        raise ValueError("Invalid session payload: expected an object")

    for key in ("id", "scenario_id", "account_id", "profile_id", "status"):
        if not isinstance(payload.get(key), str):
            raise ValueError(f"Invalid session payload: missing {key}")

    try:
        status = SessionStatus(payload["status"])
    except ValueError as exc:
        raise ValueError(
            f"Invalid session payload: unknown status {payload['status']!r}"
        ) from exc

    totals = payload.get("compass_totals") or {}
    if not isinstance(totals, Mapping):
        raise ValueError("Invalid session payload: compass_totals must be an object")

    choices: List[SessionChoice] = []
    for entry in _sequence(payload, "choice_history"):
        if not isinstance(entry, Mapping):
            raise ValueError("Invalid session payload: choice entries must be objects")
        delta = entry.get("compass_delta")
        choices.append(
            SessionChoice(
                scene_id=str(entry.get("scene_id", "")),
                scene_title=str(entry.get("scene_title", "")),
                choice_text=str(entry.get("choice_text", "")),
                next_scene_id=str(entry.get("next_scene_id", "")),
                chosen_at=_require_datetime(entry.get("chosen_at"), field_name="chosen_at"),
                compass_axis=entry.get("compass_axis"),
                compass_delta=float(delta) if delta is not None else None,
            )
        )

    echoes: List[EchoRecord] = []
    for entry in _sequence(payload, "echo_history"):
        if not isinstance(entry, Mapping):
            raise ValueError("Invalid session payload: echo entries must be objects")
        strength = entry.get("strength")
        echoes.append(
            EchoRecord(
                echo_type=str(entry.get("echo_type", "")),
                scene_id=str(entry.get("scene_id", "")),
                recorded_at=_require_datetime(
                    entry.get("recorded_at"), field_name="recorded_at"
                ),
                description=str(entry.get("description", "")),
                strength=float(strength) if strength is not None else None,
                revealed=bool(entry.get("revealed", False)),
            )
        )

    return GameSession(
        id=payload["id"],
        scenario_id=payload["scenario_id"],
        account_id=payload["account_id"],
        profile_id=payload["profile_id"],
        status=status,
        current_scene_id=str(payload.get("current_scene_id", "")),
        choice_count=int(payload.get("choice_count", 0)),
        compass_totals={str(axis): float(value) for axis, value in totals.items()},
        choice_history=choices,
        echo_history=echoes,
        player_names=[str(name) for name in _sequence(payload, "player_names")],
        target_age_group=payload.get("target_age_group"),
        start_time=_datetime_from_payload(payload.get("start_time"), field_name="start_time"),
        end_time=_datetime_from_payload(payload.get("end_time"), field_name="end_time"),
        elapsed_time=timedelta(seconds=float(payload.get("elapsed_seconds", 0.0))),
        total_paused=timedelta(seconds=float(payload.get("total_paused_seconds", 0.0))),
        is_paused=bool(payload.get("is_paused", False)),
        paused_at=_datetime_from_payload(payload.get("paused_at"), field_name="paused_at"),
    )


class FileGameSessionStore(GameSessionStore):
    """Persist game sessions as JSON files on disk."""

    def __init__(self, storage_dir: Path, unit_of_work: UnitOfWork) -> None:
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._unit_of_work = unit_of_work

    def get_by_id(self, session_id: str) -> GameSession | None:
        session_file = self._session_path(session_id)
        if not session_file.exists():
            return None
        payload = json.loads(session_file.read_text(encoding="utf-8"))
        return session_from_payload(payload)

    def save(self, session: GameSession, *, expected_scene_id: str | None = None) -> None:
        session_file = self._session_path(session.id)
        content = json.dumps(session_to_payload(session), indent=2)

        def check() -> None:
            if expected_scene_id is None:
                return
            stored = self.get_by_id(session.id)
            current = stored.current_scene_id if stored is not None else None
            if current != expected_scene_id:
                raise SessionConflictError(
                    f"Session '{session.id}' is no longer at scene '{expected_scene_id}'",
                    session_id=session.id,
                )

        def apply() -> None:
            session_file.write_text(content, encoding="utf-8")

        self._unit_of_work.stage(apply, check=check)

    def list_sessions(self) -> List[str]:
        return sorted(
            session_path.stem
            for session_path in self.storage_dir.glob("*.json")
            if session_path.is_file()
        )

    def _session_path(self, session_id: str) -> Path:
        validated = _validate_session_id(session_id)
        return self.storage_dir / f"{validated}.json"


def _validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str):
        raise TypeError("session_id must be a string")
    stripped = session_id.strip()
    if not stripped:
        raise ValueError("session_id must be a non-empty string")
    return stripped


__all__ = ["session_to_payload", "session_from_payload", "FileGameSessionStore"]
