"""Configuration helpers for running the storycompass core."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .badges import DEFAULT_AGE_GROUP
from .calibration import DEFAULT_MAX_TRAVERSAL_DEPTH

DEFAULT_PERCENTILES: tuple[float, ...] = (50.0, 75.0, 90.0)


def _normalise_path(value: str | None) -> Path | None:
    if value is None:
        return None

    trimmed = value.strip()
    if not trimmed:
        return None

    return Path(trimmed).expanduser()


def _normalise_string(value: str | None, *, default: str) -> str:
    if value is None:
        return default

    trimmed = value.strip()
    return trimmed or default


def _parse_positive_int(value: str | None, *, name: str, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a positive integer.") from exc
    if parsed < 1:
        raise ValueError(f"{name} must be greater than zero.")
    return parsed


def _parse_percentiles(
    value: str | None, *, name: str, default: tuple[float, ...]
) -> tuple[float, ...]:
    if value is None or not value.strip():
        return default

    percentiles: list[float] = []
    for part in value.split(","):
        trimmed = part.strip()
        if not trimmed:
            continue
        try:
            parsed = float(trimmed)
        except ValueError as exc:
            raise ValueError(f"{name} must be a comma separated list of numbers.") from exc
        if math.isnan(parsed) or parsed < 0 or parsed > 100:
            raise ValueError(f"{name} values must be between 0 and 100.")
        percentiles.append(parsed)

    if not percentiles:
        raise ValueError(f"{name} must list at least one percentile.")
    return tuple(percentiles)


@dataclass(frozen=True)
class StoryCompassSettings:
    """Deployment settings for the storycompass core.

    Values are read from environment variables so stores and the calibrator
    can be configured without modifying application code. Paths are expanded
    to support ``~`` prefixes while empty strings are treated as if the
    variable was unset.
    """

    scenario_root: Path | None = None
    session_root: Path | None = None
    default_age_group: str = DEFAULT_AGE_GROUP
    calibration_max_depth: int = DEFAULT_MAX_TRAVERSAL_DEPTH
    default_percentiles: tuple[float, ...] = DEFAULT_PERCENTILES

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "StoryCompassSettings":
        """Return settings populated from ``environ``.

        Args:
            environ: Optional mapping of environment variables. When omitted,
                :data:`os.environ` is used.
        """

        source = environ if environ is not None else os.environ

        return cls(
            scenario_root=_normalise_path(source.get("STORYCOMPASS_SCENARIO_ROOT")),
            session_root=_normalise_path(source.get("STORYCOMPASS_SESSION_ROOT")),
            default_age_group=_normalise_string(
                source.get("STORYCOMPASS_DEFAULT_AGE_GROUP"),
                default=DEFAULT_AGE_GROUP,
            ),
            calibration_max_depth=_parse_positive_int(
                source.get("STORYCOMPASS_CALIBRATION_MAX_DEPTH"),
                name="STORYCOMPASS_CALIBRATION_MAX_DEPTH",
                default=DEFAULT_MAX_TRAVERSAL_DEPTH,
            ),
            default_percentiles=_parse_percentiles(
                source.get("STORYCOMPASS_DEFAULT_PERCENTILES"),
                name="STORYCOMPASS_DEFAULT_PERCENTILES",
                default=DEFAULT_PERCENTILES,
            ),
        )


__all__ = ["DEFAULT_PERCENTILES", "StoryCompassSettings"]
