"""Core package for the storycompass narrative engine."""

from .badges import (
    AxisBadgeProgress,
    BadgeAwardingEngine,
    BadgeConfiguration,
    BadgeTierProgress,
    UserBadge,
    UserProfile,
    check_tier_ordering,
)
from .calibration import (
    DEFAULT_MAX_TRAVERSAL_DEPTH,
    BadgeThresholdCalibrator,
    CompassAxisScoreResult,
    ContentBundle,
    calculate_percentile,
    calculate_percentiles,
)
from .compass import get_axis_score, snapshot
from .errors import (
    BadgeConfigurationError,
    InvalidSessionOperationError,
    ResourceNotFoundError,
    ScenarioValidationError,
    SessionConflictError,
    StoryCompassError,
)
from .persistence import FileGameSessionStore, session_from_payload, session_to_payload
from .repositories import (
    BadgeConfigurationLookup,
    ContentBundleLookup,
    GameSessionStore,
    InMemoryBadgeConfigurationStore,
    InMemoryContentBundleLookup,
    InMemoryGameSessionStore,
    InMemoryProfileLookup,
    InMemoryScenarioLookup,
    InMemoryUserBadgeStore,
    ProfileLookup,
    ScenarioLookup,
    UnitOfWork,
    UserBadgeStore,
)
from .scenario_loader import (
    load_badge_configurations_from_file,
    load_scenario_from_file,
    load_scenario_from_mapping,
)
from .scene_graph import (
    ENDING_MARKER,
    Branch,
    CompassChange,
    EchoLog,
    EchoReveal,
    Scenario,
    Scene,
    SceneType,
)
from .session import GameSession, SessionStatus
from .services import StoryCompassServices, build_services
from .session_engine import ChoiceOutcome, GameSessionEngine, SessionFinalizer
from .settings import StoryCompassSettings
from .validator import (
    ScenarioReachabilityReport,
    ScenarioValidationResult,
    compute_scene_reachability,
    validate_scenario,
)

__all__ = [
    "ENDING_MARKER",
    "SceneType",
    "CompassChange",
    "EchoLog",
    "EchoReveal",
    "Branch",
    "Scene",
    "Scenario",
    "load_scenario_from_file",
    "load_scenario_from_mapping",
    "load_badge_configurations_from_file",
    "ScenarioValidationResult",
    "ScenarioReachabilityReport",
    "validate_scenario",
    "compute_scene_reachability",
    "GameSession",
    "SessionStatus",
    "GameSessionEngine",
    "ChoiceOutcome",
    "SessionFinalizer",
    "get_axis_score",
    "snapshot",
    "UserProfile",
    "BadgeConfiguration",
    "UserBadge",
    "BadgeTierProgress",
    "AxisBadgeProgress",
    "BadgeAwardingEngine",
    "check_tier_ordering",
    "ContentBundle",
    "CompassAxisScoreResult",
    "BadgeThresholdCalibrator",
    "DEFAULT_MAX_TRAVERSAL_DEPTH",
    "calculate_percentile",
    "calculate_percentiles",
    "UnitOfWork",
    "ScenarioLookup",
    "GameSessionStore",
    "BadgeConfigurationLookup",
    "UserBadgeStore",
    "ProfileLookup",
    "ContentBundleLookup",
    "InMemoryScenarioLookup",
    "InMemoryGameSessionStore",
    "InMemoryBadgeConfigurationStore",
    "InMemoryUserBadgeStore",
    "InMemoryProfileLookup",
    "InMemoryContentBundleLookup",
    "FileGameSessionStore",
    "session_to_payload",
    "session_from_payload",
    "StoryCompassSettings",
    "StoryCompassServices",
    "build_services",
    "StoryCompassError",
    "ResourceNotFoundError",
    "InvalidSessionOperationError",
    "SessionConflictError",
    "ScenarioValidationError",
    "BadgeConfigurationError",
]
