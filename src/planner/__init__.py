from .errors import (
    ConfigurationError,
    GenerationError,
    InvalidRequestError,
    ParseError,
    SecurityRejection,
    UpstreamError,
)
from .generator import ActivityGenerator
from .model_client import GeminiClient
from .preferences import PreferenceParser, analyze_preferences
from .prompt import build_prompt
from .reconciler import (
    RepairPolicy,
    ScheduleReconciler,
    parse_activities_from_response,
    process_activities,
)

__all__ = [
    "ActivityGenerator",
    "ConfigurationError",
    "GeminiClient",
    "GenerationError",
    "InvalidRequestError",
    "ParseError",
    "PreferenceParser",
    "RepairPolicy",
    "ScheduleReconciler",
    "SecurityRejection",
    "UpstreamError",
    "analyze_preferences",
    "build_prompt",
    "parse_activities_from_response",
    "process_activities",
]
