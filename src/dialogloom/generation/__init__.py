"""Generation lifecycle: dispatch, node status, bulk orchestration."""

from dialogloom.generation.dispatcher import DispatchStats, GenerateMode, GenerationDispatcher
from dialogloom.generation.errors import (
    ErrorKind,
    GenerationError,
    GenerationFailure,
    classify_error,
)
from dialogloom.generation.events import (
    BulkCompleted,
    BulkStarted,
    EventChannel,
    FocusRequested,
    LifecycleEvent,
    LoggingProgressReporter,
    NullProgressReporter,
    ProgressReporter,
)
from dialogloom.generation.orchestrator import (
    BulkRunResult,
    NodeGenerationResult,
    RegenerationOrchestrator,
)
from dialogloom.generation.registry import NodeTypeConfig, NodeTypeRegistry
from dialogloom.generation.state import (
    InvalidTransitionError,
    NodeProcessingState,
    RegenerationState,
)

__all__ = [
    "BulkCompleted",
    "BulkRunResult",
    "BulkStarted",
    "DispatchStats",
    "ErrorKind",
    "EventChannel",
    "FocusRequested",
    "GenerateMode",
    "GenerationDispatcher",
    "GenerationError",
    "GenerationFailure",
    "InvalidTransitionError",
    "LifecycleEvent",
    "LoggingProgressReporter",
    "NodeGenerationResult",
    "NodeProcessingState",
    "NodeTypeConfig",
    "NodeTypeRegistry",
    "NullProgressReporter",
    "ProgressReporter",
    "RegenerationOrchestrator",
    "RegenerationState",
    "classify_error",
]
