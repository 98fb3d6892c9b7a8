"""Session aggregate, state machine and identity resolution."""

from .identity import IdentityResolver, Resolution
from .machine import Outcome, apply_event
from .models import (
    PermissionContext,
    SessionPhase,
    SessionState,
    SubagentState,
    TaskDescriptor,
    ToolInFlight,
    ToolTracker,
)

__all__ = [
    "IdentityResolver",
    "Outcome",
    "PermissionContext",
    "Resolution",
    "SessionPhase",
    "SessionState",
    "SubagentState",
    "TaskDescriptor",
    "ToolInFlight",
    "ToolTracker",
    "apply_event",
]
