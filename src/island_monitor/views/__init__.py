"""Read-side views over session snapshots. Nothing here mutates state."""

from .activity import (
    enrich_message,
    format_tool_name,
    last_tool_summary,
    pending_context,
    project_prefix,
    status_line,
    tool_context,
)
from .flags import (
    has_pending_permission,
    has_recent_ready,
    is_any_processing,
    phase_priority,
    sort_for_display,
    summary_text,
)

__all__ = [
    "enrich_message",
    "format_tool_name",
    "has_pending_permission",
    "has_recent_ready",
    "is_any_processing",
    "last_tool_summary",
    "pending_context",
    "phase_priority",
    "project_prefix",
    "sort_for_display",
    "status_line",
    "summary_text",
    "tool_context",
]
