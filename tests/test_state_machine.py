from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from island_monitor.events import (
    CompactEnd,
    CompactStart,
    Message,
    PermissionRequest,
    PermissionResponse,
    SessionEnd,
    SessionStart,
    Stop,
    SubagentEnd,
    SubagentStart,
    ToolEnd,
    ToolStart,
    UserPromptSubmit,
)
from island_monitor.sessions import SessionPhase, SessionState, apply_event

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _session(**overrides) -> SessionState:
    values = dict(
        stable_id="stable-1",
        raw_session_id="sess-1",
        created_at=T0,
        last_seen_at=T0,
        phase_changed_at=T0,
        known_session_ids=["sess-1"],
    )
    values.update(overrides)
    return SessionState(**values)


def _at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def test_session_start_sets_pid_and_cwd() -> None:
    state = _session()
    outcome = apply_event(state, SessionStart(session_id="sess-1", pid=100, cwd="/work/alpha"), _at(1))

    assert outcome.applied
    assert state.phase is SessionPhase.IDLE
    assert state.pid == 100
    assert state.best_project_name == "alpha"
    assert state.last_seen_at == _at(1)


def test_prompt_moves_to_processing_and_stop_to_waiting_for_input() -> None:
    state = _session()
    apply_event(state, UserPromptSubmit(session_id="sess-1"), _at(1))
    assert state.phase is SessionPhase.PROCESSING

    apply_event(state, Stop(session_id="sess-1"), _at(2))
    assert state.phase is SessionPhase.WAITING_FOR_INPUT
    assert state.phase_changed_at == _at(2)

    apply_event(state, UserPromptSubmit(session_id="sess-1"), _at(3))
    assert state.phase is SessionPhase.PROCESSING


def test_approval_flow_scenario() -> None:
    state = _session()
    apply_event(state, SessionStart(session_id="sess-1", pid=100, cwd="/a"), _at(0))
    assert state.phase is SessionPhase.IDLE

    apply_event(
        state,
        ToolStart(session_id="sess-1", tool_name="Write", tool_input={"file_path": "/a/x.py"}, needs_approval=True),
        _at(1),
    )
    assert state.phase is SessionPhase.WAITING_FOR_APPROVAL
    assert state.active_permission is not None
    assert state.pending_tool_name == "Write"
    assert state.pending_tool_input == "file_path: /a/x.py"
    assert len(state.tool_tracker) == 0

    apply_event(state, PermissionResponse(session_id="sess-1", decision="approved"), _at(2))
    assert state.phase is SessionPhase.PROCESSING
    assert state.active_permission is None
    assert len(state.tool_tracker) == 1

    apply_event(state, ToolEnd(session_id="sess-1", tool_name="Write"), _at(3))
    assert len(state.tool_tracker) == 0
    assert state.last_tool_name == "Write"

    apply_event(state, Stop(session_id="sess-1"), _at(4))
    assert state.phase is SessionPhase.WAITING_FOR_INPUT


def test_denied_permission_returns_to_idle_without_tracking() -> None:
    state = _session()
    apply_event(
        state,
        ToolStart(session_id="sess-1", tool_use_id="tu-1", tool_name="Bash", needs_approval=True),
        _at(1),
    )
    apply_event(state, PermissionResponse(session_id="sess-1", tool_use_id="tu-1", decision="denied"), _at(2))

    assert state.phase is SessionPhase.IDLE
    assert state.pending_tool_name is None
    assert state.pending_tool_use_id is None
    assert len(state.tool_tracker) == 0


def test_denied_permission_keeps_processing_while_other_tools_run() -> None:
    state = _session()
    apply_event(state, ToolStart(session_id="sess-1", tool_use_id="tu-1", tool_name="Read"), _at(1))
    apply_event(
        state,
        PermissionRequest(session_id="sess-1", tool_use_id="tu-2", tool_name="Bash", tool_input={"command": "rm"}),
        _at(2),
    )
    assert state.phase is SessionPhase.WAITING_FOR_APPROVAL

    apply_event(state, PermissionResponse(session_id="sess-1", decision="denied"), _at(3))

    assert state.phase is SessionPhase.PROCESSING
    assert list(state.tool_tracker.in_progress) == ["tu-1"]


def test_mismatched_permission_response_is_ignored() -> None:
    state = _session()
    apply_event(state, PermissionRequest(session_id="sess-1", tool_use_id="tu-1", tool_name="Bash"), _at(1))

    outcome = apply_event(
        state, PermissionResponse(session_id="sess-1", tool_use_id="other", decision="approved"), _at(2)
    )

    assert outcome.applied
    assert outcome.notes
    assert state.phase is SessionPhase.WAITING_FOR_APPROVAL
    assert state.active_permission is not None


def test_tool_end_for_pending_tool_counts_as_approval() -> None:
    state = _session()
    apply_event(
        state,
        PermissionRequest(session_id="sess-1", tool_use_id="tu-1", tool_name="Edit", tool_input={"file_path": "/a/b.py"}),
        _at(1),
    )

    apply_event(state, ToolEnd(session_id="sess-1", tool_use_id="tu-1", tool_name="Edit"), _at(2))

    assert state.phase is SessionPhase.PROCESSING
    assert state.active_permission is None
    assert state.last_tool_name == "Edit"
    assert state.last_message == "file_path: /a/b.py"


def test_tool_tracker_follows_start_and_end_pairs() -> None:
    state = _session()
    apply_event(state, ToolStart(session_id="sess-1", tool_use_id="a", tool_name="Read"), _at(1))
    apply_event(state, ToolStart(session_id="sess-1", tool_use_id="b", tool_name="Grep"), _at(2))
    assert set(state.tool_tracker.in_progress) == {"a", "b"}
    assert state.phase is SessionPhase.PROCESSING

    apply_event(state, ToolEnd(session_id="sess-1", tool_use_id="a", message="read 10 lines"), _at(3))

    assert set(state.tool_tracker.in_progress) == {"b"}
    assert state.last_tool_name == "Read"
    assert state.last_message == "read 10 lines"
    assert state.phase is SessionPhase.PROCESSING


def test_unmatched_tool_end_is_tolerated() -> None:
    state = _session()
    outcome = apply_event(state, ToolEnd(session_id="sess-1", tool_use_id="ghost"), _at(1))

    assert outcome.applied
    assert outcome.notes
    assert state.phase is SessionPhase.IDLE
    assert state.last_tool_name is None
    assert state.last_seen_at == _at(1)


def test_late_tool_end_after_stop_keeps_turn_finished() -> None:
    state = _session()
    apply_event(state, SessionStart(session_id="sess-1", pid=100), _at(1))
    apply_event(state, UserPromptSubmit(session_id="sess-1"), _at(2))
    apply_event(state, Stop(session_id="sess-1"), _at(3))

    outcome = apply_event(
        state,
        ToolEnd(session_id="sess-1", tool_use_id="x", tool_name="Bash", message="command: ls"),
        _at(4),
    )

    assert outcome.applied
    assert state.phase is SessionPhase.WAITING_FOR_INPUT
    assert state.phase_changed_at == _at(3)
    assert state.last_tool_name == "Bash"


def test_stop_clears_stale_tools() -> None:
    state = _session()
    apply_event(state, ToolStart(session_id="sess-1", tool_use_id="a", tool_name="Bash"), _at(1))
    apply_event(state, SubagentStart(session_id="sess-1", task_id="t1"), _at(2))

    outcome = apply_event(state, Stop(session_id="sess-1"), _at(3))

    assert state.phase is SessionPhase.WAITING_FOR_INPUT
    assert len(state.tool_tracker) == 0
    assert not state.subagent_state.has_active_subagent
    assert outcome.notes


def test_compaction_resumes_processing_when_work_pending() -> None:
    state = _session()
    apply_event(state, ToolStart(session_id="sess-1", tool_use_id="a", tool_name="Bash"), _at(1))
    apply_event(state, CompactStart(session_id="sess-1"), _at(2))
    assert state.phase is SessionPhase.COMPACTING

    apply_event(state, CompactEnd(session_id="sess-1"), _at(3))
    assert state.phase is SessionPhase.PROCESSING


def test_manual_compaction_without_work_returns_to_idle() -> None:
    state = _session()
    apply_event(state, CompactStart(session_id="sess-1", trigger="manual"), _at(1))
    apply_event(state, CompactEnd(session_id="sess-1", trigger="manual"), _at(2))

    assert state.phase is SessionPhase.IDLE


def test_auto_compaction_resumes_processing() -> None:
    state = _session()
    apply_event(state, CompactStart(session_id="sess-1", trigger="auto"), _at(1))
    apply_event(state, CompactEnd(session_id="sess-1", trigger="auto"), _at(2))

    assert state.phase is SessionPhase.PROCESSING


def test_compact_session_start_finishes_compaction() -> None:
    state = _session()
    apply_event(state, CompactStart(session_id="sess-1"), _at(1))
    apply_event(state, SessionStart(session_id="sess-1", source="compact"), _at(2))

    assert state.phase is SessionPhase.IDLE


def test_compact_end_outside_compaction_is_ignored() -> None:
    state = _session()
    apply_event(state, UserPromptSubmit(session_id="sess-1"), _at(1))
    outcome = apply_event(state, CompactEnd(session_id="sess-1"), _at(2))

    assert outcome.notes
    assert state.phase is SessionPhase.PROCESSING


def test_prompt_does_not_override_pending_approval() -> None:
    state = _session()
    apply_event(state, PermissionRequest(session_id="sess-1", tool_name="Bash"), _at(1))
    apply_event(state, UserPromptSubmit(session_id="sess-1"), _at(2))

    assert state.phase is SessionPhase.WAITING_FOR_APPROVAL


def test_resume_start_keeps_current_phase() -> None:
    state = _session()
    apply_event(state, UserPromptSubmit(session_id="sess-1"), _at(1))
    apply_event(state, SessionStart(session_id="sess-1", source="resume", pid=5), _at(2))

    assert state.phase is SessionPhase.PROCESSING
    assert state.pid == 5


def test_clear_start_resets_activity() -> None:
    state = _session()
    apply_event(state, ToolStart(session_id="sess-1", tool_use_id="a", tool_name="Bash"), _at(1))
    apply_event(state, SessionStart(session_id="sess-1", source="clear"), _at(2))

    assert state.phase is SessionPhase.IDLE
    assert len(state.tool_tracker) == 0


def test_subagents_nest_and_tolerate_out_of_order_end() -> None:
    state = _session()
    apply_event(state, UserPromptSubmit(session_id="sess-1"), _at(0))
    apply_event(state, SubagentStart(session_id="sess-1", task_id="1", description="outer"), _at(1))
    apply_event(state, SubagentStart(session_id="sess-1", task_id="2", description="inner"), _at(2))
    assert state.subagent_state.task_stack == ["1", "2"]
    assert state.phase is SessionPhase.PROCESSING

    apply_event(state, SubagentEnd(session_id="sess-1", task_id="1"), _at(3))

    assert "1" not in state.subagent_state.active_tasks
    assert "2" in state.subagent_state.active_tasks
    assert state.subagent_state.task_stack == ["2"]
    assert state.subagent_state.innermost().description == "inner"

    apply_event(state, SubagentEnd(session_id="sess-1", task_id="2"), _at(4))
    outcome = apply_event(state, SubagentEnd(session_id="sess-1", task_id="2"), _at(5))

    assert state.subagent_state.depth == 0
    assert outcome.notes


def test_repeated_subagent_start_does_not_duplicate_frame() -> None:
    state = _session()
    apply_event(state, SubagentStart(session_id="sess-1", task_id="1"), _at(1))
    apply_event(state, SubagentStart(session_id="sess-1", task_id="1", description="again"), _at(2))

    assert state.subagent_state.task_stack == ["1"]
    assert state.subagent_state.active_tasks["1"].description == "again"


def test_message_updates_project_name_last_write_wins() -> None:
    state = _session(cwd="/work/first")
    apply_event(state, Message(session_id="sess-1", cwd="/work/second"), _at(1))
    assert state.best_project_name == "second"

    apply_event(state, Message(session_id="sess-1", cwd="/work/third/"), _at(2))
    assert state.best_project_name == "third"


def test_session_end_is_terminal() -> None:
    state = _session()
    apply_event(state, ToolStart(session_id="sess-1", tool_use_id="a", tool_name="Bash"), _at(1))
    apply_event(state, SessionEnd(session_id="sess-1"), _at(2))

    assert state.phase is SessionPhase.ENDED
    assert state.ended_at == _at(2)
    assert len(state.tool_tracker) == 0

    outcome = apply_event(state, UserPromptSubmit(session_id="sess-1", cwd="/elsewhere"), _at(3))
    assert not outcome.applied
    assert state.phase is SessionPhase.ENDED
    assert state.last_seen_at == _at(2)
    assert state.cwd is None


@pytest.mark.parametrize(
    "events",
    [
        [Stop(session_id="s"), ToolEnd(session_id="s", tool_use_id="x"), CompactEnd(session_id="s")],
        [PermissionResponse(session_id="s", decision="approved"), SubagentEnd(session_id="s", task_id="z")],
        [
            ToolStart(session_id="s", tool_use_id="a", tool_name="Read"),
            CompactStart(session_id="s"),
            ToolStart(session_id="s", tool_use_id="b", tool_name="Read", needs_approval=True),
            UserPromptSubmit(session_id="s"),
            PermissionResponse(session_id="s", decision="denied"),
            Stop(session_id="s"),
        ],
    ],
)
def test_phase_stays_in_state_set_and_idle_means_no_tools(events) -> None:
    state = _session()
    for index, event in enumerate(events):
        apply_event(state, event, _at(index))
        assert isinstance(state.phase, SessionPhase)
        if state.phase in (SessionPhase.IDLE, SessionPhase.ENDED):
            assert len(state.tool_tracker) == 0
