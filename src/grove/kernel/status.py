"""Workspace status classification from captured pane text.

Text heuristics decide first; for the ambiguous results (Active, Waiting) the
agent's own session log may refine the answer.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..contracts.v1 import AgentType, SessionActivity, WorkspaceStatus
from ..paths import agent_home
from .session_files import (
    SESSION_ACTIVITY_THRESHOLD_S,
    detect_agent_session_status_in_home,
    latest_attention_marker_in_home,
)

WAITING_PATTERNS = (
    "[y/n]",
    "(y/n)",
    "allow edit",
    "allow bash",
    "press enter",
    "continue?",
    "do you want",
    "approve",
    "confirm",
)
WAITING_TAIL_LINES = 8
STATUS_TAIL_LINES = 60

DONE_PATTERNS = (
    "task completed",
    "all done",
    "finished",
    "exited with code 0",
    "goodbye",
)
ERROR_PATTERNS = (
    "error:",
    "failed",
    "exited with code 1",
    "panic:",
    "exception:",
    "traceback",
)

_PROMPT_GLYPHS = ("›", "❯", "»")
_BULLET_GLYPHS = "•*-·●○◦⏺✓✔>"
_THINKING_TAGS = ("thinking", "internal_monologue")


def _non_empty_tail(output: str, n: int) -> List[str]:
    lines = [ln for ln in (output or "").splitlines() if ln.strip()]
    return lines[-n:]


def _tail(output: str, n: int) -> List[str]:
    return (output or "").splitlines()[-n:]


def detect_waiting_prompt(output: str) -> bool:
    tail = _non_empty_tail(output, WAITING_TAIL_LINES)
    if not tail:
        return False
    lower = "\n".join(tail).lower()
    if any(pattern in lower for pattern in WAITING_PATTERNS):
        return True
    if "for shortcuts" in tail[-1].lower():
        return True
    for line in tail:
        s = line.strip()
        if s[:1] in _PROMPT_GLYPHS and s[1:].lstrip().lower().startswith("try "):
            return True
    return False


def _has_unclosed_thinking_tag(text: str) -> bool:
    for tag in _THINKING_TAGS:
        opened = text.rfind(f"<{tag}>")
        if opened >= 0 and opened > text.rfind(f"</{tag}>"):
            return True
    return False


def _has_done_line(lines: List[str]) -> bool:
    for line in lines:
        normalized = line.strip().lstrip(_BULLET_GLYPHS).strip().lower()
        if normalized in ("done", "done."):
            return True
    return False


def detect_status(
    output: str,
    session_activity: SessionActivity,
    is_main: bool,
    has_live_session: bool,
    supported_agent: bool,
) -> WorkspaceStatus:
    if is_main and not has_live_session:
        return WorkspaceStatus.MAIN
    if not supported_agent:
        return WorkspaceStatus.UNSUPPORTED
    if not has_live_session:
        return WorkspaceStatus.IDLE

    if detect_waiting_prompt(output):
        return WorkspaceStatus.WAITING

    tail_lines = _tail(output, STATUS_TAIL_LINES)
    tail = "\n".join(tail_lines).lower()
    if _has_unclosed_thinking_tag(tail) or "thinking..." in tail or "reasoning about" in tail:
        return WorkspaceStatus.THINKING
    if _has_done_line(tail_lines) or any(p in tail for p in DONE_PATTERNS):
        return WorkspaceStatus.DONE
    if any(p in tail for p in ERROR_PATTERNS):
        return WorkspaceStatus.ERROR

    if SessionActivity(session_activity) is SessionActivity.ACTIVE:
        return WorkspaceStatus.ACTIVE
    return WorkspaceStatus.IDLE


def detect_status_with_session_override(
    output: str,
    session_activity: SessionActivity,
    is_main: bool,
    has_live_session: bool,
    supported_agent: bool,
    agent: AgentType,
    workspace_path: Path,
    *,
    home: Optional[Path] = None,
    activity_threshold_s: float = SESSION_ACTIVITY_THRESHOLD_S,
    now: Optional[float] = None,
) -> WorkspaceStatus:
    status = detect_status(output, session_activity, is_main, has_live_session, supported_agent)
    if status not in (WorkspaceStatus.ACTIVE, WorkspaceStatus.WAITING):
        return status
    override = detect_agent_session_status_in_home(
        agent,
        workspace_path,
        agent_home() if home is None else home,
        activity_threshold_s,
        now=now,
    )
    return override if override is not None else status


def latest_attention_marker(agent: AgentType, workspace_path: Path, home: Optional[Path] = None) -> Optional[str]:
    return latest_attention_marker_in_home(agent, workspace_path, agent_home() if home is None else home)
