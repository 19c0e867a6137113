"""tmux session naming for workspaces, plus preview/session helpers."""
from __future__ import annotations

import re
from typing import AbstractSet, Optional

from ..contracts.v1 import LivePreviewTarget, Workspace, WorkspaceStatus

TMUX_SESSION_PREFIX = "grove-ws-"

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]")
_DASH_RUN_RE = re.compile(r"-{2,}")


def sanitize_workspace_name(name: str) -> str:
    """Map any string onto [A-Za-z0-9_-]+ ("workspace" when nothing survives)."""
    out = _DASH_RUN_RE.sub("-", _UNSAFE_RE.sub("-", name or ""))
    out = out.strip("-")
    return out or "workspace"


def session_name_for_workspace(workspace_name: str) -> str:
    return session_name_for_workspace_in_project(None, workspace_name)


def session_name_for_workspace_in_project(project_name: Optional[str], workspace_name: str) -> str:
    # Distinct (project, workspace) pairs can sanitize to the same name; callers
    # treat the workspace path as the identity, not the session name.
    if project_name is not None:
        project = sanitize_workspace_name(project_name)
        return f"{TMUX_SESSION_PREFIX}{project}-{sanitize_workspace_name(workspace_name)}"
    return f"{TMUX_SESSION_PREFIX}{sanitize_workspace_name(workspace_name)}"


def session_name_for_workspace_ref(workspace: Workspace) -> str:
    return session_name_for_workspace_in_project(workspace.project_name, workspace.name)


def git_session_name_for_workspace(workspace: Workspace) -> str:
    return f"{session_name_for_workspace_ref(workspace)}-git"


def shell_session_name_for_workspace(workspace: Workspace) -> str:
    return f"{session_name_for_workspace_ref(workspace)}-shell"


def live_preview_agent_session(workspace: Optional[Workspace]) -> Optional[str]:
    if workspace is None or not workspace.status.has_session():
        return None
    return session_name_for_workspace_ref(workspace)


def workspace_can_enter_interactive(workspace: Optional[Workspace], preview_tab_is_git: bool) -> bool:
    if preview_tab_is_git:
        return workspace is not None
    return live_preview_agent_session(workspace) is not None


_STARTABLE = frozenset(
    {
        WorkspaceStatus.MAIN,
        WorkspaceStatus.IDLE,
        WorkspaceStatus.DONE,
        WorkspaceStatus.ERROR,
        WorkspaceStatus.UNKNOWN,
    }
)


def workspace_can_start_agent(workspace: Optional[Workspace]) -> bool:
    if workspace is None or not workspace.supported_agent:
        return False
    return workspace.status in _STARTABLE


def workspace_can_stop_agent(workspace: Optional[Workspace]) -> bool:
    if workspace is None:
        return False
    return workspace.status.has_session()


def workspace_session_for_preview_tab(
    workspace: Optional[Workspace],
    preview_tab_is_git: bool,
    git_preview_session: Optional[str],
) -> Optional[str]:
    if preview_tab_is_git:
        if workspace is None:
            return None
        return git_preview_session
    return live_preview_agent_session(workspace)


def git_preview_session_if_ready(workspace: Optional[Workspace], ready_sessions: AbstractSet[str]) -> Optional[str]:
    if workspace is None:
        return None
    name = git_session_name_for_workspace(workspace)
    return name if name in ready_sessions else None


def live_preview_session_for_tab(
    workspace: Optional[Workspace],
    preview_tab_is_git: bool,
    ready_sessions: AbstractSet[str],
) -> Optional[str]:
    if preview_tab_is_git:
        return git_preview_session_if_ready(workspace, ready_sessions)
    return live_preview_agent_session(workspace)


def live_preview_capture_target_for_tab(
    workspace: Optional[Workspace],
    preview_tab_is_git: bool,
    ready_sessions: AbstractSet[str],
) -> Optional[LivePreviewTarget]:
    session = live_preview_session_for_tab(workspace, preview_tab_is_git, ready_sessions)
    if session is None:
        return None
    return LivePreviewTarget(session_name=session, include_escape_sequences=True)
