from __future__ import annotations

from typing import AbstractSet, Iterable, List, Optional

from ..contracts.v1 import LivePreviewTarget, Workspace, WorkspaceStatus, WorkspaceStatusTarget
from .sessions import session_name_for_workspace_ref

_STATUS_INTERVALS_S = {
    WorkspaceStatus.ACTIVE: 0.2,
    WorkspaceStatus.THINKING: 0.2,
    WorkspaceStatus.WAITING: 2.0,
    WorkspaceStatus.IDLE: 2.0,
    WorkspaceStatus.DONE: 20.0,
    WorkspaceStatus.ERROR: 20.0,
    WorkspaceStatus.MAIN: 2.0,
    WorkspaceStatus.UNKNOWN: 2.0,
    WorkspaceStatus.UNSUPPORTED: 2.0,
}


def poll_interval(
    status: WorkspaceStatus,
    is_selected: bool,
    is_preview_focused: bool,
    interactive_mode: bool,
    since_last_key_s: float,
    output_changing: bool,
) -> float:
    """Seconds until the next capture of a workspace's pane."""
    if interactive_mode and is_selected:
        if since_last_key_s < 2.0:
            return 0.05
        if since_last_key_s < 10.0:
            return 0.2
        return 0.5
    if not is_selected:
        return 10.0
    if output_changing:
        return 0.2
    if is_preview_focused:
        return 0.5
    return _STATUS_INTERVALS_S[WorkspaceStatus(status)]


def workspace_should_poll_status(workspace: Workspace, tracked: bool = False) -> bool:
    """`tracked` marks a session the poller has captured and not yet seen end."""
    return workspace.supported_agent and (tracked or workspace.status.has_session())


def workspace_status_session_target(
    workspace: Workspace, selected_live_session: Optional[str], tracked: bool = False
) -> Optional[str]:
    if not workspace_should_poll_status(workspace, tracked):
        return None
    session_name = session_name_for_workspace_ref(workspace)
    # The live preview already captures this one.
    if session_name == selected_live_session:
        return None
    return session_name


def workspace_status_targets_for_polling(
    workspaces: Iterable[Workspace],
    selected_live_session: Optional[str] = None,
    tracked_paths: AbstractSet[str] = frozenset(),
) -> List[WorkspaceStatusTarget]:
    targets: List[WorkspaceStatusTarget] = []
    for workspace in workspaces:
        tracked = str(workspace.path) in tracked_paths
        session_name = workspace_status_session_target(workspace, selected_live_session, tracked)
        if session_name is None:
            continue
        targets.append(
            WorkspaceStatusTarget(
                workspace_name=workspace.name,
                workspace_path=workspace.path,
                session_name=session_name,
                supported_agent=workspace.supported_agent,
            )
        )
    return targets


def workspace_status_targets_for_polling_with_live_preview(
    workspaces: Iterable[Workspace],
    live_preview: Optional[LivePreviewTarget],
    tracked_paths: AbstractSet[str] = frozenset(),
) -> List[WorkspaceStatusTarget]:
    return workspace_status_targets_for_polling(
        workspaces, live_preview.session_name if live_preview is not None else None, tracked_paths
    )
