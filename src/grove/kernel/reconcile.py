from __future__ import annotations

from typing import AbstractSet, Iterable, List, Set

from ..contracts.v1 import ReconciliationResult, SessionActivity, Workspace
from .sessions import session_name_for_workspace_ref
from .status import detect_status


def reconcile_with_sessions(
    workspaces: Iterable[Workspace],
    running_sessions: AbstractSet[str],
    previously_running_workspace_names: AbstractSet[str],
) -> ReconciliationResult:
    """Match known workspaces against live tmux sessions.

    Live sessions no workspace claims come back as `orphaned_sessions`
    (sorted). A non-main workspace that was running last pass and has no
    session now is flagged `is_orphaned`.
    """
    matched: Set[str] = set()
    updated: List[Workspace] = []
    for workspace in workspaces:
        session_name = session_name_for_workspace_ref(workspace)
        if session_name in running_sessions:
            matched.add(session_name)
            status = detect_status(
                "",
                SessionActivity.ACTIVE,
                workspace.is_main,
                True,
                workspace.supported_agent,
            )
            updated.append(workspace.model_copy(update={"status": status, "is_orphaned": False}))
            continue

        status = detect_status("", SessionActivity.IDLE, workspace.is_main, False, workspace.supported_agent)
        orphaned = False if workspace.is_main else workspace.name in previously_running_workspace_names
        updated.append(workspace.model_copy(update={"status": status, "is_orphaned": orphaned}))

    return ReconciliationResult(
        workspaces=updated,
        orphaned_sessions=sorted(s for s in running_sessions if s not in matched),
    )
