"""One status poll cycle over a workspace list.

All cross-cycle memory lives in a caller-owned `PollState`; this module keeps
none of its own.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..contracts.v1 import LivePreviewTarget, OutputDigest, SessionActivity, Workspace, WorkspaceStatus
from .capture import evaluate_capture_change, tmux_capture_error_indicates_missing_session
from .polling import workspace_status_targets_for_polling_with_live_preview
from .status import detect_status_with_session_override

logger = logging.getLogger("grove.poller")

# Cleaned output that changed within this window counts as activity.
OUTPUT_ACTIVITY_WINDOW_S = 2.0

CaptureFn = Callable[[str], str]


@dataclass
class PollState:
    digests: Dict[str, OutputDigest] = field(default_factory=dict)
    last_change_at: Dict[str, float] = field(default_factory=dict)
    activity: Dict[str, SessionActivity] = field(default_factory=dict)

    def forget(self, key: str) -> None:
        self.digests.pop(key, None)
        self.last_change_at.pop(key, None)
        self.activity.pop(key, None)

    def output_changing(self, workspace_path: Path, now: float) -> bool:
        changed_at = self.last_change_at.get(_tracking_key(workspace_path))
        return changed_at is not None and now - changed_at <= OUTPUT_ACTIVITY_WINDOW_S


def _tracking_key(workspace_path: Path) -> str:
    return str(workspace_path)


def _session_ended(workspace: Workspace) -> Workspace:
    if workspace.is_main:
        return workspace.model_copy(update={"status": WorkspaceStatus.MAIN, "is_orphaned": False})
    orphaned = workspace.status.has_session() or workspace.is_orphaned
    return workspace.model_copy(update={"status": WorkspaceStatus.IDLE, "is_orphaned": orphaned})


def poll_workspace_statuses(
    workspaces: List[Workspace],
    state: PollState,
    capture: CaptureFn,
    now: Optional[float] = None,
    live_preview: Optional[LivePreviewTarget] = None,
    *,
    home: Optional[Path] = None,
) -> List[Workspace]:
    """Capture every pollable workspace once and return the updated list."""
    ts = time.time() if now is None else float(now)
    # A quiet pane detects as Idle; sessions still holding a digest stay
    # targets until a capture reports them gone.
    targets = {
        str(t.workspace_path): t
        for t in workspace_status_targets_for_polling_with_live_preview(
            workspaces, live_preview, frozenset(state.digests)
        )
    }
    out: List[Workspace] = []
    for workspace in workspaces:
        key = _tracking_key(workspace.path)
        target = targets.get(key)
        if target is None:
            out.append(workspace)
            continue
        log_extra = {"op": "poll", "session_name": target.session_name, "workspace": workspace.name}

        try:
            raw = capture(target.session_name)
        except Exception as e:
            if tmux_capture_error_indicates_missing_session(str(e)):
                logger.info("session ended", extra=log_extra)
                state.forget(key)
                out.append(_session_ended(workspace))
            else:
                logger.warning("status capture failed: %s", e, extra=log_extra)
                out.append(workspace)
            continue

        change = evaluate_capture_change(state.digests.get(key), raw)
        state.digests[key] = change.digest
        if change.changed_cleaned:
            state.last_change_at[key] = ts
        activity = SessionActivity.ACTIVE if state.output_changing(workspace.path, ts) else SessionActivity.IDLE
        previous_activity = state.activity.get(key)
        state.activity[key] = activity

        if not change.changed_cleaned and previous_activity is activity:
            out.append(workspace.model_copy(update={"is_orphaned": False}))
            continue

        status = detect_status_with_session_override(
            change.cleaned_output,
            activity,
            workspace.is_main,
            True,
            target.supported_agent,
            workspace.agent,
            workspace.path,
            home=home,
            now=ts,
        )
        if status is not workspace.status:
            logger.debug("status %s -> %s", workspace.status.value, status.value, extra=log_extra)
        out.append(workspace.model_copy(update={"status": status, "is_orphaned": False}))
    return out
