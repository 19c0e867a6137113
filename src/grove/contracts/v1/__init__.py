from __future__ import annotations

from .runtime import (
    Argv,
    CaptureChange,
    EnvPair,
    LaunchPlan,
    LaunchRequest,
    LauncherScript,
    LivePreviewTarget,
    OutputDigest,
    ReconciliationResult,
    SessionExecutionResult,
    ShellLaunchRequest,
    WorkspaceStatusTarget,
)
from .workspace import AgentType, SessionActivity, Workspace, WorkspaceIdentity, WorkspaceStatus

__all__ = [
    "AgentType",
    "Argv",
    "CaptureChange",
    "EnvPair",
    "LaunchPlan",
    "LaunchRequest",
    "LauncherScript",
    "LivePreviewTarget",
    "OutputDigest",
    "ReconciliationResult",
    "SessionActivity",
    "SessionExecutionResult",
    "ShellLaunchRequest",
    "Workspace",
    "WorkspaceIdentity",
    "WorkspaceStatus",
    "WorkspaceStatusTarget",
]
