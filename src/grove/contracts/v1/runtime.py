from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .workspace import AgentType, Workspace

Argv = List[str]
EnvPair = Tuple[str, str]


class LaunchRequest(BaseModel):
    project_name: Optional[str] = None
    workspace_name: str
    workspace_path: Path
    agent: AgentType = AgentType.CLAUDE
    prompt: Optional[str] = None
    workspace_init_command: Optional[str] = None
    skip_permissions: bool = False
    agent_env: List[EnvPair] = Field(default_factory=list)
    capture_cols: Optional[int] = None
    capture_rows: Optional[int] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ShellLaunchRequest(BaseModel):
    session_name: str
    workspace_path: Path
    command: str = ""
    workspace_init_command: Optional[str] = None
    capture_cols: Optional[int] = None
    capture_rows: Optional[int] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class LauncherScript(BaseModel):
    path: Path
    contents: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class LaunchPlan(BaseModel):
    session_name: str
    pane_lookup_cmd: Argv = Field(default_factory=list)
    pre_launch_cmds: List[Argv] = Field(default_factory=list)
    # Empty means there is nothing to send once the session exists.
    launch_cmd: Argv = Field(default_factory=list)
    launcher_script: Optional[LauncherScript] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class SessionExecutionResult(BaseModel):
    workspace_name: str
    workspace_path: Path
    session_name: str
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def ok(self) -> bool:
        return not self.error


class OutputDigest(BaseModel):
    raw_hash: int
    raw_len: int
    cleaned_hash: int

    model_config = ConfigDict(frozen=True, extra="forbid")


class CaptureChange(BaseModel):
    digest: OutputDigest
    changed_raw: bool
    changed_cleaned: bool
    cleaned_output: str
    render_output: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class ReconciliationResult(BaseModel):
    workspaces: List[Workspace] = Field(default_factory=list)
    orphaned_sessions: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class WorkspaceStatusTarget(BaseModel):
    workspace_name: str
    workspace_path: Path
    session_name: str
    supported_agent: bool

    model_config = ConfigDict(frozen=True, extra="forbid")


class LivePreviewTarget(BaseModel):
    session_name: str
    include_escape_sequences: bool = True

    model_config = ConfigDict(frozen=True, extra="forbid")
