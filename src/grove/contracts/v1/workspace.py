from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class AgentType(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"
    OPENCODE = "opencode"

    @classmethod
    def all(cls) -> List["AgentType"]:
        return list(cls)

    @classmethod
    def from_marker(cls, value: str) -> Optional["AgentType"]:
        wanted = str(value or "").strip().lower()
        for agent in cls:
            if agent.value == wanted:
                return agent
        return None

    @property
    def marker(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return _AGENT_LABELS[self.value]

    @property
    def command_override_env_var(self) -> str:
        return f"GROVE_{self.value.upper()}_CMD"

    def next(self) -> "AgentType":
        items = AgentType.all()
        return items[(items.index(self) + 1) % len(items)]

    def previous(self) -> "AgentType":
        items = AgentType.all()
        return items[(items.index(self) - 1) % len(items)]


_AGENT_LABELS = {
    "claude": "Claude",
    "codex": "Codex",
    "opencode": "OpenCode",
}


class WorkspaceStatus(str, Enum):
    MAIN = "main"
    IDLE = "idle"
    ACTIVE = "active"
    THINKING = "thinking"
    WAITING = "waiting"
    DONE = "done"
    ERROR = "error"
    UNKNOWN = "unknown"
    UNSUPPORTED = "unsupported"

    def has_session(self) -> bool:
        """True only for states reachable while a live tmux session exists."""
        return self in _SESSION_STATUSES


_SESSION_STATUSES = frozenset(
    {
        WorkspaceStatus.ACTIVE,
        WorkspaceStatus.THINKING,
        WorkspaceStatus.WAITING,
        WorkspaceStatus.DONE,
        WorkspaceStatus.ERROR,
    }
)


class SessionActivity(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class WorkspaceIdentity(BaseModel):
    project_name: Optional[str] = None
    workspace_name: str
    workspace_path: Path

    model_config = ConfigDict(frozen=True, extra="forbid")


class Workspace(BaseModel):
    name: str
    path: Path
    branch: str
    base_branch: Optional[str] = None
    last_activity_unix_secs: Optional[int] = None
    agent: AgentType = AgentType.CLAUDE
    status: WorkspaceStatus = WorkspaceStatus.IDLE
    is_main: bool = False
    is_orphaned: bool = False
    supported_agent: bool = True
    project_name: Optional[str] = None
    project_path: Optional[Path] = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate(self) -> "Workspace":
        if not self.name.strip():
            raise ValueError("workspace name is empty")
        if not self.branch.strip():
            raise ValueError("workspace branch is empty")
        if str(self.path) in ("", "."):
            raise ValueError("workspace path is empty")
        if self.status is WorkspaceStatus.MAIN and not self.is_main:
            raise ValueError("only the main workspace may use main status")
        return self

    def identity(self) -> WorkspaceIdentity:
        return WorkspaceIdentity(project_name=self.project_name, workspace_name=self.name, workspace_path=self.path)
