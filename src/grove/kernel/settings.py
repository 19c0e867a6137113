"""Global settings for grove.

Settings are stored in ~/.grove/settings.yaml (or $GROVE_HOME/settings.yaml):
- launch_skip_permissions: default for new agent launches
- log_level: default log level for the CLI
- projects: per-project launch defaults (base branch, init command, agent env)
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml  # type: ignore

from ..contracts.v1 import AgentType, EnvPair
from ..paths import ensure_home
from ..util.conv import coerce_bool
from ..util.fs import atomic_write_text

logger = logging.getLogger("grove.settings")

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def parse_agent_env(entries: Any) -> List[EnvPair]:
    """Parse `KEY=VALUE` strings; malformed entries and invalid keys are skipped."""
    if not isinstance(entries, list):
        return []
    out: List[EnvPair] = []
    for entry in entries:
        if not isinstance(entry, str) or "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.match(key):
            logger.debug("skipping agent env entry with invalid key: %r", key)
            continue
        out.append((key, value))
    return out


@dataclass
class ProjectDefaults:
    base_branch: str = ""
    workspace_init_command: str = ""
    agent_env: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_branch": self.base_branch,
            "workspace_init_command": self.workspace_init_command,
            "agent_env": {a.value: list(self.agent_env.get(a.value) or []) for a in AgentType.all()},
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProjectDefaults":
        init_command = str(d.get("workspace_init_command") or "").strip()
        if not init_command:
            # Older files kept a list of setup commands; the first one wins.
            legacy = d.get("setup_commands")
            if isinstance(legacy, list):
                init_command = next((str(c).strip() for c in legacy if str(c or "").strip()), "")
        raw_env = d.get("agent_env") if isinstance(d.get("agent_env"), dict) else {}
        agent_env: Dict[str, List[str]] = {}
        for agent in AgentType.all():
            values = raw_env.get(agent.value)
            agent_env[agent.value] = [str(v) for v in values] if isinstance(values, list) else []
        return cls(
            base_branch=str(d.get("base_branch") or ""),
            workspace_init_command=init_command,
            agent_env=agent_env,
        )

    def env_for(self, agent: AgentType) -> List[EnvPair]:
        return parse_agent_env(self.agent_env.get(AgentType(agent).value) or [])


@dataclass
class ProjectConfig:
    name: str
    path: Path
    defaults: ProjectDefaults = field(default_factory=ProjectDefaults)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "path": str(self.path), "defaults": self.defaults.to_dict()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProjectConfig":
        defaults = d.get("defaults")
        return cls(
            name=str(d.get("name") or ""),
            path=Path(str(d.get("path") or "")).expanduser(),
            defaults=ProjectDefaults.from_dict(defaults if isinstance(defaults, dict) else {}),
        )


@dataclass
class GroveSettings:
    launch_skip_permissions: bool = False
    log_level: str = ""
    projects: List[ProjectConfig] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"launch_skip_permissions": self.launch_skip_permissions}
        if self.log_level:
            doc["log_level"] = self.log_level
        doc["projects"] = [p.to_dict() for p in self.projects]
        return doc

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GroveSettings":
        projects: List[ProjectConfig] = []
        raw_projects = d.get("projects")
        for item in raw_projects if isinstance(raw_projects, list) else []:
            if isinstance(item, dict) and item.get("name") and item.get("path"):
                projects.append(ProjectConfig.from_dict(item))
        return cls(
            launch_skip_permissions=coerce_bool(d.get("launch_skip_permissions"), default=False),
            log_level=str(d.get("log_level") or "").strip().upper(),
            projects=projects,
        )

    def project_named(self, name: Optional[str]) -> Optional[ProjectConfig]:
        if not name:
            return None
        for project in self.projects:
            if project.name == name:
                return project
        return None


def settings_path() -> Path:
    return ensure_home() / "settings.yaml"


def load_settings() -> GroveSettings:
    """Load settings; a missing or unreadable file yields defaults."""
    p = settings_path()
    if not p.exists():
        return GroveSettings()
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("settings unreadable, using defaults: %s", e)
        return GroveSettings()
    return GroveSettings.from_dict(doc if isinstance(doc, dict) else {})


def save_settings(settings: GroveSettings) -> None:
    atomic_write_text(settings_path(), yaml.safe_dump(settings.to_dict(), allow_unicode=True, sort_keys=False))
