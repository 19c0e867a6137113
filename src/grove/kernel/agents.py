"""Per-agent capabilities: launch commands, permission flags, exit and resume grammar."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from ..contracts.v1 import AgentType, EnvPair


@dataclass(frozen=True)
class RestartExitInput:
    """How to ask an agent to exit: typed text followed by Enter, or one tmux key name."""
    literal: Optional[str] = None
    key: Optional[str] = None


@dataclass(frozen=True)
class AgentProfile:
    agent: AgentType
    command: str
    skip_permissions_flag: Optional[str] = None
    # Extra environment applied at launch when permissions are skipped.
    skip_permissions_env: Dict[str, str] = field(default_factory=dict)
    # None means the prompt is passed as a positional argument.
    prompt_flag: Optional[str] = None
    exit_input: Optional[RestartExitInput] = None
    resume_pattern: Optional[str] = None


OPENCODE_UNSAFE_PERMISSION_JSON = '{"*":"allow"}'

KNOWN_AGENTS: Dict[AgentType, AgentProfile] = {
    AgentType.CLAUDE: AgentProfile(
        agent=AgentType.CLAUDE,
        command="claude",
        skip_permissions_flag="--dangerously-skip-permissions",
        exit_input=RestartExitInput(literal="/exit"),
        resume_pattern=r"(claude[ \t]+--resume[ \t]+[A-Za-z0-9][A-Za-z0-9_-]*(?:[ \t]+--[A-Za-z][A-Za-z0-9-]*)*)",
    ),
    AgentType.CODEX: AgentProfile(
        agent=AgentType.CODEX,
        command="codex",
        skip_permissions_flag="--dangerously-bypass-approvals-and-sandbox",
        exit_input=RestartExitInput(literal="/quit"),
        resume_pattern=r"(codex[ \t]+resume[ \t]+[0-9A-Fa-f][0-9A-Fa-f-]{7,})",
    ),
    AgentType.OPENCODE: AgentProfile(
        agent=AgentType.OPENCODE,
        command="opencode",
        skip_permissions_env={"OPENCODE_PERMISSION": OPENCODE_UNSAFE_PERMISSION_JSON},
        prompt_flag="--prompt",
    ),
}


def agent_profile(agent: AgentType) -> AgentProfile:
    return KNOWN_AGENTS[AgentType(agent)]


def default_agent_command(agent: AgentType) -> str:
    return agent_profile(agent).command


def agent_base_command(agent: AgentType, *, environ: Optional[Mapping[str, str]] = None) -> str:
    """Agent command honoring the GROVE_<AGENT>_CMD override."""
    env = os.environ if environ is None else environ
    override = str(env.get(AgentType(agent).command_override_env_var, "") or "").strip()
    return override or default_agent_command(agent)


def agent_command(
    agent: AgentType,
    *,
    skip_permissions: bool,
    prompt_arg: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """Build the agent start line.

    `prompt_arg` is inserted verbatim and must already be shell-safe (a quoted
    literal or a variable expansion).
    """
    profile = agent_profile(agent)
    parts: List[str] = [agent_base_command(agent, environ=environ)]
    if skip_permissions and profile.skip_permissions_flag:
        parts.append(profile.skip_permissions_flag)
    if prompt_arg:
        if profile.prompt_flag:
            parts.append(profile.prompt_flag)
        parts.append(prompt_arg)
    return " ".join(parts)


def agent_launch_env(agent: AgentType, *, skip_permissions: bool) -> List[EnvPair]:
    if not skip_permissions:
        return []
    return sorted(agent_profile(agent).skip_permissions_env.items())


def agent_supports_in_pane_restart(agent: AgentType) -> bool:
    profile = agent_profile(agent)
    return profile.exit_input is not None and profile.resume_pattern is not None


def restart_exit_input(agent: AgentType) -> Optional[RestartExitInput]:
    return agent_profile(agent).exit_input


def extract_agent_resume_command(agent: AgentType, output: str) -> Optional[str]:
    """Return the most recent resume command printed in `output`, if any."""
    pattern = agent_profile(agent).resume_pattern
    if not pattern or not output:
        return None
    matches = re.findall(pattern, output)
    if not matches:
        return None
    return " ".join(str(matches[-1]).split())


def resume_command_with_skip_permissions(agent: AgentType, command: str, skip_permissions: bool) -> str:
    profile = agent_profile(agent)
    cmd = " ".join(str(command or "").split())
    if not skip_permissions or not profile.skip_permissions_flag:
        return cmd
    if profile.skip_permissions_flag in cmd.split():
        return cmd
    return f"{cmd} {profile.skip_permissions_flag}"
