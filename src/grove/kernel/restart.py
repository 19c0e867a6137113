"""In-pane agent restart: ask the agent to exit, find its resume command, resume.

Agents persist their own conversation state on a graceful exit and print a
resume command; re-running the start command would lose that state.
"""
from __future__ import annotations

import logging
import shlex
import time
from pathlib import Path
from typing import Callable, List, Optional

from ..contracts.v1 import Argv, EnvPair, SessionExecutionResult, Workspace
from ..paths import agent_home
from .agents import (
    agent_supports_in_pane_restart,
    extract_agent_resume_command,
    restart_exit_input,
    resume_command_with_skip_permissions,
)
from .session_files import infer_resume_command_in_home, infer_skip_permissions_in_home
from .sessions import session_name_for_workspace_ref

logger = logging.getLogger("grove.restart")

RESTART_RESUME_SCROLLBACK_LINES = 240
RESTART_RESUME_CAPTURE_ATTEMPTS = 30
RESTART_RESUME_RETRY_DELAY_S = 0.12
RESTART_RESUME_ERROR_TAIL_LINES = 8
RESTART_RESUME_ERROR_MAX_CHARS = 320

ExecuteFn = Callable[[Argv], None]
CaptureFn = Callable[[str, int], str]

__all__ = [
    "RestartError",
    "agent_supports_in_pane_restart",
    "execute_restart_workspace_in_pane_with_result",
    "extract_agent_resume_command",
    "infer_workspace_skip_permissions",
    "restart_workspace_in_pane_with_io",
]


class RestartError(RuntimeError):
    pass


def output_excerpt(output: str) -> str:
    lines = [" ".join(ln.split()) for ln in (output or "").splitlines() if ln.strip()]
    excerpt = " | ".join(lines[-RESTART_RESUME_ERROR_TAIL_LINES:])
    return excerpt[:RESTART_RESUME_ERROR_MAX_CHARS]


def _send_line(session_name: str, line: str) -> List[Argv]:
    return [
        ["tmux", "send-keys", "-t", session_name, "-l", line],
        ["tmux", "send-keys", "-t", session_name, "Enter"],
    ]


def _env_export_line(agent_env: List[EnvPair]) -> str:
    return "export " + " ".join(f"{key}={shlex.quote(value)}" for key, value in agent_env)


def restart_workspace_in_pane_with_io(
    workspace: Workspace,
    skip_permissions: bool,
    agent_env: List[EnvPair],
    execute: ExecuteFn,
    capture_output: CaptureFn,
    *,
    home: Optional[Path] = None,
    attempts: int = RESTART_RESUME_CAPTURE_ATTEMPTS,
    retry_delay_s: float = RESTART_RESUME_RETRY_DELAY_S,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Exit the agent in its pane and resume it. Raises RestartError."""
    agent = workspace.agent
    exit_input = restart_exit_input(agent)
    if exit_input is None:
        raise RestartError(f"in-pane restart unsupported for {agent.label}")

    session_name = session_name_for_workspace_ref(workspace)
    log_extra = {"op": "restart", "session_name": session_name, "agent": agent.value}

    if exit_input.literal is not None:
        exit_cmds = _send_line(session_name, exit_input.literal)
    else:
        exit_cmds = [["tmux", "send-keys", "-t", session_name, str(exit_input.key)]]
    try:
        for argv in exit_cmds:
            execute(argv)
    except Exception as e:
        raise RestartError(f"restart exit failed for '{session_name}': {e}") from e

    resume_command: Optional[str] = None
    excerpt = ""
    total = max(1, int(attempts))
    for attempt in range(1, total + 1):
        try:
            output = capture_output(session_name, RESTART_RESUME_SCROLLBACK_LINES)
        except Exception as e:
            logger.debug("resume capture failed: %s", e, extra={**log_extra, "attempt": attempt})
            output = ""
            excerpt = f"capture failed: {e}"
        else:
            excerpt = output_excerpt(output)
        resume_command = extract_agent_resume_command(agent, output)
        if resume_command:
            break
        if attempt < total:
            sleep(retry_delay_s)

    if not resume_command:
        resume_command = infer_resume_command_in_home(agent, workspace.path, agent_home() if home is None else home)
        if not resume_command:
            raise RestartError(
                f"resume command not found for '{session_name}' after {total} attempts; last output: {excerpt}"
            )
        logger.info("resume command inferred from session files", extra=log_extra)

    commands: List[Argv] = []
    if agent_env:
        commands += _send_line(session_name, _env_export_line(agent_env))
    commands += _send_line(session_name, resume_command_with_skip_permissions(agent, resume_command, skip_permissions))
    try:
        for argv in commands:
            execute(argv)
    except Exception as e:
        raise RestartError(f"restart resume failed for '{session_name}': {e}") from e


def execute_restart_workspace_in_pane_with_result(
    workspace: Workspace,
    skip_permissions: bool,
    agent_env: List[EnvPair],
    *,
    home: Optional[Path] = None,
) -> SessionExecutionResult:
    from ..runners.execution import ProcessCommandExecutor
    from ..runners.tmux import capture_output

    session_name = session_name_for_workspace_ref(workspace)
    error: Optional[str] = None
    try:
        restart_workspace_in_pane_with_io(
            workspace,
            skip_permissions,
            agent_env,
            ProcessCommandExecutor().execute,
            capture_output,
            home=home,
        )
    except RestartError as e:
        error = str(e)
        logger.warning("restart failed: %s", error, extra={"op": "restart", "session_name": session_name})
    return SessionExecutionResult(
        workspace_name=workspace.name,
        workspace_path=workspace.path,
        session_name=session_name,
        error=error,
    )


def infer_workspace_skip_permissions(workspace: Workspace, home: Optional[Path] = None) -> Optional[bool]:
    return infer_skip_permissions_in_home(workspace.agent, workspace.path, agent_home() if home is None else home)
