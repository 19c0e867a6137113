"""Pure translation of launch/stop requests into ordered tmux command plans.

Nothing here touches the filesystem or spawns a process: a launcher script is
returned as data on the plan and written later by the executor.
"""
from __future__ import annotations

import shlex
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from ..contracts.v1 import (
    Argv,
    EnvPair,
    LaunchPlan,
    LaunchRequest,
    LauncherScript,
    ShellLaunchRequest,
    Workspace,
)
from ..util.conv import trimmed_nonempty
from .agents import agent_command, agent_launch_env
from .sessions import session_name_for_workspace_in_project

LAUNCHER_SCRIPT_PATH = Path(".grove") / "start.sh"
TMUX_HISTORY_LIMIT = 10000
PROMPT_VAR = "GROVE_PROMPT"
_HEREDOC_DELIMITER = "GROVE_PROMPT_EOF"


def pane_lookup_command(session_name: str) -> Argv:
    return ["tmux", "list-panes", "-t", session_name, "-F", "#{pane_id}"]


def _session_bootstrap_commands(
    session_name: str,
    workspace_path: Path,
    *,
    capture_cols: Optional[int],
    capture_rows: Optional[int],
    env: Iterable[EnvPair] = (),
) -> List[Argv]:
    new_session = ["tmux", "new-session", "-d", "-s", session_name, "-c", str(workspace_path)]
    if capture_cols and capture_rows and capture_cols > 0 and capture_rows > 0:
        new_session += ["-x", str(int(capture_cols)), "-y", str(int(capture_rows))]
    for key, value in env:
        new_session += ["-e", f"{key}={value}"]
    return [
        new_session,
        ["tmux", "set-option", "-t", session_name, "history-limit", str(TMUX_HISTORY_LIMIT)],
    ]


def _send_line(session_name: str, line: str) -> Argv:
    return ["tmux", "send-keys", "-t", session_name, line, "Enter"]


def _heredoc_delimiter(text: str) -> str:
    lines = set(text.splitlines())
    delimiter = _HEREDOC_DELIMITER
    n = 0
    while delimiter in lines:
        n += 1
        delimiter = f"{_HEREDOC_DELIMITER}_{n}"
    return delimiter


def _launcher_script_contents(init_command: Optional[str], prompt: Optional[str], command: str) -> str:
    lines = ["#!/usr/bin/env bash"]
    if init_command:
        lines.append(init_command)
    if prompt:
        delimiter = _heredoc_delimiter(prompt)
        lines.append(f"{PROMPT_VAR}=$(cat <<'{delimiter}'")
        lines.append(prompt)
        lines.append(delimiter)
        lines.append(")")
    lines.append(f"exec {command}")
    return "\n".join(lines) + "\n"


def build_launch_plan(request: LaunchRequest, *, environ: Optional[Mapping[str, str]] = None) -> LaunchPlan:
    session_name = session_name_for_workspace_in_project(request.project_name, request.workspace_name)
    env: List[EnvPair] = list(request.agent_env)
    env += agent_launch_env(request.agent, skip_permissions=request.skip_permissions)
    pre_launch = _session_bootstrap_commands(
        session_name,
        request.workspace_path,
        capture_cols=request.capture_cols,
        capture_rows=request.capture_rows,
        env=env,
    )

    prompt = trimmed_nonempty(request.prompt)
    init_command = trimmed_nonempty(request.workspace_init_command)
    if prompt is None and init_command is None:
        command = agent_command(request.agent, skip_permissions=request.skip_permissions, environ=environ)
        return LaunchPlan(
            session_name=session_name,
            pane_lookup_cmd=pane_lookup_command(session_name),
            pre_launch_cmds=pre_launch,
            launch_cmd=_send_line(session_name, command),
        )

    command = agent_command(
        request.agent,
        skip_permissions=request.skip_permissions,
        prompt_arg=f'"${PROMPT_VAR}"' if prompt else None,
        environ=environ,
    )
    script_path = Path(request.workspace_path) / LAUNCHER_SCRIPT_PATH
    script = LauncherScript(path=script_path, contents=_launcher_script_contents(init_command, prompt, command))
    return LaunchPlan(
        session_name=session_name,
        pane_lookup_cmd=pane_lookup_command(session_name),
        pre_launch_cmds=pre_launch,
        launch_cmd=_send_line(session_name, f"bash {shlex.quote(str(script_path))}"),
        launcher_script=script,
    )


def build_shell_launch_plan(request: ShellLaunchRequest) -> LaunchPlan:
    session_name = request.session_name
    pre_launch = _session_bootstrap_commands(
        session_name,
        request.workspace_path,
        capture_cols=request.capture_cols,
        capture_rows=request.capture_rows,
    )
    parts = [p for p in (trimmed_nonempty(request.workspace_init_command), trimmed_nonempty(request.command)) if p]
    return LaunchPlan(
        session_name=session_name,
        pane_lookup_cmd=pane_lookup_command(session_name),
        pre_launch_cmds=pre_launch,
        launch_cmd=_send_line(session_name, "; ".join(parts)) if parts else [],
    )


def stop_plan(session_name: str) -> List[Argv]:
    return [["tmux", "kill-session", "-t", session_name]]


def launch_request_for_workspace(
    workspace: Workspace,
    prompt: Optional[str] = None,
    workspace_init_command: Optional[str] = None,
    skip_permissions: bool = False,
    agent_env: Optional[List[EnvPair]] = None,
    capture_cols: Optional[int] = None,
    capture_rows: Optional[int] = None,
) -> LaunchRequest:
    return LaunchRequest(
        project_name=workspace.project_name,
        workspace_name=workspace.name,
        workspace_path=workspace.path,
        agent=workspace.agent,
        prompt=prompt,
        workspace_init_command=workspace_init_command,
        skip_permissions=skip_permissions,
        agent_env=list(agent_env or []),
        capture_cols=capture_cols,
        capture_rows=capture_rows,
    )


def shell_launch_request_for_workspace(
    workspace: Workspace,
    session_name: str,
    command: str,
    workspace_init_command: Optional[str] = None,
    capture_cols: Optional[int] = None,
    capture_rows: Optional[int] = None,
) -> ShellLaunchRequest:
    return ShellLaunchRequest(
        session_name=session_name,
        workspace_path=workspace.path,
        command=command,
        workspace_init_command=workspace_init_command,
        capture_cols=capture_cols,
        capture_rows=capture_rows,
    )


def tmux_launch_error_indicates_duplicate_session(error: str) -> bool:
    return "duplicate session" in str(error or "").lower()
