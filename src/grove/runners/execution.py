"""The command execution boundary.

Plans are data; executors turn them into effects. `ProcessCommandExecutor`
spawns real processes, `DelegatingCommandExecutor` hands each argv to a
callback (a test double or another transport).
"""
from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from ..contracts.v1 import (
    Argv,
    LaunchPlan,
    LaunchRequest,
    LauncherScript,
    SessionExecutionResult,
    ShellLaunchRequest,
    Workspace,
)
from ..kernel.launch_plan import build_launch_plan, build_shell_launch_plan, stop_plan
from ..kernel.sessions import session_name_for_workspace_in_project, session_name_for_workspace_ref
from ..util.fs import atomic_write_text

logger = logging.getLogger("grove.execution")

CommandCallback = Callable[[Argv], None]


class CommandExecutionError(RuntimeError):
    pass


def write_launcher_script(script: LauncherScript) -> None:
    """Create parent dirs and write the script executable. Raises OSError."""
    atomic_write_text(script.path, script.contents, mode=0o755)


class CommandExecutor(ABC):
    @abstractmethod
    def execute(self, argv: Argv) -> None:
        """Run one command; raise CommandExecutionError on failure."""
        pass

    def write_launcher_script(self, script: LauncherScript) -> None:
        write_launcher_script(script)


def _stderr_or_status(returncode: int, stderr: str) -> str:
    msg = (stderr or "").strip()
    return msg or f"exit status {returncode}"


class ProcessCommandExecutor(CommandExecutor):
    def __init__(self, *, timeout_s: Optional[float] = 30.0):
        self._timeout_s = timeout_s

    def execute(self, argv: Argv) -> None:
        if not argv:
            return
        joined = " ".join(argv)
        try:
            p = subprocess.run(
                list(argv),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self._timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandExecutionError(f"command failed: {joined}; timed out after {self._timeout_s}s") from e
        except OSError as e:
            raise CommandExecutionError(f"command failed: {joined}; {e}") from e
        if p.returncode != 0:
            raise CommandExecutionError(f"command failed: {joined}; {_stderr_or_status(p.returncode, p.stderr)}")


class DelegatingCommandExecutor(CommandExecutor):
    def __init__(self, callback: CommandCallback, script_error_prefix: Optional[str] = None):
        self._callback = callback
        self._script_error_prefix = script_error_prefix

    def execute(self, argv: Argv) -> None:
        try:
            self._callback(list(argv))
        except CommandExecutionError:
            raise
        except Exception as e:
            raise CommandExecutionError(f"command failed: {' '.join(argv)}; {e}") from e

    def write_launcher_script(self, script: LauncherScript) -> None:
        if not self._script_error_prefix:
            write_launcher_script(script)
            return
        try:
            write_launcher_script(script)
        except OSError as e:
            raise CommandExecutionError(f"{self._script_error_prefix}: {e}") from e


@dataclass(frozen=True)
class CommandExecutionMode:
    """Either run commands as processes or delegate them to a callback."""

    callback: Optional[CommandCallback] = None

    @classmethod
    def process(cls) -> "CommandExecutionMode":
        return cls()

    @classmethod
    def delegating(cls, callback: CommandCallback) -> "CommandExecutionMode":
        return cls(callback=callback)

    @property
    def is_process(self) -> bool:
        return self.callback is None


def executor_for_mode(mode: CommandExecutionMode, *, script_error_prefix: Optional[str] = None) -> CommandExecutor:
    if mode.callback is None:
        return ProcessCommandExecutor()
    return DelegatingCommandExecutor(mode.callback, script_error_prefix)


def execute_commands_with_executor(commands: Iterable[Argv], executor: CommandExecutor) -> None:
    for argv in commands:
        executor.execute(argv)


def execute_launch_plan_with_executor(plan: LaunchPlan, executor: CommandExecutor) -> None:
    if plan.launcher_script is not None:
        executor.write_launcher_script(plan.launcher_script)
    for argv in plan.pre_launch_cmds:
        executor.execute(argv)
    if plan.launch_cmd:
        executor.execute(plan.launch_cmd)


def execute_launch_plan_for_mode(plan: LaunchPlan, mode: CommandExecutionMode) -> None:
    execute_launch_plan_with_executor(
        plan, executor_for_mode(mode, script_error_prefix="launcher script write failed")
    )


def execute_commands_for_mode(commands: Iterable[Argv], mode: CommandExecutionMode) -> None:
    execute_commands_with_executor(commands, executor_for_mode(mode))


def execute_launch_request_with_result_for_mode(
    request: LaunchRequest, mode: CommandExecutionMode
) -> SessionExecutionResult:
    plan = build_launch_plan(request)
    error: Optional[str] = None
    try:
        execute_launch_plan_for_mode(plan, mode)
    except (CommandExecutionError, OSError) as e:
        error = str(e)
        logger.warning("launch failed: %s", error, extra={"op": "start", "session_name": plan.session_name})
    return SessionExecutionResult(
        workspace_name=request.workspace_name,
        workspace_path=request.workspace_path,
        session_name=plan.session_name,
        error=error,
    )


def execute_shell_launch_request_for_mode(
    request: ShellLaunchRequest, mode: CommandExecutionMode
) -> Tuple[str, Optional[str]]:
    """Launch a shell session; returns (session name, error or None)."""
    plan = build_shell_launch_plan(request)
    try:
        execute_launch_plan_for_mode(plan, mode)
    except (CommandExecutionError, OSError) as e:
        logger.warning("shell launch failed: %s", e, extra={"op": "shell", "session_name": plan.session_name})
        return plan.session_name, str(e)
    return plan.session_name, None


def execute_stop_workspace_with_result_for_mode(
    workspace: Workspace, mode: CommandExecutionMode
) -> SessionExecutionResult:
    session_name = session_name_for_workspace_ref(workspace)
    error: Optional[str] = None
    try:
        execute_commands_for_mode(stop_plan(session_name), mode)
    except (CommandExecutionError, OSError) as e:
        error = str(e)
        logger.warning("stop failed: %s", error, extra={"op": "stop", "session_name": session_name})
    return SessionExecutionResult(
        workspace_name=workspace.name,
        workspace_path=workspace.path,
        session_name=session_name,
        error=error,
    )


def kill_workspace_session_command(project_name: Optional[str], workspace_name: str) -> Argv:
    return stop_plan(session_name_for_workspace_in_project(project_name, workspace_name))[0]


def kill_workspace_session_commands(project_name: Optional[str], workspace_name: str) -> List[Argv]:
    """Kill the agent session and its -git / -shell companions."""
    primary = session_name_for_workspace_in_project(project_name, workspace_name)
    return [["tmux", "kill-session", "-t", name] for name in (primary, f"{primary}-git", f"{primary}-shell")]
