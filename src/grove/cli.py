from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from . import __version__
from .contracts.v1 import AgentType, EnvPair, SessionActivity, Workspace, WorkspaceStatus
from .kernel.capture import evaluate_capture_change
from .kernel.launch_plan import build_launch_plan, launch_request_for_workspace, stop_plan
from .kernel.restart import execute_restart_workspace_in_pane_with_result
from .kernel.sessions import TMUX_SESSION_PREFIX, session_name_for_workspace_ref
from .kernel.settings import GroveSettings, load_settings, parse_agent_env
from .kernel.status import detect_status_with_session_override, latest_attention_marker
from .runners import tmux
from .runners.execution import (
    CommandExecutionMode,
    execute_launch_request_with_result_for_mode,
    execute_stop_workspace_with_result_for_mode,
)
from .util.obslog import resolve_log_level, setup_root_json_logging


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _error(code: str, message: str) -> int:
    _print_json({"ok": False, "error": {"code": code, "message": message}})
    return 2


def _workspace_from_args(args: argparse.Namespace) -> Workspace:
    name = str(args.workspace or "").strip()
    path = Path(args.path or ".").expanduser().resolve()
    return Workspace(
        name=name,
        path=path,
        branch=str(getattr(args, "branch", "") or name),
        agent=AgentType(args.agent),
        project_name=(str(args.project).strip() or None) if args.project else None,
        status=WorkspaceStatus.IDLE,
    )


def _launch_defaults(settings: GroveSettings, args: argparse.Namespace, agent: AgentType):
    """Resolve (init command, agent env, skip permissions) from flags over project defaults."""
    project = settings.project_named(args.project)
    init_command: Optional[str] = getattr(args, "init", None)
    agent_env: List[EnvPair] = []
    if project is not None:
        if init_command is None:
            init_command = project.defaults.workspace_init_command or None
        agent_env = project.defaults.env_for(agent)
    agent_env += parse_agent_env(list(args.env or []))
    skip = settings.launch_skip_permissions if args.skip_permissions is None else bool(args.skip_permissions)
    return init_command, agent_env, skip


def _launch_request(args: argparse.Namespace):
    workspace = _workspace_from_args(args)
    init_command, agent_env, skip = _launch_defaults(load_settings(), args, workspace.agent)
    return launch_request_for_workspace(
        workspace,
        prompt=args.prompt,
        workspace_init_command=init_command,
        skip_permissions=skip,
        agent_env=agent_env,
        capture_cols=args.cols,
        capture_rows=args.rows,
    )


def cmd_plan(args: argparse.Namespace) -> int:
    request = _launch_request(args)
    plan = build_launch_plan(request)
    _print_json({"ok": True, "result": {"plan": plan.model_dump(mode="json"), "stop": stop_plan(plan.session_name)}})
    return 0


def cmd_start(args: argparse.Namespace) -> int:
    result = execute_launch_request_with_result_for_mode(_launch_request(args), CommandExecutionMode.process())
    _print_json({"ok": result.ok, "result": result.model_dump(mode="json")})
    return 0 if result.ok else 1


def cmd_stop(args: argparse.Namespace) -> int:
    result = execute_stop_workspace_with_result_for_mode(_workspace_from_args(args), CommandExecutionMode.process())
    _print_json({"ok": result.ok, "result": result.model_dump(mode="json")})
    return 0 if result.ok else 1


def cmd_restart(args: argparse.Namespace) -> int:
    workspace = _workspace_from_args(args)
    _, agent_env, skip = _launch_defaults(load_settings(), args, workspace.agent)
    result = execute_restart_workspace_in_pane_with_result(workspace, skip, agent_env)
    _print_json({"ok": result.ok, "result": result.model_dump(mode="json")})
    return 0 if result.ok else 1


def cmd_status(args: argparse.Namespace) -> int:
    workspace = _workspace_from_args(args)
    session_name = session_name_for_workspace_ref(workspace)
    try:
        raw = tmux.capture_session_output(session_name)
    except tmux.CaptureError as e:
        if not e.session_missing:
            return _error("capture_failed", str(e))
        status = WorkspaceStatus.IDLE
    else:
        change = evaluate_capture_change(None, raw)
        status = detect_status_with_session_override(
            change.cleaned_output,
            SessionActivity.ACTIVE,
            workspace.is_main,
            True,
            workspace.supported_agent,
            workspace.agent,
            workspace.path,
        )
    _print_json(
        {
            "ok": True,
            "result": {
                "workspace": workspace.name,
                "session_name": session_name,
                "status": status.value,
                "has_session": status.has_session(),
                "attention_marker": latest_attention_marker(workspace.agent, workspace.path),
            },
        }
    )
    return 0


def cmd_sessions(args: argparse.Namespace) -> int:
    try:
        running = {s for s in tmux.list_sessions() if s.startswith(TMUX_SESSION_PREFIX)}
    except tmux.TmuxError as e:
        return _error("tmux_failed", str(e))
    _print_json({"ok": True, "result": {"sessions": sorted(running)}})
    return 0


def _require_session(args: argparse.Namespace):
    """Return (session name, None) when the workspace session is live, else (name, exit code)."""
    session_name = session_name_for_workspace_ref(_workspace_from_args(args))
    if not tmux.has_session(session_name):
        return session_name, _error("session_missing", f"no tmux session '{session_name}'")
    return session_name, None


def cmd_resize(args: argparse.Namespace) -> int:
    session_name, failed = _require_session(args)
    if failed is not None:
        return failed
    try:
        tmux.resize_session(session_name, int(args.cols), int(args.rows))
    except tmux.TmuxError as e:
        return _error("tmux_failed", str(e))
    _print_json({"ok": True, "result": {"session_name": session_name, "cols": args.cols, "rows": args.rows}})
    return 0


def cmd_paste(args: argparse.Namespace) -> int:
    session_name, failed = _require_session(args)
    if failed is not None:
        return failed
    text = args.text if args.text is not None else sys.stdin.read()
    try:
        tmux.paste_buffer(session_name, text)
    except tmux.TmuxError as e:
        return _error("tmux_failed", str(e))
    _print_json({"ok": True, "result": {"session_name": session_name, "chars": len(text)}})
    return 0


def cmd_version(_: argparse.Namespace) -> int:
    print(__version__)
    return 0


def _add_workspace_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("workspace", help="Workspace name")
    p.add_argument("--path", default=".", help="Workspace path (default: .)")
    p.add_argument("--project", default="", help="Project name (prefixes the session name)")
    p.add_argument(
        "--agent",
        default=AgentType.CLAUDE.value,
        choices=[a.value for a in AgentType.all()],
        help="Agent (default: claude)",
    )


def _add_launch_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--prompt", default=None, help="Initial prompt for the agent")
    p.add_argument("--init", default=None, help="Workspace init command (default: project settings)")
    p.add_argument("--env", action="append", default=[], help="KEY=VALUE agent environment (repeatable)")
    p.add_argument("--cols", type=int, default=None, help="Initial pane width")
    p.add_argument("--rows", type=int, default=None, help="Initial pane height")


def _add_skip_args(p: argparse.ArgumentParser) -> None:
    g = p.add_mutually_exclusive_group()
    g.add_argument("--skip-permissions", dest="skip_permissions", action="store_true", default=None)
    g.add_argument("--no-skip-permissions", dest="skip_permissions", action="store_false", default=None)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="grove", description="Agent sessions in tmux, one per workspace")
    p.add_argument("--log-level", default=None, help="Log level (default: $GROVE_LOG_LEVEL or settings)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_plan = sub.add_parser("plan", help="Print the launch plan for a workspace without running it")
    _add_workspace_args(p_plan)
    _add_launch_args(p_plan)
    _add_skip_args(p_plan)
    p_plan.set_defaults(func=cmd_plan)

    p_start = sub.add_parser("start", help="Start the workspace's agent session")
    _add_workspace_args(p_start)
    _add_launch_args(p_start)
    _add_skip_args(p_start)
    p_start.set_defaults(func=cmd_start)

    p_stop = sub.add_parser("stop", help="Kill the workspace's agent session")
    _add_workspace_args(p_stop)
    p_stop.set_defaults(func=cmd_stop)

    p_restart = sub.add_parser("restart", help="Exit the agent in place and resume it")
    _add_workspace_args(p_restart)
    p_restart.add_argument("--env", action="append", default=[], help="KEY=VALUE agent environment (repeatable)")
    _add_skip_args(p_restart)
    p_restart.set_defaults(func=cmd_restart)

    p_status = sub.add_parser("status", help="Capture the session and classify its status")
    _add_workspace_args(p_status)
    p_status.set_defaults(func=cmd_status)

    p_resize = sub.add_parser("resize", help="Resize the workspace's agent pane")
    _add_workspace_args(p_resize)
    p_resize.add_argument("--cols", type=int, required=True, help="Pane width")
    p_resize.add_argument("--rows", type=int, required=True, help="Pane height")
    p_resize.set_defaults(func=cmd_resize)

    p_paste = sub.add_parser("paste", help="Paste text into the workspace's agent pane")
    _add_workspace_args(p_paste)
    p_paste.add_argument("--text", default=None, help="Text to paste (default: read stdin)")
    p_paste.set_defaults(func=cmd_paste)

    p_sessions = sub.add_parser("sessions", help="List live grove tmux sessions")
    p_sessions.set_defaults(func=cmd_sessions)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings()
    setup_root_json_logging(
        component="grove",
        level=resolve_log_level(args.log_level, settings.log_level),
        stream=sys.stderr,
    )
    try:
        return int(args.func(args))
    except ValueError as e:
        return _error("invalid_argument", str(e))


if __name__ == "__main__":
    raise SystemExit(main())
