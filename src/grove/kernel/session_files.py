"""Agent session-log inspection.

Claude Code and Codex persist every conversation as JSONL under the user's
home directory. Reading the tail of the newest log for a workspace tells us
more than the pane text can: whether the agent finished its turn, when it
last wrote anything, how it was launched, and how to resume it.

Every function takes an explicit `home` so tests can point at a temp dir.
OpenCode keeps no log we read; all lookups answer None for it.
"""
from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..contracts.v1 import AgentType, WorkspaceStatus
from ..util.fs import read_tail_text

logger = logging.getLogger("grove.session_files")

SESSION_STATUS_TAIL_BYTES = 256 * 1024
SESSION_ACTIVITY_THRESHOLD_S = 30.0
# Bounded scan of Codex rollouts (newest first) when matching a workspace cwd.
CODEX_ROLLOUT_SCAN_LIMIT = 200

_CLAUDE_DIR_RE = re.compile(r"[^A-Za-z0-9]")


def claude_project_dir_name(workspace_path: Path) -> str:
    """Claude names a project's log dir after its path with non-alphanumerics as '-'."""
    return _CLAUDE_DIR_RE.sub("-", str(workspace_path))


def _norm(path: Any) -> str:
    return os.path.normpath(str(Path(str(path)).expanduser()))


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def _newest(paths: List[Path]) -> Optional[Path]:
    files = [p for p in paths if p.is_file()]
    if not files:
        return None
    return max(files, key=_mtime)


def _jsonl_rows(text: str) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        try:
            row = json.loads(line)
        except json.JSONDecodeError:
            # Partial trailing write.
            continue
        if isinstance(row, dict):
            rows.append(row)
    return rows


def _tail_rows(path: Path) -> List[Dict[str, Any]]:
    return _jsonl_rows(read_tail_text(path, SESSION_STATUS_TAIL_BYTES))


def _first_row(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            line = f.readline()
    except OSError:
        return {}
    rows = _jsonl_rows(line)
    return rows[0] if rows else {}


# ---------------------------------------------------------------------------
# Claude
# ---------------------------------------------------------------------------


def claude_session_file(workspace_path: Path, home: Path) -> Optional[Path]:
    project_dir = Path(home) / ".claude" / "projects" / claude_project_dir_name(Path(workspace_path))
    if not project_dir.is_dir():
        return None
    return _newest(list(project_dir.glob("*.jsonl")))


def _claude_conversation_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [r for r in rows if str(r.get("type") or "") in ("user", "assistant")]


def _claude_turn_finished(row: Dict[str, Any]) -> bool:
    if str(row.get("type") or "") != "assistant":
        return False
    message = row.get("message") if isinstance(row.get("message"), dict) else {}
    stop_reason = message.get("stop_reason")
    if not stop_reason or stop_reason == "tool_use":
        return False
    content = message.get("content")
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "tool_use":
                return False
    return True


def _claude_session_id(path: Path, rows: List[Dict[str, Any]]) -> str:
    for row in reversed(rows):
        sid = row.get("sessionId")
        if isinstance(sid, str) and sid.strip():
            return sid.strip()
    return path.stem


def _claude_status(workspace_path: Path, home: Path, threshold_s: float, now: float) -> Optional[WorkspaceStatus]:
    path = claude_session_file(workspace_path, home)
    if path is None:
        return None
    convo = _claude_conversation_rows(_tail_rows(path))
    if convo and _claude_turn_finished(convo[-1]):
        return WorkspaceStatus.WAITING
    if now - _mtime(path) <= threshold_s:
        return WorkspaceStatus.ACTIVE
    return None


def _claude_attention_marker(workspace_path: Path, home: Path) -> Optional[str]:
    path = claude_session_file(workspace_path, home)
    if path is None:
        return None
    rows = _tail_rows(path)
    convo = _claude_conversation_rows(rows)
    for row in reversed(convo):
        if _claude_turn_finished(row):
            ident = str(row.get("uuid") or row.get("timestamp") or "").strip()
            if ident:
                return f"{_claude_session_id(path, rows)}:{ident}"
            return None
    return None


def _claude_resume_command(workspace_path: Path, home: Path) -> Optional[str]:
    path = claude_session_file(workspace_path, home)
    if path is None:
        return None
    return f"claude --resume {_claude_session_id(path, _tail_rows(path))}"


def _claude_skip_permissions(workspace_path: Path, home: Path) -> Optional[bool]:
    path = claude_session_file(workspace_path, home)
    if path is None:
        return None
    for row in reversed(_tail_rows(path)):
        mode = row.get("permissionMode")
        if isinstance(mode, str) and mode:
            return mode == "bypassPermissions"
    return False


# ---------------------------------------------------------------------------
# Codex
# ---------------------------------------------------------------------------


def codex_session_file(workspace_path: Path, home: Path) -> Optional[Path]:
    """Newest rollout whose session_meta cwd is the workspace path."""
    root = Path(home) / ".codex" / "sessions"
    if not root.is_dir():
        return None
    wanted = _norm(workspace_path)
    rollouts = sorted(root.glob("**/rollout-*.jsonl"), key=_mtime, reverse=True)
    for path in rollouts[:CODEX_ROLLOUT_SCAN_LIMIT]:
        meta = _first_row(path)
        if str(meta.get("type") or "") != "session_meta":
            continue
        payload = meta.get("payload") if isinstance(meta.get("payload"), dict) else {}
        cwd = payload.get("cwd")
        if isinstance(cwd, str) and cwd and _norm(cwd) == wanted:
            return path
    logger.debug("no codex rollout matched cwd %s", wanted)
    return None


def _codex_event_type(row: Dict[str, Any]) -> str:
    if str(row.get("type") or "") != "event_msg":
        return ""
    payload = row.get("payload") if isinstance(row.get("payload"), dict) else {}
    return str(payload.get("type") or "")


def _codex_session_id(path: Path) -> str:
    payload = _first_row(path).get("payload")
    if isinstance(payload, dict):
        sid = payload.get("id")
        if isinstance(sid, str) and sid.strip():
            return sid.strip()
    return path.stem


def _codex_status(workspace_path: Path, home: Path, threshold_s: float, now: float) -> Optional[WorkspaceStatus]:
    path = codex_session_file(workspace_path, home)
    if path is None:
        return None
    for row in reversed(_tail_rows(path)):
        kind = _codex_event_type(row)
        if kind == "task_complete":
            return WorkspaceStatus.WAITING
        if kind == "task_started":
            break
    if now - _mtime(path) <= threshold_s:
        return WorkspaceStatus.ACTIVE
    return None


def _codex_attention_marker(workspace_path: Path, home: Path) -> Optional[str]:
    path = codex_session_file(workspace_path, home)
    if path is None:
        return None
    for row in reversed(_tail_rows(path)):
        if _codex_event_type(row) == "task_complete":
            ts = str(row.get("timestamp") or "").strip()
            return f"{_codex_session_id(path)}:{ts}" if ts else None
    return None


def _codex_resume_command(workspace_path: Path, home: Path) -> Optional[str]:
    path = codex_session_file(workspace_path, home)
    if path is None:
        return None
    return f"codex resume {_codex_session_id(path)}"


def _codex_skip_permissions(workspace_path: Path, home: Path) -> Optional[bool]:
    path = codex_session_file(workspace_path, home)
    if path is None:
        return None
    for row in reversed(_tail_rows(path)):
        if str(row.get("type") or "") != "turn_context":
            continue
        payload = row.get("payload") if isinstance(row.get("payload"), dict) else {}
        sandbox = payload.get("sandbox_policy")
        mode = sandbox.get("mode") if isinstance(sandbox, dict) else sandbox
        return payload.get("approval_policy") == "never" and mode == "danger-full-access"
    return False


# ---------------------------------------------------------------------------
# Dispatch by agent
# ---------------------------------------------------------------------------


def detect_agent_session_status_in_home(
    agent: AgentType,
    workspace_path: Path,
    home: Path,
    activity_threshold_s: float = SESSION_ACTIVITY_THRESHOLD_S,
    *,
    now: Optional[float] = None,
) -> Optional[WorkspaceStatus]:
    agent = AgentType(agent)
    ts = time.time() if now is None else float(now)
    if agent is AgentType.CLAUDE:
        return _claude_status(Path(workspace_path), Path(home), activity_threshold_s, ts)
    if agent is AgentType.CODEX:
        return _codex_status(Path(workspace_path), Path(home), activity_threshold_s, ts)
    return None


def latest_attention_marker_in_home(agent: AgentType, workspace_path: Path, home: Path) -> Optional[str]:
    agent = AgentType(agent)
    if agent is AgentType.CLAUDE:
        return _claude_attention_marker(Path(workspace_path), Path(home))
    if agent is AgentType.CODEX:
        return _codex_attention_marker(Path(workspace_path), Path(home))
    return None


def infer_resume_command_in_home(agent: AgentType, workspace_path: Path, home: Path) -> Optional[str]:
    agent = AgentType(agent)
    if agent is AgentType.CLAUDE:
        return _claude_resume_command(Path(workspace_path), Path(home))
    if agent is AgentType.CODEX:
        return _codex_resume_command(Path(workspace_path), Path(home))
    return None


def infer_skip_permissions_in_home(agent: AgentType, workspace_path: Path, home: Path) -> Optional[bool]:
    agent = AgentType(agent)
    if agent is AgentType.CLAUDE:
        return _claude_skip_permissions(Path(workspace_path), Path(home))
    if agent is AgentType.CODEX:
        return _codex_skip_permissions(Path(workspace_path), Path(home))
    return None
