from __future__ import annotations

import logging
import subprocess
from typing import List, Set, Tuple

from ..kernel.capture import tmux_capture_error_indicates_missing_session

logger = logging.getLogger("grove.tmux")

STATUS_CAPTURE_SCROLLBACK_LINES = 600


class CaptureError(RuntimeError):
    """Pane content could not be read (session gone, tmux error, bad bytes)."""

    @property
    def session_missing(self) -> bool:
        return tmux_capture_error_indicates_missing_session(str(self))


class TmuxError(RuntimeError):
    pass


def _run_tmux(args: List[str], *, timeout_s: float = 3.0) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["tmux", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "tmux timeout"
    except OSError as e:
        return 1, "", str(e)


def _stderr_or_status(code: int, err: str) -> str:
    msg = (err or "").strip()
    return msg or f"exit status {code}"


def capture_session_output(
    session: str,
    scrollback_lines: int = STATUS_CAPTURE_SCROLLBACK_LINES,
    include_escape_sequences: bool = True,
    *,
    timeout_s: float = 3.0,
) -> str:
    args = ["tmux", "capture-pane", "-p"]
    if include_escape_sequences:
        args.append("-e")
    args += ["-t", session, "-S", f"-{int(scrollback_lines)}"]
    try:
        p = subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=timeout_s, check=False)
    except subprocess.TimeoutExpired as e:
        raise CaptureError(f"tmux capture-pane timed out for '{session}'") from e
    except OSError as e:
        raise CaptureError(f"tmux capture-pane failed for '{session}': {e}") from e
    if p.returncode != 0:
        err = (p.stderr or b"").decode("utf-8", errors="replace").strip()
        raise CaptureError(f"tmux capture-pane failed for '{session}': {err}")
    try:
        return (p.stdout or b"").decode("utf-8")
    except UnicodeDecodeError as e:
        raise CaptureError(f"tmux output utf8 decode failed: {e}") from e


def capture_output(session: str, scrollback_lines: int) -> str:
    """Plain-text capture used when scanning for resume commands."""
    return capture_session_output(session, scrollback_lines, include_escape_sequences=False)


def list_sessions() -> Set[str]:
    code, out, err = _run_tmux(["list-sessions", "-F", "#{session_name}"])
    if code != 0:
        if tmux_capture_error_indicates_missing_session(err):
            return set()
        raise TmuxError(f"tmux list-sessions failed: {_stderr_or_status(code, err)}")
    return {ln.strip() for ln in (out or "").splitlines() if ln.strip()}


def has_session(session: str) -> bool:
    code, _, _ = _run_tmux(["has-session", "-t", session])
    return code == 0


def resize_session(session: str, cols: int, rows: int) -> None:
    if cols <= 0 or rows <= 0:
        return
    width, height = str(int(cols)), str(int(rows))
    code, _, err = _run_tmux(["set-option", "-t", session, "window-size", "manual"])
    manual_error = None if code == 0 else _stderr_or_status(code, err)

    code, _, window_err = _run_tmux(["resize-window", "-t", session, "-x", width, "-y", height])
    if code == 0:
        return
    code, _, pane_err = _run_tmux(["resize-pane", "-t", session, "-x", width, "-y", height])
    if code == 0:
        return
    msg = f"tmux resize failed for '{session}': resize-window={window_err.strip()}; resize-pane={pane_err.strip()}"
    if manual_error:
        msg += f"; set-option={manual_error}"
    raise TmuxError(msg)


def paste_buffer(session: str, text: str) -> None:
    try:
        p = subprocess.run(
            ["tmux", "load-buffer", "-"],
            input=text.encode("utf-8"),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=3.0,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise TmuxError(f"tmux load-buffer failed for '{session}': {e}") from e
    if p.returncode != 0:
        raise TmuxError(f"tmux load-buffer failed for '{session}': exit status {p.returncode}")

    code, _, err = _run_tmux(["paste-buffer", "-t", session])
    if code != 0:
        raise TmuxError(f"tmux paste-buffer failed: {_stderr_or_status(code, err)}")
    logger.debug("pasted %d chars", len(text), extra={"session_name": session})
