"""Cheap change detection over captured pane text."""
from __future__ import annotations

import hashlib
import re
from typing import Optional

from ..contracts.v1 import CaptureChange, OutputDigest

ESC = "\x1b"

_MISSING_SESSION_MARKERS = (
    "can't find pane",
    "can't find session",
    "no server running",
    "no sessions",
    "failed to connect to server",
    "no active session",
    "session not found",
)

_MOUSE_MODES = (1000, 1002, 1003, 1005, 1006, 1015, 2004)
_MODE_TOGGLE_RE = re.compile(
    r"(?:\x1b)?\[\?(?:%s)[hl]" % "|".join(str(m) for m in _MOUSE_MODES)
)
# SGR mouse reports that lost their ESC prefix, e.g. "[<35;12;4M".
_PARTIAL_MOUSE_RE = re.compile(r"[Mm]?\[<\d+;\d+;\d+[Mm]?")

_CHARSET_INTRODUCERS = "()*+-./#"
_STRING_INTRODUCERS = "PX^_"


def tmux_capture_error_indicates_missing_session(error: str) -> bool:
    lower = str(error or "").lower()
    return any(marker in lower for marker in _MISSING_SESSION_MARKERS)


def _is_safe_text_char(ch: str) -> bool:
    if ch in "\n\t":
        return True
    code = ord(ch)
    return not (code < 0x20 or 0x7F <= code <= 0x9F)


def _is_final_byte(ch: str) -> bool:
    return "\x40" <= ch <= "\x7e"


def strip_non_sgr_control_sequences(text: str) -> str:
    """Drop cursor/OSC/DCS noise and stray control chars; keep SGR colour sequences."""
    out = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        i += 1
        if ch != ESC:
            if _is_safe_text_char(ch):
                out.append(ch)
            continue
        if i >= n:
            break
        nxt = text[i]
        i += 1
        if nxt == "[":
            start = i - 2
            while i < n and not _is_final_byte(text[i]):
                i += 1
            if i >= n:
                continue
            final = text[i]
            i += 1
            if final == "m":
                out.append(text[start:i])
        elif nxt == "]":
            # OSC ends at BEL or ST.
            while i < n:
                if text[i] == "\x07":
                    i += 1
                    break
                if text[i] == ESC and i + 1 < n and text[i + 1] == "\\":
                    i += 2
                    break
                i += 1
        elif nxt in _STRING_INTRODUCERS:
            while i < n:
                if text[i] == ESC and i + 1 < n and text[i + 1] == "\\":
                    i += 2
                    break
                i += 1
        elif nxt in _CHARSET_INTRODUCERS:
            i += 1
    return "".join(out)


def strip_sgr_sequences(text: str) -> str:
    out = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        i += 1
        if ch == ESC:
            if i < n and text[i] == "[":
                i += 1
                while i < n and not _is_final_byte(text[i]):
                    i += 1
                i += 1
            continue
        if _is_safe_text_char(ch):
            out.append(ch)
    return "".join(out)


def strip_mouse_fragments(text: str) -> str:
    return _PARTIAL_MOUSE_RE.sub("", _MODE_TOGGLE_RE.sub("", text))


def content_hash(content: str) -> int:
    """Stable 64-bit fingerprint (same across processes, unlike hash())."""
    digest = hashlib.blake2b(content.encode("utf-8", "surrogatepass"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def evaluate_capture_change(previous: Optional[OutputDigest], raw_output: str) -> CaptureChange:
    render_output = strip_non_sgr_control_sequences(raw_output)
    cleaned_output = strip_mouse_fragments(strip_sgr_sequences(render_output))
    digest = OutputDigest(
        raw_hash=content_hash(raw_output),
        raw_len=len(raw_output.encode("utf-8", "surrogatepass")),
        cleaned_hash=content_hash(cleaned_output),
    )
    if previous is None:
        return CaptureChange(
            digest=digest,
            changed_raw=True,
            changed_cleaned=True,
            cleaned_output=cleaned_output,
            render_output=render_output,
        )
    return CaptureChange(
        digest=digest,
        changed_raw=previous.raw_hash != digest.raw_hash or previous.raw_len != digest.raw_len,
        changed_cleaned=previous.cleaned_hash != digest.cleaned_hash,
        cleaned_output=cleaned_output,
        render_output=render_output,
    )
