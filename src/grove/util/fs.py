from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional


def atomic_write_text(path: Path, text: str, *, encoding: str = "utf-8", mode: Optional[int] = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(text)
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(tmp, path)
    finally:
        try:
            if os.path.exists(tmp):
                os.unlink(tmp)
        except Exception:
            pass


def read_tail_text(path: Path, max_bytes: int) -> str:
    """Return the last `max_bytes` of a file as text, starting at a line boundary.

    Missing or unreadable files read as empty.
    """
    try:
        size = path.stat().st_size
    except OSError:
        return ""
    if size <= 0:
        return ""
    limit = max(1, int(max_bytes))
    try:
        with open(path, "rb") as f:
            if size > limit:
                f.seek(size - limit)
                # Skip the partial first line.
                f.readline()
            data = f.read()
    except OSError:
        return ""
    return data.decode("utf-8", errors="replace")
