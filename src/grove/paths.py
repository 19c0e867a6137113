from __future__ import annotations

import os
from pathlib import Path


def grove_home() -> Path:
    env = os.environ.get("GROVE_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".grove").resolve()


def ensure_home() -> Path:
    home = grove_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


def agent_home() -> Path:
    """Root under which agents keep their own session logs (~/.claude, ~/.codex)."""
    env = os.environ.get("GROVE_AGENT_HOME", "").strip()
    if env:
        return Path(env).expanduser()
    return Path.home()
