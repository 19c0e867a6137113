from __future__ import annotations

from . import execution, tmux

__all__ = ["execution", "tmux"]
