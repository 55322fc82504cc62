from __future__ import annotations

from pathlib import Path
from typing import Any

from ._json import dumps


def write_snapshot(obj: Any, path: Path) -> Path:
    """Write a probe transcript to disk as pretty JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = obj.snapshot() if hasattr(obj, "snapshot") else obj
    path.write_bytes(dumps(payload, indent=2))
    return path

__all__ = ["write_snapshot"]
