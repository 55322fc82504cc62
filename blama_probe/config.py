from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from .models import ProbeSettings

# -----------------------------
# YAML loaders
# -----------------------------

def _read_yaml(path: str | os.PathLike) -> dict:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"YAML file not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping/object: {p}")
    return data


# -----------------------------
# Config loaders
# -----------------------------

def load_settings(path: str | os.PathLike) -> ProbeSettings:
    """Load and validate a probe config file (probe.yml) into ProbeSettings."""
    raw = _read_yaml(path)
    try:
        return ProbeSettings.model_validate(raw)
    except ValidationError as ve:
        raise ValueError(f"Invalid probe config {path}:\n{ve}") from ve


def resolve_settings(path: Optional[str | os.PathLike] = None, **overrides: Any) -> ProbeSettings:
    """
    Settings from `path` (or defaults), with non-None keyword overrides applied on top.
    Overrides go through validation as well.
    """
    base = load_settings(path) if path is not None else ProbeSettings()
    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return base
    merged = base.model_dump()
    merged.update(changes)
    try:
        return ProbeSettings.model_validate(merged)
    except ValidationError as ve:
        raise ValueError(f"Invalid probe settings:\n{ve}") from ve
