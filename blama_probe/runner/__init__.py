from __future__ import annotations

from .client import ProbeClient, complete, verify
from .probes import ProbeRun, run_chat_probe, run_completion_probe

__all__ = ["ProbeClient", "ProbeRun", "complete", "verify", "run_chat_probe", "run_completion_probe"]
