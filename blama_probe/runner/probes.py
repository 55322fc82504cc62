from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..errors import ProbeError
from ..evidence import write_snapshot
from ..models import ChatCompletionRequest, CompletionRequest, ProbeResponse
from .client import ProbeClient

log = logging.getLogger(__name__)

console = Console()


# -----------------------------
# Public API
# -----------------------------

@dataclass
class ProbeRun:
    kind: str
    request: Dict[str, Any]
    completion: ProbeResponse
    verification: Optional[ProbeResponse] = None
    verified_response: Any = None
    started_at: str = ""

    def snapshot(self) -> Dict[str, Any]:
        snap: Dict[str, Any] = {
            "kind": self.kind,
            "started_at": self.started_at,
            "request": self.request,
            "completion": self.completion.snapshot(),
        }
        if self.verification is not None:
            snap["verification"] = {
                "response_sent": self.verified_response,
                **self.verification.snapshot(),
            }
        return snap


def show_response(label: str, resp: ProbeResponse, out: Optional[Console] = None) -> None:
    """Print status line, headers and the body exactly as received."""
    out = out if out is not None else console
    out.rule(Text(f"{label} {resp.url}"))
    out.print(Text(resp.status_line, style="bold green" if resp.ok else "bold red"))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Header")
    table.add_column("Value")
    for k, v in resp.headers.items():
        table.add_row(Text(k), Text(v))
    out.print(table)

    # Straight to the file: rich rendering would drop \r and expand tabs.
    out.file.write(resp.body)
    out.file.write("\n")
    out.file.flush()


def _save_after_failure(run: ProbeRun, path: Path) -> None:
    # Called while a probe error is in flight; never raises.
    try:
        write_snapshot(run, path)
    except OSError as e:
        log.warning("Could not write transcript to %s: %s", path, e)
    else:
        log.info("Transcript written to %s", path)


def _finish(
    run: ProbeRun,
    verify_step: Optional[Callable[[Any], ProbeResponse]],
    label: str,
    out: Optional[Console],
    snapshot_path: Optional[Path],
) -> ProbeRun:
    try:
        if verify_step is not None:
            parsed = run.completion.json_body()
            run.verified_response = parsed
            run.verification = verify_step(parsed)
            show_response(label, run.verification, out)
    except ProbeError:
        if snapshot_path is not None:
            _save_after_failure(run, snapshot_path)
        raise

    if snapshot_path is not None:
        write_snapshot(run, snapshot_path)
        log.info("Transcript written to %s", snapshot_path)
    return run


def run_completion_probe(
    client: ProbeClient,
    request: CompletionRequest,
    *,
    verify: bool = True,
    out: Optional[Console] = None,
    snapshot_path: Optional[Path] = None,
) -> ProbeRun:
    """
    Send `request` to /complete and print the result. When `verify` is set, decode the
    body and forward it with the request to /verify_completion, printing that result too.

    Raises NetworkError if a request cannot be sent, DecodeError if the completion body
    is not JSON (in which case nothing is sent to the verify endpoint). OSError from
    writing the transcript is raised only when the probe itself succeeded.
    """
    started_at = datetime.now(timezone.utc).isoformat()
    resp = client.complete(request)
    show_response("complete", resp, out)
    run = ProbeRun(kind="completion", request=request.payload(), completion=resp, started_at=started_at)

    def verify_step(parsed: Any) -> ProbeResponse:
        return client.verify(request, parsed)

    return _finish(run, verify_step if verify else None, "verify", out, snapshot_path)


def run_chat_probe(
    client: ProbeClient,
    request: ChatCompletionRequest,
    *,
    verify: bool = True,
    out: Optional[Console] = None,
    snapshot_path: Optional[Path] = None,
) -> ProbeRun:
    """Same flow as run_completion_probe against the chat endpoints."""
    started_at = datetime.now(timezone.utc).isoformat()
    resp = client.chat_complete(request)
    show_response("chat", resp, out)
    run = ProbeRun(kind="chat", request=request.payload(), completion=resp, started_at=started_at)

    def verify_step(parsed: Any) -> ProbeResponse:
        return client.chat_verify(request, parsed)

    return _finish(run, verify_step if verify else None, "chat verify", out, snapshot_path)
