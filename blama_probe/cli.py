from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import resolve_settings
from .errors import DecodeError, NetworkError
from .logging_setup import setup_logging
from .mockserver import DEFAULT_HOST, DEFAULT_PORT, MockInferenceServer
from .models import ChatCompletionRequest, ChatMessage, ProbeSettings
from .runner import ProbeClient, ProbeRun, run_chat_probe, run_completion_probe

app = typer.Typer(add_completion=False, help="blama-probe: smoke tests for a local inference server")
console = Console()


# -----------------------------
# Global callback / --version
# -----------------------------

@app.callback(invoke_without_command=True)
def _main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        is_eager=True,
    ),
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        help="Inference server root URL (default: http://localhost:7331).",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to probe.yml (base_url, timeout_s, prompt, max_tokens, verify, sampling options).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds (default: wait indefinitely).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log request details to stderr.",
    ),
):
    """
    With no sub-command, sends the configured prompt to /complete and forwards the
    result to /verify_completion.
    """
    if version:
        console.print(f"blama-probe {__version__}")
        raise typer.Exit()

    setup_logging(logging.DEBUG if verbose else logging.WARNING)

    if config is not None and not config.is_file():
        console.print(f"[red]Error: config file not found: {config}[/red]")
        raise typer.Exit(code=2)
    try:
        settings = resolve_settings(config, base_url=base_url, timeout_s=timeout)
    except (ValueError, OSError) as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        request = settings.completion_request()
        _execute(
            settings,
            lambda client: run_completion_probe(client, request, verify=settings.verify, out=console),
        )


@app.command(help="Show version.")
def version() -> None:
    console.print(f"blama-probe {__version__}")


# -----------------------------
# Helpers
# -----------------------------

def _client(settings: ProbeSettings) -> ProbeClient:
    return ProbeClient(settings.base_url, timeout_s=settings.timeout_s)


def _execute(settings: ProbeSettings, probe: Callable[[ProbeClient], ProbeRun]) -> ProbeRun:
    try:
        run = probe(_client(settings))
    except NetworkError as e:
        console.print(f"[red]Request failed:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)
    except DecodeError as e:
        console.print(f"[red]Response malformed:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)
    except OSError as e:
        console.print(f"[red]Failed to write transcript:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)

    summary = f"{run.kind}: {run.completion.status_code}"
    if run.verification is not None:
        summary += f", verify: {run.verification.status_code}"
    console.print(f"[green]Done.[/green] {summary}")
    return run


def _settings(ctx: typer.Context) -> ProbeSettings:
    return ctx.obj if isinstance(ctx.obj, ProbeSettings) else ProbeSettings()


# -----------------------------
# Commands
# -----------------------------

@app.command(help="POST a prompt to /complete, then verify it via /verify_completion.")
def complete(
    ctx: typer.Context,
    prompt: Optional[str] = typer.Argument(
        None,
        help="Prompt text (default: the configured prompt, 'The first man to').",
    ),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", "-n", help="Tokens to generate."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Sampler seed."),
    temp: Optional[float] = typer.Option(None, "--temp", help="Sampling temperature."),
    top_p: Optional[float] = typer.Option(None, "--top-p", help="Nucleus sampling threshold."),
    suffix: Optional[str] = typer.Option(None, "--suffix", help="Text the completion must lead into."),
    no_verify: bool = typer.Option(False, "--no-verify", help="Skip the /verify_completion call."),
    save: Optional[Path] = typer.Option(None, "--save", help="Write the exchange as JSON to this path."),
):
    settings = _settings(ctx)
    try:
        request = settings.completion_request(
            prompt,
            max_tokens=max_tokens,
            seed=seed,
            temp=temp,
            top_p=top_p,
            suffix=suffix,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid request:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)

    verify = settings.verify and not no_verify
    _execute(
        settings,
        lambda client: run_completion_probe(client, request, verify=verify, out=console, snapshot_path=save),
    )


@app.command(help="POST messages to /chat/completions, then verify via /chat/verify_completion.")
def chat(
    ctx: typer.Context,
    messages: List[str] = typer.Option(
        ...,
        "--message",
        "-m",
        help="Message as ROLE:CONTENT (system/user/assistant); repeat for a conversation.",
    ),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", "-n", help="Tokens to generate."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Sampler seed."),
    temp: Optional[float] = typer.Option(None, "--temp", help="Sampling temperature."),
    top_p: Optional[float] = typer.Option(None, "--top-p", help="Nucleus sampling threshold."),
    no_verify: bool = typer.Option(False, "--no-verify", help="Skip the /chat/verify_completion call."),
    save: Optional[Path] = typer.Option(None, "--save", help="Write the exchange as JSON to this path."),
):
    settings = _settings(ctx)
    try:
        request = ChatCompletionRequest(
            messages=[ChatMessage.parse(m) for m in messages],
            max_tokens=max_tokens if max_tokens is not None else settings.max_tokens,
            seed=seed if seed is not None else settings.seed,
            temp=temp if temp is not None else settings.temp,
            top_p=top_p if top_p is not None else settings.top_p,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid request:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)

    verify = settings.verify and not no_verify
    _execute(
        settings,
        lambda client: run_chat_probe(client, request, verify=verify, out=console, snapshot_path=save),
    )


@app.command(help="Run a mock inference server in the foreground.")
def mock(
    host: str = typer.Option(DEFAULT_HOST, "--host", help="Interface to bind."),
    port: int = typer.Option(DEFAULT_PORT, "--port", help="Port to listen on."),
):
    try:
        server = MockInferenceServer(host, port)
    except OSError as e:
        console.print(f"[red]Cannot listen on {host}:{port}:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)

    console.print(f"Mock inference server listening on {server.base_url}")
    console.print("Routes:")
    console.print("  POST /complete")
    console.print("  POST /verify_completion")
    console.print("  POST /chat/completions")
    console.print("  POST /chat/verify_completion")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        console.print("\nShutting down...")
    finally:
        server.stop()


if __name__ == "__main__":
    app()
