from __future__ import annotations

from typer.testing import CliRunner

from blama_probe import __version__
from blama_probe._json import loads
from blama_probe.cli import app
from blama_probe.mockserver import text_reply

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_no_subcommand_runs_default_smoke_test(mock_server):
    result = runner.invoke(app, ["--base-url", mock_server.base_url])

    assert result.exit_code == 0, result.output
    assert mock_server.requests_to("/complete")[0].json() == {
        "prompt": "The first man to",
        "max_tokens": 20,
    }
    assert len(mock_server.requests_to("/verify_completion")) == 1
    assert "verify: 200" in result.output


def test_complete_command_with_options_and_save(mock_server, tmp_path):
    out = tmp_path / "runs" / "run.json"
    result = runner.invoke(
        app,
        [
            "--base-url", mock_server.base_url,
            "complete", "Once upon a time",
            "--max-tokens", "3",
            "--seed", "7",
            "--save", str(out),
        ],
    )

    assert result.exit_code == 0, result.output
    assert mock_server.requests_to("/complete")[0].json() == {
        "prompt": "Once upon a time",
        "max_tokens": 3,
        "seed": 7,
    }
    saved = loads(out.read_bytes())
    assert saved["kind"] == "completion"
    assert saved["completion"]["status"] == 200
    assert saved["verification"]["response_sent"]["text"]


def test_complete_no_verify(mock_server):
    result = runner.invoke(app, ["--base-url", mock_server.base_url, "complete", "--no-verify"])
    assert result.exit_code == 0, result.output
    assert mock_server.requests_to("/verify_completion") == []


def test_unreachable_server_exits_nonzero(dead_url):
    result = runner.invoke(app, ["--base-url", dead_url, "complete"])
    assert result.exit_code == 1
    assert "Request failed" in result.output


def test_malformed_completion_exits_nonzero(mock_server):
    mock_server.routes["/complete"] = text_reply("<html>oops</html>")
    result = runner.invoke(app, ["--base-url", mock_server.base_url, "complete"])

    assert result.exit_code == 1
    assert "Response malformed" in result.output
    assert mock_server.requests_to("/verify_completion") == []


def test_chat_command(mock_server):
    result = runner.invoke(
        app,
        [
            "--base-url", mock_server.base_url,
            "chat",
            "-m", "system:Be brief.",
            "-m", "user:Who was first on the moon?",
            "-n", "4",
        ],
    )

    assert result.exit_code == 0, result.output
    sent = mock_server.requests_to("/chat/completions")[0].json()
    assert [m["role"] for m in sent["messages"]] == ["system", "user"]
    assert len(mock_server.requests_to("/chat/verify_completion")) == 1


def test_config_file_is_used(mock_server, tmp_path):
    cfg = tmp_path / "probe.yml"
    cfg.write_text(f"base_url: {mock_server.base_url}\nverify: false\nmax_tokens: 2\n", encoding="utf-8")

    result = runner.invoke(app, ["--config", str(cfg)])

    assert result.exit_code == 0, result.output
    assert mock_server.requests_to("/complete")[0].json()["max_tokens"] == 2
    assert mock_server.requests_to("/verify_completion") == []


def test_missing_config_file(tmp_path):
    result = runner.invoke(app, ["--config", str(tmp_path / "nope.yml"), "complete"])
    assert result.exit_code == 2


def test_invalid_base_url():
    result = runner.invoke(app, ["--base-url", "localhost", "complete"])
    assert result.exit_code == 2
    assert "Invalid configuration" in result.output


def test_save_to_directory_keeps_malformed_response_error(mock_server, tmp_path):
    mock_server.routes["/complete"] = text_reply("<html>oops</html>")
    result = runner.invoke(app, ["--base-url", mock_server.base_url, "complete", "--save", str(tmp_path)])

    assert result.exit_code == 1
    assert "Response malformed" in result.output
    assert mock_server.requests_to("/verify_completion") == []


def test_save_to_directory_after_successful_run(mock_server, tmp_path):
    result = runner.invoke(app, ["--base-url", mock_server.base_url, "complete", "--save", str(tmp_path)])

    assert result.exit_code == 2
    assert "Failed to write transcript" in result.output
