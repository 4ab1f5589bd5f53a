"""Tests for the command-line entry point."""

from __future__ import annotations

import io
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from rich.console import Console

from ecom_mailer import main as cli
from ecom_mailer.health.engine import CheckResult, Status

from .conftest import make_settings


def _result(check_id: str, up: bool) -> CheckResult:
    return CheckResult(
        check_id=check_id, label=check_id.upper(),
        status=Status.UP if up else Status.DOWN, latency_ms=3.0,
        message="OK" if up else "Connection refused",
    )


class TestParser:
    def test_defaults_to_run(self) -> None:
        args = cli.build_parser().parse_args([])
        assert args.command is None
        assert args.env_file == ".env"

    def test_check_only(self) -> None:
        args = cli.build_parser().parse_args(["--env-file", "prod.env", "check", "--only", "imap, smtp"])
        assert args.command == "check"
        assert args.only == ["imap", "smtp"]
        assert args.env_file == "prod.env"

    def test_empty_only_rejected(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            cli.build_parser().parse_args(["check", "--only", " , "])
        assert exc.value.code == 2
        assert "expected at least one check id" in capsys.readouterr().err


class TestRunCheck:
    def test_exit_zero_when_all_up(self) -> None:
        results = [_result(c, True) for c in ("imap", "smtp", "postgres", "ollama")]
        with patch.object(cli.ConnectivityProber, "run_all", AsyncMock(return_value=results)):
            assert cli.run_check(make_settings()) == 0

    def test_exit_one_on_any_failure(self) -> None:
        results = [_result("imap", True), _result("postgres", False)]
        with patch.object(cli.ConnectivityProber, "run_all", AsyncMock(return_value=results)):
            assert cli.run_check(make_settings()) == 1

    def test_only_uses_subset(self) -> None:
        run_only = AsyncMock(return_value=[_result("smtp", True)])
        with patch.object(cli.ConnectivityProber, "run_only", run_only):
            assert cli.run_check(make_settings(), only=["smtp"]) == 0
        run_only.assert_awaited_once_with(["smtp"])

    def test_render_results(self) -> None:
        table = cli.render_results([_result("imap", True), _result("smtp", False)])
        assert table.row_count == 2

    def test_render_bracketed_error_text_literally(self) -> None:
        failed = CheckResult(
            check_id="ollama", label="[bold]Ollama", status=Status.DOWN, latency_ms=12.0,
            message="bad response [/api/tags] [error]",
        )
        out = Console(file=io.StringIO(), width=200, color_system=None)
        out.print(cli.render_results([failed]))

        text = out.file.getvalue()
        assert "bad response [/api/tags] [error]" in text
        assert "[bold]Ollama" in text


class TestRunForever:
    def test_startup_error_exits_non_zero(self) -> None:
        with patch.object(cli, "run_service", AsyncMock(side_effect=RuntimeError("boom"))):
            assert cli.run_forever(make_settings()) == 1

    def test_clean_shutdown(self) -> None:
        with patch.object(cli, "run_service", AsyncMock(return_value=[])) as run:
            assert cli.run_forever(make_settings()) == 0
        run.assert_awaited_once()


class TestMain:
    def test_invalid_config_exits_2(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEARTBEAT_INTERVAL_SECONDS", "0")
        with pytest.raises(SystemExit) as exc:
            cli.main(["--env-file", str(tmp_path / "missing.env")])
        assert exc.value.code == 2

    def test_check_command_exit_code(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HEARTBEAT_INTERVAL_SECONDS", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        with patch.object(cli, "run_check", return_value=1) as run_check, \
                patch.object(cli, "configure_logging"):
            with pytest.raises(SystemExit) as exc:
                cli.main(["--env-file", str(tmp_path / "missing.env"), "check", "--only", "ollama"])
        assert exc.value.code == 1
        assert run_check.call_args.args[1] == ["ollama"]

    def test_run_is_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HEARTBEAT_INTERVAL_SECONDS", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        with patch.object(cli, "run_forever", return_value=0) as run_forever, \
                patch.object(cli, "configure_logging"):
            with pytest.raises(SystemExit) as exc:
                cli.main(["--env-file", str(tmp_path / "missing.env")])
        assert exc.value.code == 0
        run_forever.assert_called_once()
