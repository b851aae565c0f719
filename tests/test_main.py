"""Tests for the entry point."""

import logging
from pathlib import Path
from typing import Iterator
from unittest.mock import MagicMock, patch

import pytest

from plumb.__main__ import _build_parser, _load_settings, apply_overrides, configure_logging, main
from plumb.config import PlumbSettings


@pytest.fixture
def plumb_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger("plumb")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    for handler in list(logger.handlers):
        if handler not in handlers:
            handler.close()
            logger.removeHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate


class TestBuildParser:
    def test_no_args_gives_no_command(self) -> None:
        args = _build_parser().parse_args([])
        assert args.command is None
        assert args.unsafe_mode is None
        assert args.output_script is None
        assert args.debug is None
        assert args.buffer_size is None

    def test_parses_init(self) -> None:
        args = _build_parser().parse_args(["init"])
        assert args.command == "init"

    def test_parses_options(self) -> None:
        args = _build_parser().parse_args(
            ["--unsafe-full-throttle", "-o", "out.sh", "--debug", "--buffer-size", "2048"]
        )
        assert args.unsafe_mode is True
        assert args.output_script == "out.sh"
        assert args.debug is True
        assert args.buffer_size == 2048

    def test_rejects_bad_buffer_size(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["--buffer-size", "0"])

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["--version"])
        assert "plumb 0.1.0" in capsys.readouterr().out


class TestApplyOverrides:
    def test_keeps_settings_without_options(self) -> None:
        settings = PlumbSettings(unsafe_mode=True, buffer_size=10)
        args = _build_parser().parse_args([])
        assert apply_overrides(settings, args) == settings

    def test_options_override_settings(self) -> None:
        settings = PlumbSettings(output_script="a.sh", buffer_size=10)
        args = _build_parser().parse_args(["-o", "b.sh", "--buffer-size", "20"])
        result = apply_overrides(settings, args)
        assert result.output_script == "b.sh"
        assert result.buffer_size == 20
        assert result.unsafe_mode is False


class TestLoadSettings:
    def test_loads_from_home(self, tmp_path: Path) -> None:
        home_dir = tmp_path / "home-plumb"
        home_dir.mkdir()
        (home_dir / "settings.yaml").write_text("plumb:\n  unsafe_full_throttle: true\n")
        with patch("plumb.__main__.PLUMB_HOME", home_dir):
            settings = _load_settings()
        assert settings.unsafe_mode is True

    def test_loads_local_file(self, tmp_path: Path) -> None:
        local = tmp_path / "plumb.yaml"
        local.write_text("capture:\n  buffer_size: 77\n")
        with (
            patch("plumb.__main__.PLUMB_HOME", tmp_path / "missing"),
            patch("plumb.__main__.LOCAL_SETTINGS", local),
        ):
            settings = _load_settings()
        assert settings.buffer_size == 77

    def test_falls_back_to_defaults(self, tmp_path: Path) -> None:
        with (
            patch("plumb.__main__.PLUMB_HOME", tmp_path / "missing"),
            patch("plumb.__main__.LOCAL_SETTINGS", tmp_path / "plumb.yaml"),
        ):
            settings = _load_settings()
        assert settings == PlumbSettings()


class TestConfigureLogging:
    def test_silent_without_debug(self, plumb_logger: logging.Logger) -> None:
        configure_logging(PlumbSettings())
        assert plumb_logger.propagate is False
        assert any(isinstance(h, logging.NullHandler) for h in plumb_logger.handlers)

    def test_debug_writes_log_file(self, tmp_path: Path, plumb_logger: logging.Logger) -> None:
        log_file = tmp_path / "plumb.debug"
        configure_logging(PlumbSettings(debug=True, debug_log=str(log_file)))
        logging.getLogger("plumb.test").debug("hello log")
        for handler in plumb_logger.handlers:
            handler.flush()
        assert "hello log" in log_file.read_text()


class TestMain:
    def test_init_calls_run_init(self) -> None:
        with (
            patch("sys.argv", ["plumb", "init"]),
            patch("plumb.__main__.run_init") as mock_init,
        ):
            result = main()
        mock_init.assert_called_once()
        assert result == 0

    def test_config_error_exits_nonzero(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        local = tmp_path / "plumb.yaml"
        local.write_text("capture:\n  buffer_size: -1\n")
        with (
            patch("sys.argv", ["plumb"]),
            patch("plumb.__main__.PLUMB_HOME", tmp_path / "missing"),
            patch("plumb.__main__.LOCAL_SETTINGS", local),
        ):
            result = main()
        assert result == 1
        assert "Config error" in capsys.readouterr().err

    def test_refuses_terminal_stdin(self, plumb_logger: logging.Logger, capsys: pytest.CaptureFixture[str]) -> None:
        stdin = MagicMock()
        stdin.isatty.return_value = True
        with (
            patch("sys.argv", ["plumb"]),
            patch("sys.stdin", stdin),
            patch("plumb.__main__._load_settings", return_value=PlumbSettings()),
            patch("plumb.__main__.PlumbApp") as mock_app,
        ):
            result = main()
        assert result == 1
        mock_app.assert_not_called()
        assert "echo hello world | plumb" in capsys.readouterr().err

    def test_runs_app_with_piped_stdin(self, plumb_logger: logging.Logger) -> None:
        stdin = MagicMock()
        stdin.isatty.return_value = False
        with (
            patch("sys.argv", ["plumb", "--unsafe-full-throttle"]),
            patch("sys.stdin", stdin),
            patch("plumb.__main__._load_settings", return_value=PlumbSettings()),
            patch("plumb.__main__.resolve_shell", return_value="/bin/sh"),
            patch("plumb.__main__.PlumbApp") as mock_app,
        ):
            mock_app.return_value.run.return_value = 0
            result = main()
        assert result == 0
        kwargs = mock_app.call_args.kwargs
        assert kwargs["shell"] == "/bin/sh"
        assert kwargs["settings"].unsafe_mode is True
        assert kwargs["source"] is stdin.buffer
