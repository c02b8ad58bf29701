"""
Integration tests for the HOSHIYOMI command line.

Tests argument parsing, the calc command end to end, exit codes, signal
handling and the serve command lifecycle.
"""

import asyncio
import logging
import os
import signal
import socket
from unittest.mock import patch

import pytest
import yaml

from hoshiyomi.config import HoshiyomiConfig
from hoshiyomi.exceptions import InternalError
from hoshiyomi.main import (
    GracefulShutdown,
    async_main,
    build_engine,
    create_parser,
    get_shutdown_handler,
    main,
)
from services.ephemeris.engine import MoonEngine

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """No config files or HOSHIYOMI_* variables from the host."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("HOSHIYOMI_"):
            monkeypatch.delenv(key)
    yield
    root_logger = logging.getLogger("hoshiyomi")
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)


def free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


# =============================================================================
# Argument Parsing
# =============================================================================


class TestArgumentParser:
    """Tests for command-line argument parsing."""

    def test_calc_defaults(self) -> None:
        """calc needs only a date; the rest comes from config."""
        args = create_parser().parse_args(["calc", "--date", "2022-07-17"])

        assert args.command == "calc"
        assert args.date == "2022-07-17"
        assert args.time is None
        assert args.utc_offset is None
        assert args.latitude is None
        assert args.longitude is None
        assert args.new_moon is False
        assert args.config is None
        assert args.log_level is None

    def test_calc_all_options(self) -> None:
        args = create_parser().parse_args([
            "-c", "/path/config.yaml",
            "--log-level", "DEBUG",
            "calc",
            "--date", "2022-07-17",
            "--time", "21:00",
            "--utc-offset=-05:00",
            "--latitude", "-33.86",
            "--longitude", "151.21",
            "--new-moon",
        ])

        assert args.config == "/path/config.yaml"
        assert args.log_level == "DEBUG"
        assert args.time == "21:00"
        assert args.utc_offset == "-05:00"
        assert args.latitude == "-33.86"
        assert args.longitude == "151.21"
        assert args.new_moon is True

    def test_serve_options(self) -> None:
        args = create_parser().parse_args(["serve", "--host", "127.0.0.1", "--port", "6000"])
        assert args.command == "serve"
        assert args.host == "127.0.0.1"
        assert args.port == 6000

    def test_serve_defaults(self) -> None:
        args = create_parser().parse_args(["serve"])
        assert args.host is None
        assert args.port is None

    @pytest.mark.parametrize("argv", [
        [],
        ["calc"],
        ["serve", "--port", "70000"],
        ["serve", "--port", "http"],
        ["--log-level", "LOUD", "serve"],
    ])
    def test_usage_errors(self, argv) -> None:
        """Usage errors exit with status 2."""
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(argv)
        assert exc_info.value.code == 2


# =============================================================================
# Calc Command
# =============================================================================


class TestCalcCommand:
    """End-to-end tests for `hoshiyomi calc`."""

    def test_age_only(self, capsys) -> None:
        """The moon age is printed alone with two decimals."""
        assert main(["calc", "--date", "2022-07-17"]) == 0

        out = capsys.readouterr().out.strip()
        assert "\n" not in out
        assert len(out.split(".")[1]) == 2
        assert 16.5 < float(out) < 19.5

    def test_with_coordinates(self, capsys) -> None:
        """Rise and set are printed in the local offset."""
        code = main([
            "calc", "--date", "2022-07-17",
            "--latitude", "34.861972", "--longitude", "133.833990",
        ])
        assert code == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 3
        rise, set_ = lines[1], lines[2]
        assert rise.startswith("rise: 2022-07-17T2")
        assert rise.endswith("+09:00")
        assert set_.startswith("set: 2022-07-17T")
        assert set_.endswith("+09:00")

    def test_polar_day(self, capsys) -> None:
        """At the pole no times are printed and the day is classified."""
        code = main(["calc", "--date", "2022-07-17", "--latitude", "90", "--longitude", "0"])
        assert code == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[1] == "rise: -"
        assert lines[2] == "set: -"
        assert lines[3] in ("day: circumpolar", "day: never rises")

    def test_new_moon(self, capsys) -> None:
        assert main(["calc", "--date", "2022-07-17", "--new-moon"]) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[-1].startswith("new moon: 2022-06-29T")

    def test_utc_offset_changes_age(self, capsys) -> None:
        """Noon in Tokyo and noon in New York are 14 hours apart."""
        main(["calc", "--date", "2022-07-17", "--utc-offset", "+09:00"])
        tokyo = float(capsys.readouterr().out)
        main(["calc", "--date", "2022-07-17", "--utc-offset=-05:00"])
        new_york = float(capsys.readouterr().out)

        assert new_york - tokyo == pytest.approx(14 / 24, abs=0.15)

    def test_config_defaults_used(self, tmp_path, capsys) -> None:
        """calc.utc_offset from the config file applies when no option is given."""
        config_path = tmp_path / "custom.yaml"
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"calc": {"utc_offset": "-05:00", "time_of_day": "12:00"}}, f)

        main(["-c", str(config_path), "calc", "--date", "2022-07-17"])
        from_config = capsys.readouterr().out
        main(["calc", "--date", "2022-07-17", "--utc-offset=-05:00"])
        from_option = capsys.readouterr().out

        assert from_config == from_option

    @pytest.mark.parametrize("extra", [
        ["--date", "2022-13-01"],
        ["--date", "2022-07-17", "--time", "25:00"],
        ["--date", "2022-07-17", "--utc-offset", "JST"],
        ["--date", "2022-07-17", "--latitude", "200", "--longitude", "0"],
        ["--date", "2022-07-17", "--latitude", "north", "--longitude", "0"],
        ["--date", "2022-07-17", "--latitude", "34.86"],
        ["--date", "0001-01-05", "--utc-offset=+00:00", "--new-moon"],
    ])
    def test_invalid_input(self, extra, capsys) -> None:
        """Invalid input exits with status 1 and prints nothing on stdout."""
        assert main(["calc", *extra]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "error:" in captured.err

    def test_internal_error(self, capsys) -> None:
        with patch.object(MoonEngine, "compute_age", side_effect=InternalError("no convergence")):
            assert main(["calc", "--date", "2022-07-17"]) == 2
        assert "no convergence" in capsys.readouterr().err

    def test_configuration_error(self, tmp_path, capsys) -> None:
        assert main(["-c", str(tmp_path / "missing.yaml"), "calc", "--date", "2022-07-17"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_engine_from_config(self) -> None:
        config = HoshiyomiConfig(engine={"threshold_altitude_deg": 0.0, "synodic_period_days": 29.6})
        engine = build_engine(config)
        assert engine.parameters.threshold_altitude_deg == 0.0
        assert engine.synodic_period_days == 29.6


# =============================================================================
# Signal Handling
# =============================================================================


class TestGracefulShutdown:
    """Tests for graceful shutdown handling."""

    def test_initial_state(self) -> None:
        handler = GracefulShutdown()
        assert handler.shutdown_requested is False

    def test_install_restore_handlers(self) -> None:
        """Test signal handler installation and restoration."""
        original = signal.getsignal(signal.SIGINT)
        handler = GracefulShutdown()

        handler.install_handlers()
        assert signal.getsignal(signal.SIGINT) == handler._handle_signal
        assert signal.getsignal(signal.SIGTERM) == handler._handle_signal

        handler.restore_handlers()
        assert signal.getsignal(signal.SIGINT) == original

    def test_shutdown_event(self) -> None:
        handler = GracefulShutdown()
        event = handler.get_shutdown_event()

        assert isinstance(event, asyncio.Event)
        assert not event.is_set()
        assert handler.get_shutdown_event() is event

    def test_signal_sets_shutdown(self) -> None:
        handler = GracefulShutdown()
        handler.install_handlers()

        try:
            handler._handle_signal(signal.SIGINT, None)
            assert handler.shutdown_requested is True
        finally:
            handler.restore_handlers()

    def test_event_set_when_requested_earlier(self) -> None:
        """A signal before the event exists still sets it."""
        handler = GracefulShutdown()
        handler._handle_signal(signal.SIGTERM, None)
        assert handler.get_shutdown_event().is_set()

    @pytest.mark.asyncio
    async def test_signal_wakes_loop(self) -> None:
        handler = GracefulShutdown()
        handler.install_handlers(asyncio.get_running_loop())
        try:
            event = handler.get_shutdown_event()
            handler._handle_signal(signal.SIGTERM, None)
            await asyncio.wait_for(event.wait(), timeout=1.0)
        finally:
            handler.restore_handlers()

    def test_global_handler(self) -> None:
        assert get_shutdown_handler() is get_shutdown_handler()


# =============================================================================
# Serve Command
# =============================================================================


class TestServeCommand:
    """Tests for `hoshiyomi serve` through async_main."""

    @pytest.mark.asyncio
    async def test_serve_until_shutdown(self) -> None:
        """The server starts, sees the shutdown request and exits cleanly."""
        port = free_port()
        args = create_parser().parse_args(["serve", "--host", "127.0.0.1", "--port", str(port)])
        config = HoshiyomiConfig()

        shutdown = GracefulShutdown()
        shutdown.shutdown_requested = True

        with patch("hoshiyomi.main.get_shutdown_handler", return_value=shutdown):
            assert await async_main(args, config) == 0

        assert config.server.host == "127.0.0.1"
        assert config.server.port == port

    @pytest.mark.asyncio
    async def test_port_in_use(self) -> None:
        """A port that cannot be bound is an internal error."""
        with socket.socket() as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen()
            port = busy.getsockname()[1]

            args = create_parser().parse_args(["serve", "--host", "127.0.0.1", "--port", str(port)])
            shutdown = GracefulShutdown()
            shutdown.shutdown_requested = True

            with patch("hoshiyomi.main.get_shutdown_handler", return_value=shutdown):
                assert await async_main(args, HoshiyomiConfig()) == 2
