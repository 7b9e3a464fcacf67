"""Tests for the command-line interface."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from touchterm.cli import _base_url, _status, parse_args
from touchterm.config.settings import Settings


class TestParseArgs:
    def test_serve(self) -> None:
        args = parse_args(["serve"])
        assert args.command == "serve"
        assert args.config is None
        assert args.verbose is False

    def test_connect_with_url(self) -> None:
        args = parse_args(["-v", "-c", "my.yaml", "connect", "--url", "ws://host:1/ws"])
        assert args.command == "connect"
        assert args.url == "ws://host:1/ws"
        assert args.config == Path("my.yaml")
        assert args.verbose is True

    def test_no_command(self) -> None:
        assert parse_args([]).command is None


class TestBaseUrl:
    @pytest.mark.parametrize(
        "channel,expected",
        [
            ("ws://localhost:3000/ws", "http://localhost:3000"),
            ("wss://term.example.com/ws", "https://term.example.com"),
            ("ws://10.0.0.2:8080", "http://10.0.0.2:8080"),
        ],
    )
    def test_conversion(self, channel: str, expected: str) -> None:
        assert _base_url(channel) == expected


class TestStatus:
    def test_healthy(self, capsys: pytest.CaptureFixture[str]) -> None:
        resp = MagicMock()
        resp.json.return_value = {"status": "ok", "active_sessions": 2, "output_encoding": "base64"}
        with patch("httpx.get", return_value=resp) as mock_get:
            assert _status(Settings(), None) == 0
        mock_get.assert_called_once_with("http://localhost:3000/health", timeout=5.0)
        out = capsys.readouterr().out
        assert "ok" in out
        assert "Active sessions: 2" in out

    def test_unreachable(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("httpx.get", side_effect=httpx.ConnectError("refused")):
            assert _status(Settings(), "http://nowhere:1/") == 1
        assert "unreachable" in capsys.readouterr().out
