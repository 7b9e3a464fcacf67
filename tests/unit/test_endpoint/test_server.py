"""Tests for the session endpoint server."""

from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from touchterm.endpoint.server import create_app
from touchterm.endpoint.session import CLOSE_SPAWN_FAILED


def _output(frame: dict) -> bytes:
    assert frame["type"] == "output"
    assert frame["encoding"] == "base64"
    return base64.b64decode(frame["data"])


class TestHealth:
    def test_health(self, make_factory) -> None:
        client = TestClient(create_app(process_factory=make_factory()))
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ok",
            "active_sessions": 0,
            "output_encoding": "base64",
        }

    def test_health_reports_utf8_mode(self, make_factory) -> None:
        client = TestClient(create_app(process_factory=make_factory(), output_encoding="utf-8"))
        assert client.get("/health").json()["output_encoding"] == "utf-8"


class TestChannel:
    @pytest.fixture
    def factory(self, echo_factory):
        return echo_factory

    @pytest.fixture
    def client(self, factory) -> TestClient:
        return TestClient(create_app(process_factory=factory))

    def test_input_is_echoed(self, client: TestClient, factory) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "input", "data": "echo hi\r"})
            assert _output(ws.receive_json()) == b"echo hi\r"
        assert factory.processes[0].writes == [b"echo hi\r"]

    def test_resize_applies_to_shell(self, client: TestClient, factory) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "resize", "cols": 100, "rows": 25})
            assert _output(ws.receive_json()) == b"[100x25]"
        assert factory.processes[0].resizes == [(100, 25)]

    def test_malformed_frame_keeps_connection(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            ws.send_json({"type": "input", "data": "x"})
            assert _output(ws.receive_json()) == b"x"

    def test_disconnect_kills_shell(self, client: TestClient, factory) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "input", "data": "sleep 100\r"})
            ws.receive_json()
        assert factory.processes[0].killed is True

    def test_reconnect_spawns_new_shell(self, client: TestClient, factory) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "resize", "cols": 120, "rows": 40})
            ws.receive_json()
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "input", "data": "a"})
            assert _output(ws.receive_json()) == b"a"

        first, second = factory.processes
        assert first.killed is True
        assert (second.geometry.cols, second.geometry.rows) == (80, 24)
        assert second.resizes == []

    def test_custom_channel_path(self, factory) -> None:
        client = TestClient(create_app(process_factory=factory, websocket_path="/term"))
        with client.websocket_connect("/term") as ws:
            ws.send_json({"type": "input", "data": "z"})
            assert _output(ws.receive_json()) == b"z"


class TestSpawnFailure:
    def test_channel_closed_with_1011(self, make_factory) -> None:
        client = TestClient(create_app(process_factory=make_factory(fail_start=True)))
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()
        assert exc_info.value.code == CLOSE_SPAWN_FAILED


class TestStaticFiles:
    def test_serves_index(self, tmp_path, make_factory) -> None:
        (tmp_path / "index.html").write_text("<html>touchterm</html>")
        client = TestClient(create_app(process_factory=make_factory(), static_dir=tmp_path))
        resp = client.get("/")
        assert resp.status_code == 200
        assert "touchterm" in resp.text
        assert client.get("/health").json()["status"] == "ok"

    def test_missing_directory_is_skipped(self, tmp_path, make_factory) -> None:
        client = TestClient(
            create_app(process_factory=make_factory(), static_dir=tmp_path / "nope"),
        )
        assert client.get("/health").status_code == 200
        assert client.get("/").status_code == 404
