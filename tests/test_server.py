"""
HTTP Server Tests

Route handling is exercised through ``PianoHTTPServer.handle`` with the
engine replaced by mocks; the socket tests check status codes, CORS
headers and header parsing end to end.
"""

import http.client
import json
import time
import urllib.error
import urllib.request
from concurrent.futures import Future
from unittest.mock import MagicMock

import pytest

from piano_synth.server.config import SCHEMA_VERSION, ErrorCode, ServerConfig
from piano_synth.server.http_server import PianoHTTPServer, _parse_content_length
from piano_synth.server.schemas import PlayNoteRequest
from piano_synth.utils import PianoNotes


def done_future():
    future = Future()
    future.set_result(None)
    return future


@pytest.fixture
def play():
    return MagicMock(side_effect=lambda hz: done_future())


@pytest.fixture
def trigger():
    return MagicMock(side_effect=lambda hz: done_future())


@pytest.fixture
def server(play, trigger):
    return PianoHTTPServer(ServerConfig(port=0, sink="null"), play=play, trigger=trigger)


def post_note(server, body):
    return server.handle("POST", "/playnote", json.dumps(body).encode("utf-8"))


class TestServerConfig:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PIANO_HOST", "0.0.0.0")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("PIANO_SINK", "wav")
        monkeypatch.setenv("PIANO_VERBOSE", "yes")
        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.sink == "wav"
        assert config.verbose is True

    def test_piano_port_wins(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("PIANO_PORT", "9090")
        assert ServerConfig.from_env().port == 9090

    def test_synth_config(self):
        synth = ServerConfig(sink="wav", output_dir="out", sample_rate=22050).synth_config()

        assert synth.sink == "wav"
        assert synth.output_dir == "out"
        assert synth.sample_rate == 22050
        assert synth.harmonic_count == 8


class TestPlayNoteRequest:

    def test_valid(self):
        assert PlayNoteRequest.model_validate({"note": "C"}).note == "C"

    @pytest.mark.parametrize("body", [{}, {"note": ""}, {"note": 5}, {"note": None}, None, []])
    def test_invalid(self, body):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            PlayNoteRequest.model_validate(body)


class TestRoutes:
    """Dispatch through PianoHTTPServer.handle."""

    def test_root(self, server):
        status, body = server.handle("GET", "/")

        assert status == 200
        assert body["message"] == "Ready to play music!"
        assert body["version"] == SCHEMA_VERSION
        assert "timestamp" in body

    def test_health(self, server):
        status, body = server.handle("GET", "/health")

        assert status == 200
        assert body["status"] == "healthy"
        assert body["uptime"] >= 0

    def test_unknown_route(self, server):
        status, body = server.handle("GET", "/nope?x=1")

        assert status == 404
        assert body["error"] == "Route not found"
        assert body["path"] == "/nope?x=1"
        assert body["code"] == ErrorCode.ROUTE_NOT_FOUND

    def test_wrong_method(self, server):
        status, _ = server.handle("GET", "/playnote")
        assert status == 404

    @pytest.mark.parametrize("letter,frequency", [
        ("C", PianoNotes.C4),
        ("E", PianoNotes.E4),
        ("A", PianoNotes.A4),
        ("B", PianoNotes.B4),
    ])
    def test_playnote(self, server, play, letter, frequency):
        status, body = post_note(server, {"note": letter})

        assert status == 200
        assert body["message"] == f"Piano note {letter} played successfully"
        assert body["note"] == letter
        play.assert_called_once_with(frequency)

    def test_unmapped_note_not_played(self, server, play):
        status, body = post_note(server, {"note": "Z"})

        assert status == 200
        assert body["message"] == "Note received but not played"
        assert body["note"] == "Z"
        play.assert_not_called()

    def test_lowercase_not_played(self, server, play):
        status, body = post_note(server, {"note": "c"})

        assert body["message"] == "Note received but not played"
        play.assert_not_called()

    @pytest.mark.parametrize("body", [{}, {"note": 5}, {"note": ""}])
    def test_invalid_payload(self, server, play, body):
        status, response = post_note(server, body)

        assert status == 400
        assert response["error"] == "Invalid payload"
        play.assert_not_called()

    def test_non_json_body(self, server):
        status, response = server.handle("POST", "/playnote", b"note=C")
        assert status == 400

    def test_empty_body(self, server):
        status, _ = server.handle("POST", "/playnote", b"")
        assert status == 400

    def test_engine_failure(self, server, play):
        play.side_effect = RuntimeError("no audio device")
        status, body = post_note(server, {"note": "D"})

        assert status == 500
        assert body["error"] == "Failed to play note"
        assert body["message"] == "no audio device"

    def test_note_completion_failure(self, server, play):
        failed = Future()
        failed.set_exception(RuntimeError("teardown"))
        play.side_effect = lambda hz: failed

        status, body = post_note(server, {"note": "G"})
        assert status == 500

    def test_unhandled_error(self, server):
        server._routes[("GET", "/")] = MagicMock(side_effect=KeyError("x"))
        status, body = server.handle("GET", "/")

        assert status == 500
        assert body["error"] == "Internal Server Error"

    def test_error_codes_distinct_from_status(self, server, play):
        play.side_effect = RuntimeError("no audio device")
        responses = [
            post_note(server, {}),
            server.handle("GET", "/missing"),
            post_note(server, {"note": "C"}),
        ]
        server._routes[("GET", "/")] = MagicMock(side_effect=KeyError("x"))
        responses.append(server.handle("GET", "/"))

        assert [body["code"] for _, body in responses] == [
            ErrorCode.INVALID_PAYLOAD,
            ErrorCode.ROUTE_NOT_FOUND,
            ErrorCode.PLAYBACK_FAILED,
            ErrorCode.INTERNAL,
        ]
        for status, body in responses:
            assert body["code"] != status
            assert not 100 <= body["code"] < 600

    def test_play_sequence(self, server, trigger):
        status, body = server.handle("GET", "/play")

        assert status == 200
        assert body["message"] == "Sequence started"
        assert body["notes"] == ["A4", "E4", "C4"]

        deadline = time.monotonic() + 5.0
        while trigger.call_count < 3 and time.monotonic() < deadline:
            time.sleep(0.05)
        assert [c.args[0] for c in trigger.call_args_list] == [
            PianoNotes.A4, PianoNotes.E4, PianoNotes.C4,
        ]


class TestOverHTTP:
    """Real socket round trip."""

    def test_round_trip(self, server, play):
        server.start_async()
        base = f"http://127.0.0.1:{server.port}"
        try:
            with urllib.request.urlopen(f"{base}/health", timeout=5) as resp:
                assert resp.status == 200
                assert resp.headers["Access-Control-Allow-Origin"] == "*"
                assert json.loads(resp.read())["status"] == "healthy"

            request = urllib.request.Request(
                f"{base}/playnote",
                data=json.dumps({"note": "A"}).encode("utf-8"),
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            with urllib.request.urlopen(request, timeout=5) as resp:
                assert json.loads(resp.read())["message"] == "Piano note A played successfully"
            play.assert_called_once_with(PianoNotes.A4)

            with pytest.raises(urllib.error.HTTPError) as excinfo:
                urllib.request.urlopen(f"{base}/missing", timeout=5)
            assert excinfo.value.code == 404
        finally:
            server.stop()

        assert not server.running

    @pytest.mark.parametrize("header", ["abc", "-5", "1.5"])
    def test_malformed_content_length(self, server, play, header):
        server.start_async()
        conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=5)
        try:
            conn.putrequest("POST", "/playnote")
            conn.putheader("Content-Type", "application/json")
            conn.putheader("Content-Length", header)
            conn.endheaders()
            resp = conn.getresponse()
            body = json.loads(resp.read())
        finally:
            conn.close()
            server.stop()

        assert resp.status == 400
        assert body["error"] == "Invalid payload"
        assert body["code"] == ErrorCode.INVALID_PAYLOAD
        play.assert_not_called()


class TestContentLength:

    @pytest.mark.parametrize("value,expected", [(None, 0), ("", 0), ("0", 0), ("17", 17), (" 8 ", 8)])
    def test_valid(self, value, expected):
        assert _parse_content_length(value) == expected

    @pytest.mark.parametrize("value", ["abc", "-1", "1.5", "0x10"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            _parse_content_length(value)
