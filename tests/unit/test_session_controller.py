# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from audio.playback import PlaybackScheduler
from config import AppConfig
from errors import SessionConnectionError, TransmissionError
from fakes import FakeConnector, FakeSink, FakeWebSocket, audio_message, pcm_payload, settle
from orchestrator.events import (
    Event,
    RemoteInterrupted,
    RemoteTurnComplete,
    SessionClosed,
    SessionConnecting,
    SessionError,
    SessionOpened,
    TranscriptUpdated,
)
from protocol.messages import TextPart
from session.controller import SessionController
from transcript.links import TranscriptLinkExtractor


class Harness:
    def __init__(self, connector: FakeConnector) -> None:
        self.events: list[Event] = []
        self.sink = FakeSink()
        self.playback = PlaybackScheduler(sink=self.sink)
        self.transcript = TranscriptLinkExtractor()
        self.controller = SessionController(
            config=AppConfig(api_key="test-key", model="test-model"),
            playback=self.playback,
            transcript=self.transcript,
            emit_event=self._emit,
            connect=connector,
        )

    async def _emit(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, cls):
        return [e for e in self.events if isinstance(e, cls)]


async def _open(ws: FakeWebSocket) -> Harness:
    h = Harness(FakeConnector(ws))
    await h.controller.open()
    await settle()
    ws.push({"setupComplete": {}})
    await settle()
    return h


@pytest.mark.asyncio
async def test_setup_is_first_message_and_auth_header_is_sent():
    ws = FakeWebSocket()
    connector = FakeConnector(ws)
    h = Harness(connector)

    await h.controller.open()
    await settle()

    (uri, kwargs) = connector.calls[0]
    assert uri.startswith("wss://")
    assert kwargs["additional_headers"] == {"x-goog-api-key": "test-key"}
    assert ws.sent[0]["setup"]["model"] == "models/test-model"
    assert isinstance(h.events[0], SessionConnecting)
    assert not h.controller.is_open

    await h.controller.close()


@pytest.mark.asyncio
async def test_sends_before_readiness_are_queued_in_call_order():
    ws = FakeWebSocket()
    h = Harness(FakeConnector(ws))
    await h.controller.open()

    content = asyncio.create_task(h.controller.send([TextPart(text="hello")]))
    marker = asyncio.create_task(h.controller.mark_turn_complete())
    await settle()

    assert [list(m) for m in ws.sent] == [["setup"]]

    ws.push({"setupComplete": {}})
    await asyncio.gather(content, marker)

    assert ws.sent[1] == {
        "clientContent": {
            "turns": [{"role": "user", "parts": [{"text": "hello"}]}],
            "turnComplete": False,
        }
    }
    assert ws.sent[2] == {"clientContent": {"turnComplete": True}}
    assert h.of_type(SessionOpened)

    await h.controller.close()


@pytest.mark.asyncio
async def test_connect_failure_is_reported_and_sends_fail():
    h = Harness(FakeConnector(error=OSError("refused")))
    await h.controller.open()
    await settle()

    with pytest.raises(SessionConnectionError):
        await h.controller.connect()
    with pytest.raises(TransmissionError):
        await h.controller.mark_turn_complete()

    (error,) = h.of_type(SessionError)
    assert "refused" in error.reason


@pytest.mark.asyncio
async def test_connect_before_open_raises():
    h = Harness(FakeConnector())

    with pytest.raises(ConnectionError):
        await h.controller.connect()


@pytest.mark.asyncio
async def test_every_audio_part_is_scheduled_in_order():
    ws = FakeWebSocket()
    h = await _open(ws)

    ws.push(audio_message(pcm_payload(0.5), pcm_payload(0.3)))
    ws.push(audio_message(pcm_payload(0.2)))
    await settle()

    starts = [u.start_time for u in h.playback.active_units]
    assert starts == pytest.approx([0.0, 0.5, 0.8])
    assert h.playback.next_start_time == pytest.approx(1.0)

    await h.controller.close()


@pytest.mark.asyncio
async def test_transcription_accumulates_and_turn_complete_extracts_links():
    ws = FakeWebSocket()
    h = await _open(ws)

    ws.push({"serverContent": {"outputTranscription": {"text": "call us at "}}})
    ws.push({"serverContent": {"outputTranscription": {"text": "https://wa.me/123 now"}}})
    ws.push({"serverContent": {"turnComplete": True}})
    ws.push({"serverContent": {"outputTranscription": {"text": "next"}}})
    await settle()

    updates = [e.text for e in h.of_type(TranscriptUpdated)]
    assert updates == ["call us at ", "call us at https://wa.me/123 now", "next"]

    (done,) = h.of_type(RemoteTurnComplete)
    assert done.text == "call us at https://wa.me/123 now"
    assert done.links == ("https://wa.me/123",)
    assert h.transcript.text == "next"

    await h.controller.close()


@pytest.mark.asyncio
async def test_interrupted_flushes_playback():
    ws = FakeWebSocket()
    h = await _open(ws)
    ws.push(audio_message(pcm_payload(0.2), pcm_payload(0.2)))
    await settle()

    ws.push({"serverContent": {"interrupted": True}})
    await settle()

    assert len(h.playback) == 0
    assert h.playback.next_start_time == 0.0
    (interrupted,) = h.of_type(RemoteInterrupted)
    assert interrupted.units_stopped == 2

    await h.controller.close()


@pytest.mark.asyncio
async def test_remote_close_is_reported_not_retried():
    ws = FakeWebSocket()
    connector = FakeConnector(ws)
    h = Harness(connector)
    await h.controller.open()
    await settle()
    ws.push({"setupComplete": {}})
    await settle()

    ws.remote_close("server shutdown")
    await settle()

    (closed,) = h.of_type(SessionClosed)
    assert closed.reason == "server shutdown"
    assert len(connector.calls) == 1

    await h.controller.close()


@pytest.mark.asyncio
async def test_reset_opens_fresh_session_and_flushes_state():
    old_ws, new_ws = FakeWebSocket(), FakeWebSocket()
    connector = FakeConnector(old_ws, new_ws)
    h = Harness(connector)
    await h.controller.open()
    await settle()
    old_ws.push({"setupComplete": {}})
    await settle()
    old_id = h.controller.session_id

    old_ws.push(audio_message(pcm_payload(0.2)))
    old_ws.push({"serverContent": {"outputTranscription": {"text": "half a sent"}}})
    await settle()

    await h.controller.reset()
    await settle()

    assert old_ws.closed
    assert h.controller.session_id != old_id
    assert len(h.playback) == 0
    assert h.transcript.text == ""
    assert [e.session_id for e in h.of_type(SessionConnecting)] == [old_id, h.controller.session_id]
    assert new_ws.sent[0]["setup"]

    await h.controller.close()


@pytest.mark.asyncio
async def test_realtime_audio_chunk_wire_shape():
    from audio.frames import AudioChunk  # pylint: disable=import-outside-toplevel

    ws = FakeWebSocket()
    h = await _open(ws)

    await h.controller.send_audio(AudioChunk(sequence_num=1, pcm_bytes=b"\x01\x00", ts_ms=0))

    assert ws.sent[-1] == {
        "realtimeInput": {
            "mediaChunks": [{"mimeType": "audio/pcm;rate=16000", "data": "AQA="}]
        }
    }

    await h.controller.close()
