"""
Live engine: the single object a caller drives.

Responsibilities:
- Wire SessionController, PlaybackScheduler, CaptureStream,
  MultimodalComposer and TranscriptLinkExtractor around one Runtime
- Translate caller operations (start / pause / resume / stop / send /
  attachments / reset / close) into events
- Forward captured mic chunks to the session
- Expose the observable EngineState and change notifications

NOT responsible for:
- Any turn-taking decision (reducer)
- Presentation
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Callable

from websockets.asyncio.client import connect as ws_connect

from audio.capture import CaptureStream, Microphone
from audio.frames import AudioChunk
from audio.playback import AudioSink, PlaybackScheduler
from composer.attachments import Attachment, MultimodalComposer
from config import AppConfig
from errors import TransmissionError
from observability.logger import log_event
from orchestrator.enums.state import TurnState
from orchestrator.events import (
    AttachmentSkipped,
    AttachmentsChanged,
    CredentialMissing,
    Event,
    EventType,
    MicLock,
    MicResume,
    MicStart,
    MicStop,
    SendCompleted,
    SendFailed,
    SendRequested,
    SessionReset,
    TransmissionFailed,
)
from orchestrator.runtime import Runtime, StateObserver
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import EngineState
from session.controller import Connector, SessionController
from spec import OUTPUT_SAMPLE_RATE_HZ, STATUS_MISSING_CREDENTIAL
from transcript.links import TranscriptLinkExtractor


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class LiveEngine:
    """
    One engine == one conversation surface (microphone, speaker, session).

    Construct with LiveEngine.create(); the constructor only wires.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        microphone: Microphone,
        speaker: AudioSink,
        connect: Connector = ws_connect,
    ) -> None:
        self._config = config
        self._close_speaker: Callable[[], None] | None = None
        self._audio_tasks: set[asyncio.Task[None]] = set()
        self._closed = False
        self._send_claimed = False

        self.composer = MultimodalComposer(input_modalities=config.input_modalities)
        self.transcript = TranscriptLinkExtractor()
        self.playback = PlaybackScheduler(sink=speaker, sample_rate_hz=OUTPUT_SAMPLE_RATE_HZ)

        self.controller = SessionController(
            config=config,
            playback=self.playback,
            transcript=self.transcript,
            emit_event=self._dispatch,
            connect=connect,
        )
        self.capture = CaptureStream(
            microphone=microphone,
            is_listening=self._is_listening,
            on_chunk=self._on_chunk,
        )
        self._runtime = Runtime(
            initial_state=EngineState(auto_resume=config.auto_resume),
            context=RuntimeExecutionContext(
                capture=self.capture,
                channel=self.controller,
            ),
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    async def create(
        cls,
        config: AppConfig,
        *,
        microphone: Microphone | None = None,
        speaker: AudioSink | None = None,
        connect: Connector = ws_connect,
    ) -> LiveEngine:
        """
        Build the engine and open the first session.

        Does not raise on a missing credential: the engine is returned with
        a fatal status and the session left DOWN.

        Default devices are sounddevice streams, imported only when needed;
        an injected speaker stays owned by the caller.
        """
        loop = asyncio.get_running_loop()
        close_speaker: Callable[[], None] | None = None

        if microphone is None or speaker is None:
            # PortAudio is loaded on import.
            from audio.devices import (  # pylint: disable=import-outside-toplevel
                SoundDeviceMicrophone,
                SoundDeviceSpeaker,
            )
            if microphone is None:
                microphone = SoundDeviceMicrophone(loop=loop)
            if speaker is None:
                default_speaker = SoundDeviceSpeaker(loop=loop)
                default_speaker.open()
                speaker = default_speaker
                close_speaker = default_speaker.close

        engine = cls(config=config, microphone=microphone, speaker=speaker, connect=connect)
        engine._close_speaker = close_speaker

        if not config.has_credential:
            await engine._dispatch(
                CredentialMissing(
                    event_type=EventType.CREDENTIAL_MISSING,
                    ts_ms=_now_ms(),
                    reason=STATUS_MISSING_CREDENTIAL,
                )
            )
            return engine

        await engine.controller.open()
        return engine

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._runtime.state

    def subscribe(self, observer: StateObserver) -> None:
        self._runtime.subscribe(observer)

    def unsubscribe(self, observer: StateObserver) -> None:
        self._runtime.unsubscribe(observer)

    # ------------------------------------------------------------------
    # Microphone operations
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start capturing. No-op unless IDLE."""
        await self._dispatch(MicStart(event_type=EventType.MIC_START, ts_ms=_now_ms()))

    async def pause(self) -> None:
        """
        Lock the mic: mute capture and send the end-of-turn marker.

        No-op unless LISTENING.
        """
        await self._dispatch(MicLock(event_type=EventType.MIC_LOCK, ts_ms=_now_ms()))

    async def resume(self) -> None:
        """Unlock the mic. No-op unless LOCKED."""
        await self._dispatch(MicResume(event_type=EventType.MIC_RESUME, ts_ms=_now_ms()))

    async def stop(self) -> None:
        """Stop capturing and release the device."""
        await self._dispatch(MicStop(event_type=EventType.MIC_STOP, ts_ms=_now_ms()))

    # ------------------------------------------------------------------
    # Composer operations
    # ------------------------------------------------------------------

    def set_text(self, text: str) -> None:
        self.composer.text = text

    async def add_attachment(
        self,
        path: str | Path | None = None,
        *,
        data: bytes | None = None,
        media_type: str | None = None,
        name: str | None = None,
    ) -> Attachment:
        """
        Buffer an attachment until the next send.

        Raises:
            UnsupportedAttachmentError if the input modality is disabled.
        """
        attachment = self.composer.add_attachment(
            path, data=data, media_type=media_type, name=name
        )
        await self._attachments_changed()
        return attachment

    async def remove_attachment(self, index: int) -> Attachment:
        """Raises IndexError for a bad index."""
        attachment = self.composer.remove_attachment(index)
        await self._attachments_changed()
        return attachment

    async def send(self, text: str | None = None) -> None:
        """
        Send buffered text and attachments as one user turn.

        A send with nothing to send, or while another send is in flight, is
        a no-op; a rejected send leaves the buffered text alone. A LISTENING
        mic is locked first. Attachments that cannot be encoded are skipped
        and reported; the rest is sent. Pending input is cleared only once
        the turn and its end-of-turn marker are out.
        """
        # Claimed with no await in between, so a concurrent send() sees it.
        if self._send_claimed or self.state.is_sending:
            return

        if text is not None:
            self.composer.text = text

        if not self.composer.has_content:
            return

        self._send_claimed = True
        try:
            await self._send_turn()
        finally:
            self._send_claimed = False

    async def _send_turn(self) -> None:
        if self.state.turn_state is TurnState.LISTENING:
            await self.pause()

        pending = self.composer.attachments
        await self._dispatch(
            SendRequested(
                event_type=EventType.SEND_REQUESTED,
                ts_ms=_now_ms(),
                has_text=bool(self.composer.text.strip()),
                attachment_count=len(pending),
            )
        )
        if not self.state.is_sending:
            return

        turn = await self.composer.compose(attachments=pending)

        for attachment, error in turn.skipped:
            await self._dispatch(
                AttachmentSkipped(
                    event_type=EventType.ATTACHMENT_SKIPPED,
                    ts_ms=_now_ms(),
                    name=attachment.name,
                    reason=str(error),
                )
            )

        if turn.is_empty:
            await self._dispatch(
                SendFailed(
                    event_type=EventType.SEND_FAILED,
                    ts_ms=_now_ms(),
                    reason="no attachment could be encoded",
                )
            )
            return

        try:
            await self.controller.send(turn.parts)
            await self.controller.mark_turn_complete()
        except TransmissionError as e:
            await self._dispatch(
                SendFailed(
                    event_type=EventType.SEND_FAILED,
                    ts_ms=_now_ms(),
                    reason=str(e),
                )
            )
            return

        self.composer.clear()
        await self._dispatch(
            SendCompleted(
                event_type=EventType.SEND_COMPLETED,
                ts_ms=_now_ms(),
                part_count=len(turn.parts),
            )
        )
        await self._attachments_changed()

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    async def reset(self) -> None:
        """
        Start over: fresh session, empty transcript, flushed playback,
        discarded pending input. Capture state is left as is.
        """
        if not self._config.has_credential:
            return

        self.composer.clear()
        await self.controller.reset()
        await self._dispatch(
            SessionReset(
                event_type=EventType.SESSION_RESET,
                ts_ms=_now_ms(),
                session_id=self.controller.session_id or "",
            )
        )

    async def close(self) -> None:
        """Tear down capture, playback and session. Idempotent."""
        if self._closed:
            return
        self._closed = True

        await self.stop()
        self.capture.stop()
        self.playback.interrupt()

        for task in list(self._audio_tasks):
            task.cancel()
        if self._audio_tasks:
            await asyncio.gather(*self._audio_tasks, return_exceptions=True)

        await self.controller.close()

        if self._close_speaker is not None:
            self._close_speaker()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "ENGINE_CLOSED",
            "session_id": self.state.session_id,
        })

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        await self._runtime.handle_event(event)

    def _is_listening(self) -> bool:
        return self._runtime.state.turn_state is TurnState.LISTENING

    def _on_chunk(self, chunk: AudioChunk) -> None:
        task = asyncio.create_task(self._send_chunk(chunk))
        self._audio_tasks.add(task)
        task.add_done_callback(self._audio_tasks.discard)

    async def _send_chunk(self, chunk: AudioChunk) -> None:
        try:
            await self.controller.send_audio(chunk)
        except TransmissionError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "AUDIO_CHUNK_DROPPED",
                "session_id": self.controller.session_id,
                "sequence_num": chunk.sequence_num,
                "error": str(e),
            })
            await self._dispatch(
                TransmissionFailed(
                    event_type=EventType.TRANSMISSION_FAILED,
                    ts_ms=_now_ms(),
                    reason=str(e),
                )
            )

    async def _attachments_changed(self) -> None:
        await self._dispatch(
            AttachmentsChanged(
                event_type=EventType.ATTACHMENTS_CHANGED,
                ts_ms=_now_ms(),
                count=len(self.composer.attachments),
            )
        )

    def __repr__(self) -> str:
        s = self.state
        return f"LiveEngine(turn_state={s.turn_state.value}, connection={s.connection_status.value})"
