"""
Session controller: owns the bidirectional live session.

Responsibilities:
- Open the websocket, send setup, wait for setupComplete
- Expose the session handle as an asyncio.Future so that every send issued
  before readiness queues behind it, in call order
- Route inbound messages: audio -> PlaybackScheduler, text ->
  TranscriptLinkExtractor, interrupted -> PlaybackScheduler.interrupt()
- Report lifecycle (connecting / opened / error / closed) as events
- reset(): close best-effort and open a fresh session

NOT responsible for:
- Turn-taking decisions (reducer)
- Reconnecting on its own; a dropped session is reported, not retried
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence
from uuid import uuid4

from websockets.asyncio.client import ClientConnection
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from errors import SessionConnectionError, TransmissionError
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.events import (
    Event,
    EventType,
    RemoteInterrupted,
    RemoteTurnComplete,
    SessionClosed,
    SessionConnecting,
    SessionError,
    SessionGoAway,
    SessionOpened,
    TranscriptUpdated,
)
from protocol.messages import (
    Part,
    ServerMessage,
    build_client_content,
    build_realtime_audio,
    build_setup,
    build_turn_complete,
    parse_server_message,
)
from spec import SESSION_SETUP_TIMEOUT_S, WS_MAX_MESSAGE_BYTES

if TYPE_CHECKING:
    from audio.frames import AudioChunk
    from audio.playback import PlaybackScheduler
    from config import AppConfig
    from transcript.links import TranscriptLinkExtractor


EmitEvent = Callable[[Event], Awaitable[None]]
Connector = Callable[..., Awaitable[ClientConnection]]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


def _consume_exception(fut: asyncio.Future[Any]) -> None:
    # A handle nobody awaited must not warn "exception never retrieved".
    if not fut.cancelled():
        fut.exception()


class SessionController:
    """
    One live session at a time.

    The handle future resolves to the open connection once setupComplete
    arrives, or fails with SessionConnectionError. It is replaced only by
    reset().
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        playback: PlaybackScheduler,
        transcript: TranscriptLinkExtractor,
        emit_event: EmitEvent,
        connect: Connector = ws_connect,
    ) -> None:
        self._config = config
        self._playback = playback
        self._transcript = transcript
        self._emit = emit_event
        self._connect = connect

        self._session_id: str | None = None
        self._handle: asyncio.Future[ClientConnection] | None = None
        self._task: asyncio.Task[None] | None = None

        # Serializes writes so queued sends keep call order across awaits.
        self._send_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def is_open(self) -> bool:
        """True once the handle resolved successfully."""
        h = self._handle
        return h is not None and h.done() and not h.cancelled() and h.exception() is None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """
        Start a new session in the background.

        Returns immediately after SESSION_CONNECTING is reported; readiness
        is observed through connect() or any send.
        """
        session_id = _new_session_id()
        handle: asyncio.Future[ClientConnection] = asyncio.get_running_loop().create_future()
        handle.add_done_callback(_consume_exception)

        self._session_id = session_id
        self._handle = handle

        await self._emit(
            SessionConnecting(
                event_type=EventType.SESSION_CONNECTING,
                ts_ms=_now_ms(),
                session_id=session_id,
            )
        )

        self._task = asyncio.create_task(self._run(session_id, handle))

    async def connect(self) -> ClientConnection:
        """
        Wait for the current session to be usable.

        Raises:
            SessionConnectionError if the session failed to open or was never
            opened.
        """
        if self._handle is None:
            raise SessionConnectionError("session was never opened")
        # Shielded: a cancelled waiter must not cancel the shared handle.
        return await asyncio.shield(self._handle)

    async def reset(self) -> None:
        """
        Replace the current session with a fresh one.

        Close failures of the old session are logged and swallowed. Playback
        is flushed and the transcript buffer is dropped.
        """
        old_id = self._session_id
        await self._teardown(reason="session reset")

        stopped = self._playback.interrupt()
        self._transcript.clear()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "SESSION_RESET",
            "session_id": old_id,
            "units_stopped": stopped,
        })

        await self.open()

    async def close(self) -> None:
        """Close the session for good; pending sends fail."""
        await self._teardown(reason="session closed")
        self._session_id = None

    async def _teardown(self, *, reason: str) -> None:
        handle = self._handle
        task = self._task
        self._handle = None
        self._task = None

        if handle is not None and not handle.done():
            handle.set_exception(SessionConnectionError(reason))

        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if handle is not None and handle.done() and not handle.cancelled() and handle.exception() is None:
            ws = handle.result()
            try:
                await ws.close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "SESSION_CLOSE_FAILED",
                    "session_id": self._session_id,
                    "error": repr(e),
                })

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, parts: Sequence[Part]) -> None:
        """
        Send one user content turn.

        Queued behind session readiness.

        Raises:
            TransmissionError if the session is unusable or the write fails.
        """
        await self._send_json(build_client_content(parts), what="content")

    async def mark_turn_complete(self) -> None:
        """Send the explicit end-of-turn marker."""
        await self._send_json(build_turn_complete(), what="turn_complete")

    async def send_audio(self, chunk: AudioChunk) -> None:
        """Send one realtime mic chunk. A failed chunk is dropped, not retried."""
        await self._send_json(build_realtime_audio(chunk), what="audio")

    async def _send_json(self, message: dict[str, Any], *, what: str) -> None:
        payload = json.dumps(message, separators=(",", ":"))

        async with self._send_lock:
            try:
                ws = await self.connect()
            except SessionConnectionError as e:
                raise TransmissionError(f"{what}_send_failed: {e}") from e

            try:
                await ws.send(payload)
            except ConnectionClosed as e:
                raise TransmissionError(f"{what}_send_failed: {e}") from e

    # ------------------------------------------------------------------
    # Background task
    # ------------------------------------------------------------------

    async def _run(self, session_id: str, handle: asyncio.Future[ClientConnection]) -> None:
        ws = await self._open_socket(session_id, handle)
        if ws is None:
            return
        await self._receive_loop(session_id, ws)

    async def _open_socket(
        self,
        session_id: str,
        handle: asyncio.Future[ClientConnection],
    ) -> ClientConnection | None:
        ws: ClientConnection | None = None
        try:
            with timed("session_connect", session_id=session_id):
                ws = await self._connect(
                    self._config.endpoint,
                    additional_headers={"x-goog-api-key": self._config.api_key or ""},
                    max_size=WS_MAX_MESSAGE_BYTES,
                )
                await ws.send(json.dumps(build_setup(self._config), separators=(",", ":")))
                await asyncio.wait_for(self._await_setup_complete(ws), SESSION_SETUP_TIMEOUT_S)
        except asyncio.CancelledError:
            if ws is not None:
                await ws.close()
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            reason = f"connect_failed: {e!r}"
            if not handle.done():
                handle.set_exception(SessionConnectionError(reason))
            if ws is not None:
                try:
                    await ws.close()
                except Exception:  # pylint: disable=broad-exception-caught
                    pass
            await self._emit(
                SessionError(
                    event_type=EventType.SESSION_ERROR,
                    ts_ms=_now_ms(),
                    session_id=session_id,
                    reason=reason,
                )
            )
            return None

        if handle.done():
            # Torn down while the setup reply was in flight.
            await ws.close()
            return None

        handle.set_result(ws)
        await self._emit(
            SessionOpened(
                event_type=EventType.SESSION_OPENED,
                ts_ms=_now_ms(),
                session_id=session_id,
            )
        )
        return ws

    async def _await_setup_complete(self, ws: ClientConnection) -> None:
        while True:
            message = _decode(await ws.recv())
            if message is not None and message.setup_complete:
                return

    async def _receive_loop(self, session_id: str, ws: ClientConnection) -> None:
        try:
            async for raw in ws:
                message = _decode(raw)
                if message is None:
                    log_event({
                        "ts_ms": _now_ms(),
                        "event_type": "SESSION_MESSAGE_INVALID",
                        "session_id": session_id,
                    })
                    continue
                await self._handle_message(session_id, message)
        except asyncio.CancelledError:
            raise
        except ConnectionClosedError as e:
            await self._emit(
                SessionError(
                    event_type=EventType.SESSION_ERROR,
                    ts_ms=_now_ms(),
                    session_id=session_id,
                    reason=f"connection_lost: {e}",
                )
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            await self._emit(
                SessionError(
                    event_type=EventType.SESSION_ERROR,
                    ts_ms=_now_ms(),
                    session_id=session_id,
                    reason=f"receive_failed: {e!r}",
                )
            )

        await self._emit(
            SessionClosed(
                event_type=EventType.SESSION_CLOSED,
                ts_ms=_now_ms(),
                session_id=session_id,
                reason=ws.close_reason or "",
            )
        )

    # ------------------------------------------------------------------
    # Inbound routing
    # ------------------------------------------------------------------

    async def _handle_message(self, session_id: str, message: ServerMessage) -> None:
        if session_id != self._session_id:
            return

        for part in message.audio_parts:
            self._playback.enqueue(part.data)

        if message.text_delta:
            self._transcript.append_delta(message.text_delta)
            await self._emit(
                TranscriptUpdated(
                    event_type=EventType.TRANSCRIPT_UPDATED,
                    ts_ms=_now_ms(),
                    session_id=session_id,
                    text=self._transcript.text,
                )
            )

        if message.turn_complete:
            text, links = self._transcript.finalize()
            await self._emit(
                RemoteTurnComplete(
                    event_type=EventType.REMOTE_TURN_COMPLETE,
                    ts_ms=_now_ms(),
                    session_id=session_id,
                    text=text,
                    links=tuple(links),
                )
            )

        if message.interrupted:
            with timed("interrupt_flush", session_id=session_id):
                stopped = self._playback.interrupt()
            await self._emit(
                RemoteInterrupted(
                    event_type=EventType.REMOTE_INTERRUPTED,
                    ts_ms=_now_ms(),
                    session_id=session_id,
                    units_stopped=stopped,
                )
            )

        if message.go_away is not None:
            await self._emit(
                SessionGoAway(
                    event_type=EventType.SESSION_GO_AWAY,
                    ts_ms=_now_ms(),
                    session_id=session_id,
                    time_left=message.go_away,
                )
            )


def _decode(raw: str | bytes) -> ServerMessage | None:
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return parse_server_message(data)
