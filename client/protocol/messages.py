"""
Live session wire messages (JSON over websocket).

Outbound (client -> service):

    {"setup": {...}}                                   once, first message
    {"clientContent": {"turns": [...], "turnComplete": false}}   content turn
    {"clientContent": {"turnComplete": true}}          end-of-turn marker
    {"realtimeInput": {"mediaChunks": [{"mimeType": ..., "data": ...}]}}

Inbound (service -> client), every field optional:

    {"setupComplete": {}}
    {"serverContent": {
        "modelTurn": {"parts": [{"inlineData": {...}} | {"text": ...}]},
        "outputTranscription": {"text": ...},
        "turnComplete": true,
        "interrupted": true}}
    {"goAway": {"timeLeft": "..."}}

Builders are pure functions returning dicts; parse_server_message never
raises on unknown or missing fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from audio.frames import AudioChunk
from protocol.encoding import encode_payload
from spec import INPUT_MIME_TYPE

if TYPE_CHECKING:
    from config import AppConfig


# -------------------------
# Outbound parts
# -------------------------

@dataclass(frozen=True)
class TextPart:
    """Outbound text part."""
    text: str

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the wire shape."""
        return {"text": self.text}


@dataclass(frozen=True)
class BlobPart:
    """Outbound binary part; data is already transport-encoded."""
    media_type: str
    data: str

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the wire shape."""
        return {"inlineData": {"mimeType": self.media_type, "data": self.data}}


Part = TextPart | BlobPart


# -------------------------
# Outbound builders
# -------------------------

def build_setup(config: AppConfig) -> dict[str, Any]:
    """
    Build the session setup message from configuration.

    The system instruction is sent exactly once, here.
    """
    generation_config: dict[str, Any] = {
        "responseModalities": list(config.response_modalities),
        "speechConfig": {
            "voiceConfig": {
                "prebuiltVoiceConfig": {"voiceName": config.voice},
            },
        },
    }

    setup: dict[str, Any] = {
        "model": _qualified_model(config.model),
        "generationConfig": generation_config,
    }

    if config.system_instruction:
        setup["systemInstruction"] = {
            "parts": [{"text": config.system_instruction}],
        }

    if config.output_audio_transcription:
        setup["outputAudioTranscription"] = {}

    return {"setup": setup}


def build_client_content(parts: Sequence[Part]) -> dict[str, Any]:
    """Build one user content turn; the turn stays open until the marker."""
    return {
        "clientContent": {
            "turns": [
                {"role": "user", "parts": [p.to_wire() for p in parts]},
            ],
            "turnComplete": False,
        }
    }


def build_turn_complete() -> dict[str, Any]:
    """Build the explicit end-of-turn marker."""
    # A clientContent turn is closed only by clientContent.turnComplete;
    # realtimeInput has no turn flag for it.
    return {"clientContent": {"turnComplete": True}}


def build_realtime_audio(chunk: AudioChunk) -> dict[str, Any]:
    """Build a realtime mic chunk message."""
    return {
        "realtimeInput": {
            "mediaChunks": [
                {
                    "mimeType": INPUT_MIME_TYPE,
                    "data": encode_payload(chunk.pcm_bytes),
                }
            ]
        }
    }


def _qualified_model(model: str) -> str:
    return model if model.startswith("models/") else f"models/{model}"


# -------------------------
# Inbound parsing
# -------------------------

@dataclass(frozen=True)
class InboundAudio:
    """One inbound audio part (payload still transport-encoded)."""
    media_type: str
    data: str


@dataclass(frozen=True)
class ServerMessage:
    """
    Normalized inbound message.

    audio_parts preserve arrival order within the message.
    text_delta concatenates transcription and model text parts.
    """
    setup_complete: bool = False
    audio_parts: tuple[InboundAudio, ...] = ()
    text_delta: str = ""
    turn_complete: bool = False
    interrupted: bool = False
    go_away: str | None = None


def parse_server_message(data: Mapping[str, Any]) -> ServerMessage:
    """
    Normalize a decoded JSON message from the service.

    Pure function; never raises on unexpected shapes.
    """
    setup_complete = "setupComplete" in data

    go_away: str | None = None
    raw_go_away = data.get("goAway")
    if isinstance(raw_go_away, Mapping):
        go_away = str(raw_go_away.get("timeLeft", ""))

    content = data.get("serverContent")
    if not isinstance(content, Mapping):
        return ServerMessage(setup_complete=setup_complete, go_away=go_away)

    audio_parts: list[InboundAudio] = []
    text_chunks: list[str] = []

    model_turn = content.get("modelTurn")
    parts = model_turn.get("parts") if isinstance(model_turn, Mapping) else None
    for part in parts or ():
        if not isinstance(part, Mapping):
            continue
        inline = part.get("inlineData")
        if isinstance(inline, Mapping) and isinstance(inline.get("data"), str):
            media_type = str(inline.get("mimeType", ""))
            if media_type.startswith("audio/"):
                audio_parts.append(InboundAudio(media_type=media_type, data=inline["data"]))
            continue
        text = part.get("text")
        if isinstance(text, str) and not part.get("thought"):
            text_chunks.append(text)

    transcription = content.get("outputTranscription")
    if isinstance(transcription, Mapping) and isinstance(transcription.get("text"), str):
        text_chunks.append(transcription["text"])

    return ServerMessage(
        setup_complete=setup_complete,
        audio_parts=tuple(audio_parts),
        text_delta="".join(text_chunks),
        turn_complete=bool(content.get("turnComplete")),
        interrupted=bool(content.get("interrupted")),
        go_away=go_away,
    )
