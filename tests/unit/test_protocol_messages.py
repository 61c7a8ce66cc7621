# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig
from protocol.encoding import PayloadDecodeError, decode_payload, encode_payload, to_data_url
from protocol.messages import (
    BlobPart,
    TextPart,
    build_client_content,
    build_setup,
    build_turn_complete,
    parse_server_message,
)


def test_setup_carries_model_voice_and_transcription():
    config = AppConfig(
        api_key="k",
        model="some-model",
        voice="Kore",
        system_instruction="Be brief.",
    )

    setup = build_setup(config)["setup"]

    assert setup["model"] == "models/some-model"
    assert setup["generationConfig"]["responseModalities"] == ["AUDIO"]
    voice = setup["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]
    assert voice == {"voiceName": "Kore"}
    assert setup["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
    assert setup["outputAudioTranscription"] == {}


def test_setup_omits_optional_sections():
    setup = build_setup(AppConfig(model="models/m", output_audio_transcription=False))["setup"]

    assert setup["model"] == "models/m"
    assert "systemInstruction" not in setup
    assert "outputAudioTranscription" not in setup


def test_client_content_keeps_part_order():
    message = build_client_content([
        TextPart(text="look"),
        BlobPart(media_type="image/png", data="AAAA"),
    ])

    (turn,) = message["clientContent"]["turns"]
    assert turn["role"] == "user"
    assert turn["parts"] == [
        {"text": "look"},
        {"inlineData": {"mimeType": "image/png", "data": "AAAA"}},
    ]
    assert message["clientContent"]["turnComplete"] is False
    assert build_turn_complete() == {"clientContent": {"turnComplete": True}}


def test_parse_model_turn_audio_and_text():
    message = parse_server_message({
        "serverContent": {
            "modelTurn": {
                "parts": [
                    {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": "AAA="}},
                    {"text": "thinking...", "thought": True},
                    {"text": "Hi "},
                    {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": "BBB="}},
                    {"inlineData": {"mimeType": "image/png", "data": "CCC="}},
                ]
            },
            "outputTranscription": {"text": "there"},
        }
    })

    assert [p.data for p in message.audio_parts] == ["AAA=", "BBB="]
    assert message.text_delta == "Hi there"
    assert not message.turn_complete


def test_parse_lifecycle_flags():
    assert parse_server_message({"setupComplete": {}}).setup_complete
    assert parse_server_message({"serverContent": {"interrupted": True}}).interrupted
    assert parse_server_message({"serverContent": {"turnComplete": True}}).turn_complete
    assert parse_server_message({"goAway": {"timeLeft": "10s"}}).go_away == "10s"


def test_parse_tolerates_unexpected_shapes():
    message = parse_server_message({
        "serverContent": {"modelTurn": {"parts": ["junk", {"inlineData": "nope"}]}},
        "toolCall": {},
    })

    assert message.audio_parts == ()
    assert message.text_delta == ""
    assert parse_server_message({"serverContent": "bad"}).audio_parts == ()


def test_payload_encoding_is_strict():
    assert decode_payload(encode_payload(b"\x00\xffdata")) == b"\x00\xffdata"
    with pytest.raises(PayloadDecodeError):
        decode_payload("@@@")
    assert to_data_url(b"\x01\x02", "image/gif") == "data:image/gif;base64,AQI="
