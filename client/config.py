"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No engine logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from spec import (
    DEFAULT_ENDPOINT,
    DEFAULT_MODEL,
    DEFAULT_VOICE,
    INPUT_MODALITIES,
    RESPONSE_MODALITIES,
)


def _split_modalities(raw: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if raw is None or not raw.strip():
        return default
    return tuple(m.strip().upper() for m in raw.split(",") if m.strip())


def _load_system_instruction() -> str:
    inline = os.environ.get("LIVE_SYSTEM_INSTRUCTION")
    if inline:
        return inline

    path = os.environ.get("LIVE_SYSTEM_INSTRUCTION_FILE")
    if path:
        return Path(path).read_text(encoding="utf-8")

    return ""


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to LiveEngine.create() and the session controller.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Credential
    # ------------------------------------------------------------------

    api_key: str | None = None

    # ------------------------------------------------------------------
    # Live session
    # ------------------------------------------------------------------

    endpoint: str = DEFAULT_ENDPOINT
    model: str = DEFAULT_MODEL
    voice: str = DEFAULT_VOICE
    response_modalities: tuple[str, ...] = ("AUDIO",)
    input_modalities: tuple[str, ...] = INPUT_MODALITIES
    output_audio_transcription: bool = True
    system_instruction: str = ""

    # ------------------------------------------------------------------
    # Turn taking
    # ------------------------------------------------------------------

    # Resume the mic automatically when the service finishes its turn
    auto_resume: bool = False

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    def __post_init__(self) -> None:
        unknown = set(self.response_modalities) - set(RESPONSE_MODALITIES)
        if unknown:
            raise ValueError(f"Unsupported response modalities: {sorted(unknown)}")
        unknown = set(self.input_modalities) - set(INPUT_MODALITIES)
        if unknown:
            raise ValueError(f"Unsupported input modalities: {sorted(unknown)}")

    @property
    def has_credential(self) -> bool:
        """True if a non-empty API key is configured."""
        return bool(self.api_key)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        A missing GEMINI_API_KEY does NOT raise here; the engine reports it
        as a fatal status at creation time.

        Raises:
            ValueError if a modality list names an unsupported modality.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            api_key=os.environ.get("GEMINI_API_KEY"),

            endpoint=os.environ.get("LIVE_ENDPOINT", DEFAULT_ENDPOINT),
            model=os.environ.get("LIVE_MODEL", DEFAULT_MODEL),
            voice=os.environ.get("LIVE_VOICE", DEFAULT_VOICE),
            response_modalities=_split_modalities(
                os.environ.get("LIVE_RESPONSE_MODALITIES"), ("AUDIO",)
            ),
            input_modalities=_split_modalities(
                os.environ.get("LIVE_INPUT_MODALITIES"), INPUT_MODALITIES
            ),
            output_audio_transcription=os.environ.get("LIVE_OUTPUT_TRANSCRIPTION", "1") == "1",
            system_instruction=_load_system_instruction(),

            auto_resume=os.environ.get("LIVE_AUTO_RESUME", "0") == "1",

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
