"""
Multimodal composer: pending text + attachments -> one outbound turn.

Rules:
- Parts are ordered: one text part (if text is non-empty), then one binary
  part per attachment in the order they were added.
- Each binary part carries its media type and a base64 payload.
- An attachment that cannot be read is skipped; the rest of the turn is sent.
- Buffered attachments are destroyed only by clear() (after a successful
  send) or by explicit remove_attachment().
"""

from __future__ import annotations

import asyncio
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from errors import AttachmentEncodingError, UnsupportedAttachmentError
from observability.logger import log_event
from protocol.encoding import encode_payload, to_data_url
from protocol.messages import BlobPart, Part, TextPart
from spec import FALLBACK_MEDIA_TYPE, INPUT_MODALITIES


class AttachmentKind(str, Enum):
    """Coarse attachment class derived from the declared media type."""

    IMAGE = "image"
    AUDIO = "audio"
    OTHER = "other"


# Input modality an attachment kind requires; None = always accepted
_REQUIRED_MODALITY: dict[AttachmentKind, str | None] = {
    AttachmentKind.IMAGE: "IMAGE",
    AttachmentKind.AUDIO: "AUDIO",
    AttachmentKind.OTHER: None,
}


def classify_media_type(media_type: str) -> AttachmentKind:
    """Map a MIME type onto an attachment kind."""
    major = media_type.split("/", 1)[0].strip().lower()
    if major == "image":
        return AttachmentKind.IMAGE
    if major == "audio":
        return AttachmentKind.AUDIO
    return AttachmentKind.OTHER


def resolve_media_type(declared: str | None, name: str) -> str:
    """Declared type wins; otherwise guess from the file name."""
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(name)
    return guessed or FALLBACK_MEDIA_TYPE


@dataclass(frozen=True)
class Attachment:
    """
    A pending binary attachment.

    Exactly one of path / data is set. preview is an opaque token for the
    presentation layer (a data: URL for in-memory images, else None).
    """
    name: str
    media_type: str
    kind: AttachmentKind
    path: Path | None = None
    data: bytes | None = None
    preview: str | None = None

    async def read(self) -> bytes:
        """
        Return the attachment bytes.

        Raises:
            AttachmentEncodingError if the file cannot be read.
        """
        if self.data is not None:
            return self.data
        assert self.path is not None
        try:
            return await asyncio.to_thread(self.path.read_bytes)
        except OSError as e:
            raise AttachmentEncodingError(f"cannot read {self.name}: {e}") from e


@dataclass(frozen=True)
class ComposedTurn:
    """Result of compose(): parts to send plus attachments that were skipped."""
    parts: tuple[Part, ...]
    skipped: tuple[tuple[Attachment, AttachmentEncodingError], ...] = ()

    @property
    def is_empty(self) -> bool:
        """True if there is nothing to send."""
        return not self.parts


class MultimodalComposer:
    """Buffers user input until the next send."""

    def __init__(self, *, input_modalities: tuple[str, ...] = INPUT_MODALITIES) -> None:
        self._input_modalities = frozenset(input_modalities)
        self._attachments: list[Attachment] = []
        self.text: str = ""

    # ------------------------------------------------------------------
    # Buffer management
    # ------------------------------------------------------------------

    @property
    def attachments(self) -> tuple[Attachment, ...]:
        """Pending attachments, in send order."""
        return tuple(self._attachments)

    @property
    def has_content(self) -> bool:
        """True if a send would transmit anything."""
        return bool(self.text.strip()) or bool(self._attachments)

    def add_attachment(
        self,
        path: str | Path | None = None,
        *,
        data: bytes | None = None,
        media_type: str | None = None,
        name: str | None = None,
    ) -> Attachment:
        """
        Buffer a file (by path) or an in-memory blob until the next send.

        Raises:
            ValueError if neither or both of path / data are given.
            UnsupportedAttachmentError if the kind's modality is disabled.
        """
        if (path is None) == (data is None):
            raise ValueError("exactly one of path or data is required")

        resolved_path = Path(path) if path is not None else None
        display_name = name or (resolved_path.name if resolved_path else "attachment")
        resolved_type = resolve_media_type(media_type, display_name)
        kind = classify_media_type(resolved_type)

        required = _REQUIRED_MODALITY[kind]
        if required is not None and required not in self._input_modalities:
            raise UnsupportedAttachmentError(
                f"{display_name}: {kind.value} input is disabled for this session"
            )

        preview = None
        if data is not None and kind is AttachmentKind.IMAGE:
            preview = to_data_url(data, resolved_type)

        attachment = Attachment(
            name=display_name,
            media_type=resolved_type,
            kind=kind,
            path=resolved_path,
            data=data,
            preview=preview,
        )
        self._attachments.append(attachment)
        return attachment

    def remove_attachment(self, index: int) -> Attachment:
        """Explicit user removal. Raises IndexError for a bad index."""
        return self._attachments.pop(index)

    def clear(self) -> None:
        """Destroy all pending input (after a successful send, or on reset)."""
        self._attachments.clear()
        self.text = ""

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    async def compose(
        self,
        text: str | None = None,
        attachments: tuple[Attachment, ...] | None = None,
    ) -> ComposedTurn:
        """
        Build the ordered part list for one outbound turn.

        Defaults to the buffered text and attachments. Unreadable
        attachments are skipped and returned in ComposedTurn.skipped.
        """
        body = (self.text if text is None else text).strip()
        pending = self.attachments if attachments is None else attachments

        parts: list[Part] = []
        skipped: list[tuple[Attachment, AttachmentEncodingError]] = []

        if body:
            parts.append(TextPart(text=body))

        for attachment in pending:
            try:
                raw = await attachment.read()
            except AttachmentEncodingError as e:
                skipped.append((attachment, e))
                log_event({
                    "event_type": "ATTACHMENT_SKIPPED",
                    "name": attachment.name,
                    "media_type": attachment.media_type,
                    "error": str(e),
                })
                continue
            parts.append(BlobPart(media_type=attachment.media_type, data=encode_payload(raw)))

        return ComposedTurn(parts=tuple(parts), skipped=tuple(skipped))
