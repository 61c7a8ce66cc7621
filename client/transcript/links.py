"""
Per-turn transcript buffer with URL extraction on turn completion.

The buffer belongs to the current turn only: finalize() hands back the
text and clears it, so nothing leaks into the next turn's links.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from spec import LINK_PATTERN

_LINK_RE = re.compile(LINK_PATTERN)


def extract_links(text: str) -> list[str]:
    """Literal matched spans, in order; trailing punctuation is kept."""
    return _LINK_RE.findall(text)


class FinalizedTranscript(NamedTuple):
    """Transcript of one completed turn; unpacks as (text, links)."""
    text: str
    links: list[str]


class TranscriptLinkExtractor:
    """Accumulates streamed text deltas for the current turn."""

    def __init__(self) -> None:
        self._chunks: list[str] = []

    @property
    def text(self) -> str:
        """Text accumulated so far in the current turn."""
        return "".join(self._chunks)

    def append_delta(self, text: str) -> None:
        if text:
            self._chunks.append(text)

    def finalize(self) -> FinalizedTranscript:
        """Close the current turn and start an empty one."""
        full = self.text
        self._chunks.clear()
        return FinalizedTranscript(text=full, links=extract_links(full))

    def clear(self) -> None:
        """Drop the current turn without extracting anything (reset)."""
        self._chunks.clear()
