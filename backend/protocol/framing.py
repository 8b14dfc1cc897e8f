"""
Brace-delimited text framing for the device serial stream.

Wire format (device -> host):
    back-to-back JSON objects with no separator other than the braces
    themselves, e.g.

        {"heartRate":[74],"spo2":[96.5],"gsr":[2.1],"ecg":[1.12]}{"heart...

Framing policy (lenient, innermost match):
- Scan for the next '}' in the buffer.
- The frame starts at the LAST '{' at or before that '}'. Any text before
  that '{' is noise and is discarded together with the frame.
- A '}' with no preceding '{' is noise: drop through it and keep scanning.
- With no '}' left, the remaining tail stays buffered for the next feed().

Because every scan starts from the first unconsumed '}', the emitted frames
depend only on the concatenated byte stream, never on how it was chunked.

Usage example:

    extractor = FrameExtractor()
    for chunk in chunks:
        for frame in extractor.feed(chunk):
            result = decode(frame)
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass

from constants import (
    FRAME_CLOSE,
    FRAME_OPEN,
    WIRE_DECODE_ERRORS,
    WIRE_ENCODING,
)


@dataclass(frozen=True)
class Frame:
    """
    One complete '{...}' record extracted from the stream.

    text:
        The frame substring, braces included.

    index:
        Monotonic per-extractor frame counter (0-based).
        Used for logging/correlation only.
    """
    text: str
    index: int


@dataclass
class FramingStats:
    """Counters for observability."""
    frames_emitted: int = 0
    noise_chars_dropped: int = 0
    resets: int = 0


class FrameExtractor:
    """
    Stateful extractor owning the frame buffer.

    Invariant:
        The buffer holds only text not yet attributed to an emitted frame
        (or discarded as noise). It shrinks only by removing a prefix that
        ends at a consumed '}', and is cleared in bulk only by reset().
    """

    def __init__(self) -> None:
        self._buffer: str = ""
        self._next_index: int = 0
        self.stats: FramingStats = FramingStats()

        # Incremental decoder keeps a multi-byte character split across
        # two chunks intact instead of replacing both halves.
        self._decoder = codecs.getincrementaldecoder(WIRE_ENCODING)(
            errors=WIRE_DECODE_ERRORS
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, chunk: bytes) -> list[Frame]:
        """
        Append a raw chunk and return every frame it completes.

        Frames are returned in left-to-right order of discovery.
        Never raises on content; an empty chunk returns [].
        """
        if chunk:
            self._buffer += self._decoder.decode(chunk)
        return self._drain()

    def feed_text(self, text: str) -> list[Frame]:
        """Same as feed() for already-decoded text (replays, tests)."""
        self._buffer += text
        return self._drain()

    def reset(self) -> None:
        """Discard all buffered text. Called on explicit stream reset."""
        self._buffer = ""
        self._decoder.reset()
        self.stats.resets += 1

    @property
    def pending(self) -> str:
        """The unconsumed tail awaiting more data."""
        return self._buffer

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _drain(self) -> list[Frame]:
        frames: list[Frame] = []

        while True:
            end = self._buffer.find(FRAME_CLOSE)
            if end == -1:
                break

            start = self._buffer.rfind(FRAME_OPEN, 0, end)
            if start == -1:
                # Unmatched '}': noise through and including it
                self.stats.noise_chars_dropped += end + 1
                self._buffer = self._buffer[end + 1:]
                continue

            frames.append(Frame(text=self._buffer[start:end + 1], index=self._next_index))
            self._next_index += 1
            self.stats.frames_emitted += 1
            self.stats.noise_chars_dropped += start
            self._buffer = self._buffer[end + 1:]

        return frames
