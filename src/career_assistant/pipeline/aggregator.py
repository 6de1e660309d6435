"""Accumulate an incremental text stream into one append-only buffer."""

from __future__ import annotations

import codecs
from collections.abc import Callable

DeltaCallback = Callable[[str, str], None]


class StreamAggregator:
    """Decode and append stream increments, notifying one consumer per delta.

    Byte chunks go through an incremental decoder, so a multi-byte code point
    split across two chunks comes out whole once the second half arrives.
    The consumer receives ``(delta, buffer)`` synchronously, in arrival order.
    """

    def __init__(self, on_delta: DeltaCallback | None = None, encoding: str = "utf-8"):
        self._on_delta = on_delta
        self._decoder = codecs.getincrementaldecoder(encoding)()
        self._text = ""
        self._finished = False

    @property
    def text(self) -> str:
        return self._text

    @property
    def finished(self) -> bool:
        return self._finished

    def __len__(self) -> int:
        return len(self._text)

    def feed(self, chunk: str | bytes) -> str:
        """Append one increment and return the decoded delta ("" if none yet)."""
        if self._finished:
            raise RuntimeError("Cannot feed a finished stream")
        if isinstance(chunk, (bytes, bytearray)):
            delta = self._decoder.decode(bytes(chunk))
        else:
            delta = chunk
        self._append(delta)
        return delta

    def finish(self) -> str:
        """Flush the decoder and return the final buffer.

        Raises ``UnicodeDecodeError`` if the stream ended inside a multi-byte
        sequence.
        """
        if not self._finished:
            self._finished = True
            self._append(self._decoder.decode(b"", final=True))
        return self._text

    def _append(self, delta: str) -> None:
        if not delta:
            return
        self._text += delta
        if self._on_delta is not None:
            self._on_delta(delta, self._text)
