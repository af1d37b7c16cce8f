"""Reassembly of frames from a fragmented RFCOMM byte stream.

RFCOMM reads arrive in arbitrary chunks: one chunk may hold several
frames, half a frame, or line noise. :class:`FrameReassembler` buffers
the stream and cuts out every complete ``START ... END`` span.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterator

from .framing import END_MARKER, START_MARKER, Message, decode

logger = logging.getLogger(__name__)


class FrameReassembler:
    """Turns raw chunks into complete frames, in stream order.

    Usage::

        reassembler = FrameReassembler()
        for message in reassembler.messages(chunk):
            handle(message)

    Feeding is serialised: a chunk fed while a drain pass is still being
    iterated is queued, and the running pass picks it up once the bytes
    already buffered are exhausted.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._pending: deque[bytes] = deque()
        self._draining = False

    @property
    def buffered(self) -> int:
        """Number of bytes held waiting for the rest of a frame."""
        return len(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()
        self._pending.clear()

    def feed(self, chunk: bytes) -> Iterator[bytes]:
        """Queue ``chunk`` and return an iterator over the completed frames.

        The returned iterator is lazy. When another pass is already in
        flight the chunk is only queued and the iterator is empty.
        """
        self._pending.append(bytes(chunk))
        if self._draining:
            return iter(())
        return self._drain()

    def messages(self, chunk: bytes) -> Iterator[Message]:
        """Like :meth:`feed`, but decodes frames and drops malformed ones."""
        for frame in self.feed(chunk):
            message = decode(frame)
            if message is None:
                logger.debug("Dropped malformed frame: %s", frame.hex(" "))
                continue
            yield message

    def _drain(self) -> Iterator[bytes]:
        self._draining = True
        try:
            while self._pending:
                self._buffer += self._pending.popleft()
                yield from self._extract()
        finally:
            self._draining = False

    def _extract(self) -> Iterator[bytes]:
        buf = self._buffer
        while True:
            start = buf.find(START_MARKER)
            if start < 0:
                # Nothing framed can start here
                buf.clear()
                return

            end = buf.find(END_MARKER, start + 1)
            if end < 0:
                # Partial frame: keep it, drop the noise ahead of it
                if start > 0:
                    del buf[:start]
                return

            frame = bytes(buf[start : end + 1])
            del buf[: end + 1]
            yield frame
