"""Request body streams and response body sinks.

Request side:
  open_input_stream()  — io.BytesIO over the visible body bytes
  open_reader()        — io.TextIOWrapper decoding with the request charset

Response side:
  ResponseOutputStream — binary sink (io.RawIOBase)
  ResponseWriter       — text sink (io.TextIOBase) encoding with one
                         incremental encoder, so BOM-emitting codecs such as
                         UTF-16 write a single BOM for the whole body

Both response sinks forward bytes to a ResponseSink (the NormalizedResponse),
which buffers them and commits once the buffer fills or on flush().
"""

from __future__ import annotations

import codecs
import io
from typing import Optional, Protocol


class ResponseSink(Protocol):
    """What the response-side streams write into."""

    def write_body(self, data: bytes) -> None: ...

    def flush_buffer(self) -> None: ...


# ─── Request side ─────────────────────────────────────────────────────────────


def open_input_stream(body: bytes) -> io.BytesIO:
    return io.BytesIO(body)


def open_reader(stream: io.BytesIO, charset: str) -> io.TextIOWrapper:
    """Wrap ``stream`` in a text reader.

    Malformed input decodes to U+FFFD instead of raising; line endings are
    passed through untranslated.
    """
    return io.TextIOWrapper(stream, encoding=charset, errors="replace", newline="")


# ─── Response side ────────────────────────────────────────────────────────────


class ResponseOutputStream(io.RawIOBase):
    """Binary response body sink."""

    def __init__(self, sink: ResponseSink) -> None:
        super().__init__()
        self._sink: Optional[ResponseSink] = sink

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:  # type: ignore[override]
        if self.closed or self._sink is None:
            raise ValueError("write to closed response output stream")
        chunk = bytes(data)
        if chunk:
            self._sink.write_body(chunk)
        return len(chunk)

    def flush(self) -> None:
        if not self.closed and self._sink is not None:
            self._sink.flush_buffer()

    def close(self) -> None:
        """Flush (committing the response) and close."""
        if not self.closed and self._sink is not None:
            self._sink.flush_buffer()
        super().close()

    def detach_sink(self) -> None:
        """Close without flushing; used when the owning response is reset."""
        self._sink = None
        super().close()


class ResponseWriter(io.TextIOBase):
    """Text response body sink with a charset fixed at construction.

    Characters the charset cannot represent are written as ``?``.
    """

    def __init__(self, sink: ResponseSink, charset: str) -> None:
        super().__init__()
        self._sink: Optional[ResponseSink] = sink
        self._charset = charset
        self._encoder = codecs.getincrementalencoder(charset)(errors="replace")

    @property
    def encoding(self) -> str:  # type: ignore[override]
        return self._charset

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:  # type: ignore[override]
        if self.closed or self._sink is None:
            raise ValueError("write to closed response writer")
        data = self._encoder.encode(text)
        if data:
            self._sink.write_body(data)
        return len(text)

    def flush(self) -> None:
        if not self.closed and self._sink is not None:
            self._sink.flush_buffer()

    def close(self) -> None:
        """Flush (committing the response) and close."""
        if not self.closed and self._sink is not None:
            self._sink.flush_buffer()
        super().close()

    def detach_sink(self) -> None:
        """Close without flushing; used when the owning response is reset."""
        self._sink = None
        super().close()
