"""Incremental byte decoding and newline framing for streamed responses."""

import codecs
import logging

logger = logging.getLogger(__name__)


class StreamDecodeError(Exception):
    """Raised when streamed bytes cannot be decoded in the configured charset."""


class ByteDecoder:
    """Stateful decoder that carries partial multi-byte sequences between reads."""

    def __init__(self, charset: str = "utf-8") -> None:
        self.charset = charset
        self._decoder = codecs.getincrementaldecoder(charset)(errors="strict")

    def decode(self, chunk: bytes) -> str:
        try:
            return self._decoder.decode(chunk, final=False)
        except UnicodeDecodeError as exc:
            raise StreamDecodeError(f"Invalid {self.charset} data in stream: {exc.reason}") from exc

    def finish(self) -> str:
        """Flush the decoder. Raises StreamDecodeError on a truncated sequence."""
        try:
            return self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as exc:
            raise StreamDecodeError(f"Truncated {self.charset} sequence at end of stream") from exc


class LineBuffer:
    """Split decoded text into complete lines, keeping the trailing fragment.

    ``feed`` never returns a partial line: whatever follows the last ``\\n``
    is held back and prefixed to the next chunk. ``close`` releases the held
    fragment as a final line.
    """

    def __init__(self, charset: str = "utf-8") -> None:
        self._decoder = ByteDecoder(charset)
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: bytes) -> list[str]:
        text = self._pending + self._decoder.decode(chunk)
        *lines, self._pending = text.split("\n")
        return [line.removesuffix("\r") for line in lines]

    def close(self) -> list[str]:
        """Return the held fragment as a final line if it is non-empty and well-formed."""
        try:
            tail = self._decoder.finish()
        except StreamDecodeError as exc:
            logger.warning("Discarding incomplete final line: %s", exc)
            self._pending = ""
            return []

        remainder = self._pending + tail
        self._pending = ""
        lines = [line.removesuffix("\r") for line in remainder.split("\n")]
        return [line for line in lines if line]
