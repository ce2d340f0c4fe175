"""
Incremental Server-Sent-Events frame decoder.

WHAT: Turn arbitrary byte chunks into complete lines and JSON data frames
WHY: Network chunks split lines and even multi-byte characters at random points
HOW: Incremental UTF-8 decoder plus a single pending-partial-line buffer
"""

import codecs
import json
from typing import Any, Iterator

from ..utils.logger import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class SSEFrameDecoder:
    """
    Stateful line splitter for one stream.

    Every segment before the last line feed is a complete line; the tail is
    kept until the next chunk. Whatever is still buffered when the stream ends
    is discarded, since a well-formed stream ends with a blank line.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Start of a not-yet-terminated line."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """
        Consume one chunk and return the lines it completed.

        Args:
            chunk: Raw bytes from the transport (str is accepted as-is)

        Returns:
            Complete lines in arrival order, without their line feed
        """
        if isinstance(chunk, bytes):
            text = self._decoder.decode(chunk)
        else:
            text = chunk

        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return lines

    def finish(self) -> None:
        """End of input: drop the unterminated tail and reset."""
        if self._buffer.strip():
            logger.debug(f"Discarding unterminated SSE line: {self._buffer[:100]}")
        self._decoder.reset()
        self._buffer = ""


def parse_data_line(line: str) -> Any | None:
    """
    Classify one complete line and decode its JSON payload.

    Blank lines, the [DONE] sentinel, lines without the data prefix and
    frames with malformed JSON all yield None; none of them is an error.

    Returns:
        Decoded JSON payload, or None when the line carries no event
    """
    line = line.strip()

    if not line or line == DATA_PREFIX + DONE_SENTINEL:
        return None

    if not line.startswith(DATA_PREFIX):
        return None

    data_str = line[len(DATA_PREFIX):]

    try:
        return json.loads(data_str)
    except json.JSONDecodeError:
        logger.debug(f"Skipping malformed SSE frame: {data_str[:100]}")
        return None


def iter_payloads(lines: list[str]) -> Iterator[Any]:
    """Yield the decoded payload of every data frame among `lines`."""
    for line in lines:
        payload = parse_data_line(line)
        if payload is not None:
            yield payload
