"""
Reader — parses properties streams into key-value pairs.

Stages:
  - LineReader joins physical lines into logical lines (continuations
    resolved, leading whitespace of continued segments dropped, comments
    flagged)
  - split() unescapes a logical line into its key and value
  - PropertiesReader drives both over a whole stream, string or file

Robustness features:
  - Malformed escapes degrade to U+FFFD instead of failing
  - Invalid UTF-8 bytes decode to U+FFFD one byte at a time
  - File size limits (prevents OOM from crafted files)
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Iterator, MutableMapping

from proptable import DEFAULT_ENCODING, MAX_FILE_SIZE, READ_CHUNK_SIZE
from proptable._format.spec import (
    BACKSLASH, COMMENT_PREFIX_BYTES, CR, LF, SPACE_BYTES, UNICODE_ESCAPE_SIZE,
    decode_escape, decode_rune, is_delimiter, is_space,
)
from proptable.errors import PropertiesIOError

if TYPE_CHECKING:
    from proptable.table import PropertyTable

logger = logging.getLogger(__name__)

# Longest escape: a surrogate pair, '\\uxxxx\\uxxxx'
_MAX_ESCAPE_SPAN = 2 * UNICODE_ESCAPE_SIZE


@dataclass(frozen=True)
class LogicalLine:
    """One key-value declaration or comment, continuations already joined.

    Attributes:
        data: Raw (still escaped) bytes of the line.
        is_comment: A '#' or '!' was the first byte of the line, read while
            nothing had been accumulated yet.
        eof: The stream ended while (or right after) reading this line.
        error: Stream error that cut the line short, if any.
    """

    data: bytes
    is_comment: bool = False
    eof: bool = False
    error: OSError | None = None


class LineReader:
    """
    Forward-only reader producing logical lines from a byte stream.

    The stream only needs a ``read(n)`` method. Text streams are accepted
    too; their chunks are encoded to UTF-8 before scanning.

    Usage:
        reader = LineReader(stream)
        for line in reader:
            if line.data and not line.is_comment:
                key, value = split(line.data)
    """

    def __init__(self, stream: IO[Any], chunk_size: int = READ_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._stream = stream
        self._chunk_size = chunk_size
        self._chunk = b""
        self._pos = 0
        self._exhausted = False

    def _read_byte(self) -> int | None:
        """Next byte of the stream, None at end of stream."""
        if self._pos >= len(self._chunk):
            if self._exhausted:
                return None
            chunk = self._stream.read(self._chunk_size)
            if isinstance(chunk, str):
                chunk = chunk.encode(DEFAULT_ENCODING)
            if not chunk:
                self._exhausted = True
                return None
            self._chunk = bytes(chunk)
            self._pos = 0
        b = self._chunk[self._pos]
        self._pos += 1
        return b

    def _unread_byte(self) -> None:
        # Only ever called right after a successful _read_byte()
        self._pos -= 1

    def next_logical_line(self) -> LogicalLine:
        """Read the next logical line.

        A physical segment ending with an odd run of backslashes continues
        on the next segment: the last backslash and the terminator are
        dropped, and so is the leading whitespace of the next segment. An
        even run leaves the terminator unescaped. Comment lines never
        continue.

        At end of stream, returns whatever was accumulated with eof=True.
        A stream error (OSError) before any content propagates; after some
        content, the partial line is returned with eof=True and the error
        attached.
        """
        buf = bytearray()
        try:
            return self._scan_line(buf)
        except OSError as e:
            if not buf:
                raise
            logger.debug("Stream failed after %d bytes of a line: %s", len(buf), e)
            return LogicalLine(bytes(buf), buf[0] in COMMENT_PREFIX_BYTES, eof=True, error=e)

    def _scan_line(self, buf: bytearray) -> LogicalLine:
        is_comment = False
        while True:
            x = self._read_byte()
            while x is not None and x in SPACE_BYTES:
                x = self._read_byte()
            if x is None:
                return LogicalLine(bytes(buf), is_comment, eof=True)

            if not buf and x in COMMENT_PREFIX_BYTES:
                is_comment = True

            escaped = False
            while x != LF and x != CR:
                escaped = not escaped if x == BACKSLASH else False
                buf.append(x)
                x = self._read_byte()
                if x is None:
                    return LogicalLine(bytes(buf), is_comment, eof=True)

            if x == CR:
                x = self._read_byte()
                if x is None:
                    return LogicalLine(bytes(buf), is_comment, eof=True)
                if x != LF:
                    self._unread_byte()

            if is_comment or not escaped:
                return LogicalLine(bytes(buf), is_comment)
            del buf[-1]

    def __iter__(self) -> Iterator[LogicalLine]:
        while True:
            line = self.next_logical_line()
            yield line
            if line.error is not None:
                raise line.error
            if line.eof:
                return


def _unescape(data: bytes, split_key: bool) -> tuple[str, int]:
    """Decode escaped bytes into a string.

    With split_key, stops at the first unescaped space or delimiter, skips
    it and any unescaped spaces/delimiters after it, and returns the number
    of bytes consumed so far. Otherwise decodes all of ``data``.
    """
    out: list[str] = []
    n = len(data)
    pos = 0
    while pos < n:
        if data[pos] == BACKSLASH:
            code_point, size = decode_escape(data[pos:pos + _MAX_ESCAPE_SPAN])
            out.append(chr(code_point))
            pos += size
            continue

        code_point, size = decode_rune(data, pos)
        ch = chr(code_point)
        if split_key and (is_space(ch) or is_delimiter(ch)):
            pos += size
            while pos < n:
                code_point, size = decode_rune(data, pos)
                ch = chr(code_point)
                if not (is_space(ch) or is_delimiter(ch)):
                    break
                pos += size
            return "".join(out), pos
        out.append(ch)
        pos += size
    return "".join(out), min(pos, n)


def split(line: bytes) -> tuple[str, str]:
    """Split a logical line into its unescaped (key, value).

    The key ends at the first unescaped ' ', '\\t', '\\f', '=' or ':'. That
    character and the spaces/delimiters right after it are skipped; the rest
    is the value. Escaped delimiters and spaces belong to the key.
    """
    key, consumed = _unescape(line, split_key=True)
    value, _ = _unescape(line[consumed:], split_key=False)
    return key, value


class PropertiesReader:
    """
    Properties stream reader.

    Usage:
        # Into an existing table (or any mutable mapping)
        count = PropertiesReader.load(stream, table)

        # New table from a string or a file
        table = PropertiesReader.parse("key=value")
        table = PropertiesReader.read("app.properties")
    """

    @staticmethod
    def load(stream: IO[Any], table: MutableMapping[str, str],
             chunk_size: int = READ_CHUNK_SIZE) -> int:
        """Load every key-value pair of ``stream`` into ``table``.

        Existing keys are overwritten. Comment and blank lines are skipped.
        Returns the number of pairs loaded. A failing stream raises
        PropertiesIOError with the count loaded so far.
        """
        count = 0
        reader = LineReader(stream, chunk_size)
        while True:
            try:
                line = reader.next_logical_line()
            except OSError as e:
                raise PropertiesIOError.wrap(e, count, "read") from e
            if line.data and not line.is_comment:
                key, value = split(line.data)
                table[key] = value
                count += 1
            if line.error is not None:
                raise PropertiesIOError.wrap(line.error, count, "read") from line.error
            if line.eof:
                break
        logger.debug("Loaded %d properties", count)
        return count

    @classmethod
    def parse(cls, data: str | bytes,
              table: PropertyTable | None = None) -> PropertyTable:
        """Load a string or bytes into ``table`` (a new one if None)."""
        from proptable.table import PropertyTable

        if table is None:
            table = PropertyTable()
        if isinstance(data, str):
            data = data.encode(DEFAULT_ENCODING)
        cls.load(io.BytesIO(data), table)
        return table

    @classmethod
    def read(cls, path: str | Path, table: PropertyTable | None = None,
             max_size: int = MAX_FILE_SIZE) -> PropertyTable:
        """Load a properties file into ``table`` (a new one if None)."""
        path = Path(path)
        file_size = path.stat().st_size
        if file_size > max_size:
            raise ValueError(
                f"File size {file_size} exceeds maximum {max_size} bytes. "
                f"Pass max_size= to override."
            )
        from proptable.table import PropertyTable

        if table is None:
            table = PropertyTable()
        with open(path, "rb") as f:
            count = cls.load(f, table)
        logger.debug("Read %d properties from %s", count, path)
        return table
