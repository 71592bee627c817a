"""
Writer — serializes key-value pairs to the properties format.

Escaping rules:
  - Keys: ' ', '\\t', '\\f', '=', ':', '#' and '!' get a backslash
  - Values: only a leading space/delimiter and '#'/'!' get a backslash
  - Backslashes are doubled, '\\n' and '\\r' use their shorthand escapes
  - ascii_mode: every rune outside 0x20-0x7e becomes '\\uxxxx' (a
    surrogate pair above 0xffff)
  - Comments: a '#' is inserted at the start of every comment line that
    doesn't already start with '#' or '!'

Output parses back to the same pairs with the reader.
"""

from __future__ import annotations

import contextlib
import io
import logging
import os
import tempfile
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Callable

from proptable import DEFAULT_ENCODING, LINE_SEPARATOR
from proptable._format.spec import (
    BACKSLASH, KEY_VALUE_SEPARATOR, encode_escape, encode_rune,
    is_comment_prefix, is_delimiter, is_space,
)
from proptable.errors import PropertiesIOError

if TYPE_CHECKING:
    from proptable.table import PropertyTable

logger = logging.getLogger(__name__)

# Characters always written with a two-byte escape
_SHORTHANDS = {"\n": b"\\n", "\r": b"\\r", "\\": b"\\\\"}

_EOL = LINE_SEPARATOR.encode(DEFAULT_ENCODING)


def _needs_key_protection(ch: str) -> bool:
    return is_space(ch) or is_delimiter(ch) or is_comment_prefix(ch)


def _escape_text(text: str, ascii_mode: bool, protect: Callable[[str], bool]) -> bytes:
    out = bytearray()
    for ch in text:
        escaped = encode_escape(ord(ch)) if ascii_mode else b""
        if escaped:
            out += escaped
            continue
        if ch in _SHORTHANDS:
            out += _SHORTHANDS[ch]
            continue
        if protect(ch):
            out.append(BACKSLASH)
        out += encode_rune(ord(ch))
    return bytes(out)


def escape_entry(key: str, value: str, ascii_mode: bool = False) -> bytes:
    """Escape one key-value pair as a 'key=value' line (without terminator)."""
    out = bytearray(_escape_text(key, ascii_mode, _needs_key_protection))
    out += KEY_VALUE_SEPARATOR.encode(DEFAULT_ENCODING)
    if value:
        first = value[0]
        # A '\uxxxx' escape already protects the first rune
        literal = not (ascii_mode and encode_escape(ord(first)))
        if literal and (is_space(first) or is_delimiter(first)):
            out.append(BACKSLASH)
    out += _escape_text(value, ascii_mode, is_comment_prefix)
    return bytes(out)


def escape_comment_block(text: str, ascii_mode: bool = False) -> bytes:
    """Escape a (possibly multi-line) comment.

    Line terminators are copied as-is. Every line gets a '#' prefix unless
    it already starts with '#' or '!'. No terminator is appended.
    """
    out = bytearray()
    last = "\n"
    for ch in text:
        if ch == "\n" or ch == "\r":
            out += ch.encode(DEFAULT_ENCODING)
            last = ch
            continue
        if (last == "\n" or last == "\r") and not is_comment_prefix(ch):
            out += b"#"
        escaped = encode_escape(ord(ch)) if ascii_mode else b""
        out += escaped or encode_rune(ord(ch))
        last = ch
    return bytes(out)


def _write(stream: IO[Any], data: bytes) -> None:
    if isinstance(stream, io.TextIOBase):
        stream.write(data.decode(DEFAULT_ENCODING))
    else:
        stream.write(data)


class PropertiesWriter:

    @staticmethod
    def store(stream: IO[Any], table: PropertyTable, ascii_mode: bool = False) -> int:
        """Write every pair of ``table`` (defaults excluded), one per line.

        Returns the number of pairs written. A failing stream raises
        PropertiesIOError with the count written so far.
        """
        count = 0
        for key, value in table.items():
            try:
                _write(stream, escape_entry(key, value, ascii_mode) + _EOL)
            except OSError as e:
                raise PropertiesIOError.wrap(e, count, "write") from e
            count += 1
        logger.debug("Stored %d properties", count)
        return count

    @staticmethod
    def save(stream: IO[Any], table: PropertyTable, comments: str | None = None,
             ascii_mode: bool = False) -> int:
        """Write the comment block (if any) and a line separator, then store()."""
        if comments is not None:
            try:
                _write(stream, escape_comment_block(comments, ascii_mode) + _EOL)
            except OSError as e:
                raise PropertiesIOError.wrap(e, 0, "write") from e
        return PropertiesWriter.store(stream, table, ascii_mode)

    @staticmethod
    def serialize(table: PropertyTable, comments: str | None = None,
                  ascii_mode: bool = False) -> bytes:
        """Serialize a table to bytes. Pure — does not mutate the input."""
        out = io.BytesIO()
        PropertiesWriter.save(out, table, comments, ascii_mode)
        return out.getvalue()

    @staticmethod
    def dumps(table: PropertyTable, comments: str | None = None,
              ascii_mode: bool = False) -> str:
        return PropertiesWriter.serialize(table, comments, ascii_mode).decode(DEFAULT_ENCODING)

    @staticmethod
    def write(table: PropertyTable, path: str | Path, comments: str | None = None,
              ascii_mode: bool = False, mode: int = 0o644) -> int:
        """Write a table to file atomically. Returns bytes written.

        The data goes to a temp file in the target directory, which is
        fsynced, given ``mode`` and renamed over ``path``.
        """
        path = Path(path)
        data = PropertiesWriter.serialize(table, comments, ascii_mode)
        fd, tmp_name = tempfile.mkstemp(dir=path.absolute().parent, prefix=f".{path.name}.",
                                        suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            os.fchmod(fd, mode)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            tmp_path.replace(path)
        except BaseException:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return len(data)
