"""
Properties Format Specification.

Layout:
    # comment                    <- Comment line ('#' or '!' first non-space char)
    key=value                    <- Key and value split on '=' or ':'
    key : value                  <- Whitespace around the delimiter is skipped
    key value                    <- Whitespace alone may separate key and value
    key = first part, \\          <- Odd trailing backslash run: continuation
          second part            <- Leading whitespace of the next line dropped

Line terminators:
    - '\\n', '\\r' or '\\r\\n'; end of stream also ends a line
    - Comment lines never continue

Escapes:
    - '\\t', '\\n', '\\f', '\\r' -> control characters
    - '\\uXXXX' -> UTF-16 code unit; a high surrogate must be followed by a
      '\\uXXXX' low surrogate, the pair combines into one code point
    - Malformed '\\uXXXX' -> U+FFFD, a 6 byte span is consumed
    - '\\' before any other character -> the character itself
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# Character classes
SPACES = frozenset(" \t\f")
DELIMITERS = frozenset("=:")
COMMENT_PREFIXES = frozenset("#!")

# Byte-level views of the same classes (used by the raw line reader)
SPACE_BYTES = frozenset(b" \t\f")
COMMENT_PREFIX_BYTES = frozenset(b"#!")
BACKSLASH = 0x5C
CR = 0x0D
LF = 0x0A

KEY_VALUE_SEPARATOR = "="

# Single-letter escapes
SHORTHAND_ESCAPES = {"t": "\t", "n": "\n", "f": "\f", "r": "\r"}

# Rune limits
REPLACEMENT_CHAR = 0xFFFD
MAX_RUNE = 0x10FFFF
PRINTABLE_ASCII_MIN = 0x20
PRINTABLE_ASCII_MAX = 0x7E
UNICODE_ESCAPE_SIZE = 6       # len("\\uXXXX")
SURROGATE_MIN = 0xD800
LOW_SURROGATE_MIN = 0xDC00
SURROGATE_MAX = 0xDFFF

_HEX_DIGITS = b"0123456789abcdef"


def is_space(ch: str) -> bool:
    return ch in SPACES


def is_delimiter(ch: str) -> bool:
    return ch in DELIMITERS


def is_comment_prefix(ch: str) -> bool:
    return ch in COMMENT_PREFIXES


def _utf8_length(lead: int) -> int:
    """Expected sequence length for a UTF-8 lead byte (1 if invalid)."""
    if lead < 0x80:
        return 1
    if 0xC2 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF4:
        return 4
    return 1


def decode_rune(data: bytes, pos: int = 0) -> tuple[int, int]:
    """Decode the UTF-8 rune at ``data[pos]``.

    Returns (code_point, size). Invalid or truncated sequences decode to
    U+FFFD with size 1, so callers always make progress. Returns
    (U+FFFD, 0) at the end of ``data``.
    """
    if pos >= len(data):
        return REPLACEMENT_CHAR, 0
    size = _utf8_length(data[pos])
    if size == 1:
        lead = data[pos]
        return (lead, 1) if lead < 0x80 else (REPLACEMENT_CHAR, 1)
    try:
        ch = data[pos:pos + size].decode("utf-8")
    except UnicodeDecodeError:
        return REPLACEMENT_CHAR, 1
    if len(ch) != 1:
        return REPLACEMENT_CHAR, 1
    return ord(ch), size


def encode_rune(code_point: int) -> bytes:
    """UTF-8 encode a code point. Surrogates and invalid values become U+FFFD."""
    if code_point < 0 or code_point > MAX_RUNE or SURROGATE_MIN <= code_point <= SURROGATE_MAX:
        code_point = REPLACEMENT_CHAR
    return chr(code_point).encode("utf-8")


def _escape_unit(unit: int) -> bytes:
    """Write one 16-bit code unit as '\\uxxxx'."""
    out = bytearray(b"\\u0000")
    for i in range(5, 1, -1):
        out[i] = _HEX_DIGITS[unit & 0x0F]
        unit >>= 4
    return bytes(out)


def _surrogates(code_point: int) -> tuple[int, int]:
    """Split a code point above the BMP into its UTF-16 high/low halves."""
    offset = code_point - 0x10000
    return SURROGATE_MIN + (offset >> 10), LOW_SURROGATE_MIN + (offset & 0x3FF)


def encode_escape(code_point: int) -> bytes:
    """Return the '\\uxxxx' escape of a code point.

    Printable ASCII needs no escaping and yields ``b""``. Code points above
    0xFFFF are written as two escapes holding the UTF-16 surrogates.
    Negative or out-of-range values are written as the escape of U+FFFD.
    """
    if PRINTABLE_ASCII_MIN <= code_point <= PRINTABLE_ASCII_MAX:
        return b""
    if code_point < 0 or code_point > MAX_RUNE:
        code_point = REPLACEMENT_CHAR
    if code_point > 0xFFFF:
        high, low = _surrogates(code_point)
        return _escape_unit(high) + _escape_unit(low)
    return _escape_unit(code_point)


def _parse_unicode_unit(data: bytes) -> int | None:
    """Parse the 4 hex digits of a '\\uxxxx' sequence, None if malformed."""
    digits = data[2:UNICODE_ESCAPE_SIZE]
    if len(digits) < 4:
        return None
    unit = 0
    for b in digits:
        if 0x30 <= b <= 0x39:
            b -= 0x30
        elif 0x61 <= b <= 0x66:
            b -= 0x61 - 10
        elif 0x41 <= b <= 0x46:
            b -= 0x41 - 10
        else:
            return None
        unit = (unit << 4) | b
    return unit


def decode_escape(data: bytes) -> tuple[int, int]:
    """Decode the escape sequence at the start of ``data``.

    Returns (code_point, bytes_consumed). If ``data`` doesn't start with a
    backslash, returns (U+FFFD, 0) so the caller can fall back to plain
    UTF-8 decoding.
    """
    if not data or data[0] != BACKSLASH:
        return REPLACEMENT_CHAR, 0
    if len(data) == 1:
        # Dangling backslash at the very end of the input
        return REPLACEMENT_CHAR, 1

    code_point, size = decode_rune(data, 1)
    ch = chr(code_point)
    if ch in SHORTHAND_ESCAPES:
        return ord(SHORTHAND_ESCAPES[ch]), 2
    if ch != "u":
        return code_point, size + 1

    unit = _parse_unicode_unit(data)
    if unit is None:
        logger.debug("Malformed unicode escape %r", data[:UNICODE_ESCAPE_SIZE])
        return REPLACEMENT_CHAR, UNICODE_ESCAPE_SIZE
    if not SURROGATE_MIN <= unit <= SURROGATE_MAX:
        return unit, UNICODE_ESCAPE_SIZE

    if unit < LOW_SURROGATE_MIN:
        rest = data[UNICODE_ESCAPE_SIZE:]
        low = None
        if rest[:2] == b"\\u":
            low = _parse_unicode_unit(rest)
        if low is not None and LOW_SURROGATE_MIN <= low <= SURROGATE_MAX:
            code_point = 0x10000 + ((unit - SURROGATE_MIN) << 10) + (low - LOW_SURROGATE_MIN)
            return code_point, 2 * UNICODE_ESCAPE_SIZE

    logger.debug("Unpaired surrogate in unicode escape %r", data[:UNICODE_ESCAPE_SIZE])
    return REPLACEMENT_CHAR, UNICODE_ESCAPE_SIZE
