"""
proptable — read and write ".properties" key-value files.

Architecture:
    Codec:   proptable/_format/spec.py    — character classes, '\\uxxxx' rune codec
    Reader:  proptable/_format/reader.py  — continuation-joining line reader, key/value splitter
    Writer:  proptable/_format/writer.py  — entry and comment escaping, atomic file writes
    Table:   proptable/table.py           — key-value table with a chained defaults table
"""

__version__ = "0.1.0"

# I/O defaults (overridable per call)
DEFAULT_ENCODING = "utf-8"
LINE_SEPARATOR = "\n"
READ_CHUNK_SIZE = 8192
MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB max file size for read()

from proptable.errors import PropertiesError, PropertiesIOError  # noqa: E402
from proptable._format.spec import decode_escape, encode_escape  # noqa: E402
from proptable._format.reader import LineReader, LogicalLine, PropertiesReader, split  # noqa: E402
from proptable._format.writer import (  # noqa: E402
    PropertiesWriter, escape_comment_block, escape_entry,
)
from proptable.table import PropertyTable  # noqa: E402

load = PropertiesReader.load
loads = PropertiesReader.parse
read = PropertiesReader.read
store = PropertiesWriter.store
save = PropertiesWriter.save
dumps = PropertiesWriter.dumps
write = PropertiesWriter.write

__all__ = [
    "DEFAULT_ENCODING", "LINE_SEPARATOR", "MAX_FILE_SIZE", "READ_CHUNK_SIZE",
    "LineReader", "LogicalLine", "PropertiesError", "PropertiesIOError",
    "PropertiesReader", "PropertiesWriter", "PropertyTable",
    "decode_escape", "dumps", "encode_escape", "escape_comment_block",
    "escape_entry", "load", "loads", "read", "save", "split", "store", "write",
]
