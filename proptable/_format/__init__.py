"""
Internal properties format engine.

Format: line-oriented key-value text, '#'/'!' comments, backslash escapes
and backslash line continuations (compatible with java.util.Properties files).
"""

from proptable._format.spec import decode_escape, encode_escape
from proptable._format.reader import LineReader, LogicalLine, PropertiesReader, split
from proptable._format.writer import PropertiesWriter, escape_comment_block, escape_entry
