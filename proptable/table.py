"""
Property table — a key-value map with an optional chained "defaults" table.

Lookups fall back to the defaults table (and its own defaults, and so on)
when a key is missing from the primary table. Writes, deletes, iteration and
serialization only touch the primary table.

The defaults chain is not checked for cycles: a table that is (directly or
indirectly) its own default raises RecursionError on a lookup miss.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import IO, Any, ItemsView, Iterator, KeysView

from proptable import DEFAULT_ENCODING, MAX_FILE_SIZE
from proptable._format.reader import PropertiesReader
from proptable._format.writer import PropertiesWriter


class PropertyTable:
    """Key-value table backed by a dict, with a defaults fallback.

    Usage:
        defaults = PropertyTable.from_string("color=blue\\nsize=10")
        table = PropertyTable(defaults)
        table.load_string("size=12")
        table.get("color")      # "blue" (from defaults)
        table.save_string("Generated")
    """

    def __init__(self, defaults: PropertyTable | None = None) -> None:
        self._data: dict[str, str] = {}
        self.defaults = defaults

    @classmethod
    def from_string(cls, text: str | bytes, defaults: PropertyTable | None = None) -> PropertyTable:
        return PropertiesReader.parse(text, cls(defaults))

    @classmethod
    def from_file(cls, path: str | Path, defaults: PropertyTable | None = None,
                  max_size: int = MAX_FILE_SIZE) -> PropertyTable:
        return PropertiesReader.read(path, cls(defaults), max_size=max_size)

    # --- Lookup ---

    def lookup(self, key: str) -> tuple[str, bool]:
        """Return (value, found), searching the defaults chain on a miss."""
        if key in self._data:
            return self._data[key], True
        if self.defaults is not None:
            return self.defaults.lookup(key)
        return "", False

    def get(self, key: str, default: str = "") -> str:
        value, found = self.lookup(key)
        return value if found else default

    # --- Mutation (primary table only) ---

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        """Remove key from the primary table. Missing keys are ignored."""
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def clear_all(self) -> None:
        """Clear this table and every table in its defaults chain."""
        self.clear()
        if self.defaults is not None:
            self.defaults.clear_all()

    # --- Mapping protocol ---

    def __getitem__(self, key: str) -> str:
        value, found = self.lookup(key)
        if not found:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: str) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self.lookup(key)[1]

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def keys(self) -> KeysView[str]:
        return self._data.keys()

    def items(self) -> ItemsView[str, str]:
        return self._data.items()

    # --- Serialization ---

    def load(self, stream: IO[Any]) -> int:
        return PropertiesReader.load(stream, self)

    def load_string(self, text: str | bytes) -> int:
        if isinstance(text, str):
            text = text.encode(DEFAULT_ENCODING)
        return self.load(io.BytesIO(text))

    def store(self, stream: IO[Any], ascii_mode: bool = False) -> int:
        return PropertiesWriter.store(stream, self, ascii_mode)

    def save(self, stream: IO[Any], comments: str | None = None, ascii_mode: bool = False) -> int:
        return PropertiesWriter.save(stream, self, comments, ascii_mode)

    def save_string(self, comments: str | None = None, ascii_mode: bool = False) -> str:
        return PropertiesWriter.dumps(self, comments, ascii_mode)

    def to_file(self, path: str | Path, comments: str | None = None,
                ascii_mode: bool = False) -> int:
        return PropertiesWriter.write(self, path, comments, ascii_mode)

    def __str__(self) -> str:
        return PropertiesWriter.dumps(self)

    def __repr__(self) -> str:
        return f"PropertyTable({self._data!r}, defaults={self.defaults!r})"
