"""
Errors raised by proptable.

Malformed escapes are never errors: they decode to U+FFFD or drop the
backslash. The only runtime failures are stream I/O errors, reported with the
number of pairs processed before the failure.
"""

from __future__ import annotations


class PropertiesError(Exception):
    """Error in properties operations."""


class PropertiesIOError(PropertiesError, OSError):
    """A read or write on the underlying stream failed.

    Attributes:
        count: Key-value pairs loaded or stored before the failure.

    The original ``OSError`` is available as ``__cause__``.
    """

    def __init__(self, message: str, count: int = 0, errno: int | None = None,
                 strerror: str | None = None) -> None:
        super().__init__(message)
        self.count = count
        self.errno = errno
        self.strerror = strerror

    def __str__(self) -> str:
        return f"{self.args[0]} (after {self.count} properties)"

    @classmethod
    def wrap(cls, error: OSError, count: int, action: str) -> PropertiesIOError:
        return cls(
            f"Failed to {action} properties: {error}",
            count=count,
            errno=error.errno,
            strerror=error.strerror,
        )
