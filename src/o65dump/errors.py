"""
o65 decoding errors
===================

Decoding has three outcomes: success, a format error (the bytes are not a
valid o65 structure) and a truncation error (the stream ended in the middle
of a structure). Operating system failures propagate as ``OSError``.
"""


class O65Error(Exception):
    """Base class for all o65 decoding errors"""


class O65FormatError(O65Error):
    """The stream is not in .o65 format or holds a malformed table"""


class O65ChainError(O65FormatError):
    """A chained image after the first one has an unreadable header"""

    def __init__(self, index: int, message: str):
        super().__init__(message)
        self.index = index


class O65EOFError(O65Error, EOFError):
    """The stream ended before a structure was complete"""

    def __init__(self, expected: int, got: int, what: str = "data"):
        super().__init__(f"unexpected EOF reading {what}: "
                         f"expected {expected} bytes, got {got}")
        self.expected = expected
        self.got = got
        self.what = what


class O65MarkerError(O65FormatError):
    """The stream does not start with the o65 marker, magic and version"""

    def __init__(self, message: str = "not in .o65 format"):
        super().__init__(message)
