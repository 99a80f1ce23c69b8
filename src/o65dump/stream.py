"""
Primitive field reader
======================

Little-endian reads from a forward-only binary stream. Any short read raises
O65EOFError, so callers never see partial values.
"""

import struct
from typing import BinaryIO

from .errors import O65EOFError


def read_bytes(stream: BinaryIO, n: int, what: str = "data") -> bytes:
    """
    Read exactly n bytes

    Args:
        stream: binary stream positioned at the data
        n: number of bytes to read
        what: description used in the error message

    Returns:
        the bytes read; b'' when n is 0
    """
    if n == 0:
        return b''
    data = stream.read(n)
    if len(data) != n:
        raise O65EOFError(n, len(data), what)
    return data


def read_u8(stream: BinaryIO, what: str = "byte") -> int:
    return read_bytes(stream, 1, what)[0]


def read_u16(stream: BinaryIO, what: str = "16-bit value") -> int:
    return struct.unpack('<H', read_bytes(stream, 2, what))[0]


def read_u32(stream: BinaryIO, what: str = "32-bit value") -> int:
    return struct.unpack('<I', read_bytes(stream, 4, what))[0]


def read_addr(stream: BinaryIO, is_32bit: bool, what: str = "address") -> int:
    """Read a 16-bit or 32-bit field depending on the image's address width"""
    if is_32bit:
        return read_u32(stream, what)
    return read_u16(stream, what)


def read_nul_string(stream: BinaryIO, what: str = "name") -> bytes:
    """
    Read a NUL-terminated string

    Returns:
        the raw bytes without the terminator
    """
    name = bytearray()
    while True:
        ch = stream.read(1)
        if not ch:
            raise O65EOFError(len(name) + 1, len(name), what)
        if ch == b'\x00':
            return bytes(name)
        name += ch
