"""Bounds-checked little-endian reads over an immutable byte buffer.

Every reader takes the buffer and a cursor and returns ``(value, cursor)``
with the cursor advanced past what was read, so a layout walk is a chain
of plain function calls with the offset threaded through explicitly.
Any read that would leave the buffer raises ``BufferOverrun``.
"""
import struct
from typing import Optional, Tuple

from smb_types import BufferOverrun

U16 = struct.Struct("<H")
U32 = struct.Struct("<I")


def check_range(data: bytes, offset: int, size: int, what: str = "data"):
    """Raise BufferOverrun unless ``data[offset:offset + size]`` is in bounds."""
    if offset < 0 or size < 0 or offset + size > len(data):
        raise BufferOverrun(offset, size, len(data), what)


def read_u16(data: bytes, offset: int, what: str = "u16") -> Tuple[int, int]:
    check_range(data, offset, 2, what)
    return U16.unpack_from(data, offset)[0], offset + 2


def read_u32(data: bytes, offset: int, what: str = "u32") -> Tuple[int, int]:
    check_range(data, offset, 4, what)
    return U32.unpack_from(data, offset)[0], offset + 4


def find_terminator(data: bytes, offset: int, limit: Optional[int] = None, what: str = "string") -> int:
    """Return the index of the first NUL at or after ``offset``.

    With ``limit`` the search stops there and ``limit`` is returned when no
    NUL was found. Without it, a missing NUL is a BufferOverrun.
    """
    end = len(data) if limit is None else min(limit, len(data))
    check_range(data, offset, 0, what)
    pos = data.find(b"\x00", offset, end)
    if pos != -1:
        return pos
    if limit is None:
        raise BufferOverrun(offset, len(data) - offset + 1, len(data), what)
    return end


def decode_name(raw: bytes) -> str:
    return raw.decode("latin-1")


def padded_length(length: int, alignment: int = 4) -> int:
    """Round ``length`` up to a multiple of ``alignment``."""
    return (length + alignment - 1) // alignment * alignment


def align(offset: int, alignment: int = 16) -> int:
    """Round a cursor up to the next ``alignment`` boundary."""
    remainder = offset % alignment
    if remainder:
        offset += alignment - remainder
    return offset


def half_to_float(bits: int) -> float:
    """Convert a packed 16-bit half float to a Python float.

    Subnormals decode as ``sign * 2**-14 * (fraction / 1024)``, which also
    makes 0x8000 come out as -0.0.
    """
    sign = (bits & 0x8000) >> 15
    exponent = (bits & 0x7C00) >> 10
    fraction = bits & 0x03FF
    s = -1.0 if sign else 1.0

    if exponent == 0:
        return s * 2.0 ** -14 * (fraction / 1024.0)
    if exponent == 0x1F:
        if fraction:
            return float("nan")
        return float("-inf") if sign else float("inf")
    return s * 2.0 ** (exponent - 15) * (1.0 + fraction / 1024.0)


def read_half(data: bytes, offset: int, what: str = "half") -> Tuple[float, int]:
    bits, offset = read_u16(data, offset, what)
    return half_to_float(bits), offset
