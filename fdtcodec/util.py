"""
Bounds-checked big-endian buffer access.

Readers take an explicit ``(buffer, pos)`` pair and raise ``SliceReadError``
instead of returning short data; offsets found inside a DTB are untrusted.
``VecWriter`` is the growable output side used by the encoder.
"""

import struct

from .errors import NonContiguousWrite, SliceReadError, UnalignedWrite, ValueOutOfRange

# Width every block of the format is written in before padding.
WORD_SIZE = 4


def align(value: int, boundary: int = 4) -> int:
    """Round ``value`` up to the next multiple of ``boundary`` (a power of two)."""
    if boundary <= 0 or boundary & (boundary - 1):
        raise ValueError(f"Alignment must be a power of two, got {boundary}")
    return (value + boundary - 1) & ~(boundary - 1)


def _check(buf: bytes, pos: int, length: int) -> None:
    if pos < 0 or length < 0 or pos + length > len(buf):
        raise SliceReadError(pos, length, len(buf))


def read_be_u32(buf: bytes, pos: int) -> int:
    _check(buf, pos, 4)
    return struct.unpack_from(">I", buf, pos)[0]


def read_be_u64(buf: bytes, pos: int) -> int:
    _check(buf, pos, 8)
    return struct.unpack_from(">Q", buf, pos)[0]


def read_bstring0(buf: bytes, pos: int) -> bytes:
    """Return the bytes from ``pos`` up to (not including) the next NUL."""
    _check(buf, pos, 0)
    end = buf.find(b"\x00", pos)
    if end == -1:
        raise SliceReadError(pos, len(buf) - pos + 1, len(buf))
    return bytes(buf[pos:end])


def subslice(buf: bytes, start: int, end: int) -> bytes:
    """Return a copy of ``buf[start:end]``; both ends must lie inside ``buf``."""
    _check(buf, start, end - start)
    return bytes(buf[start:end])


def _pack(fmt: str, value: int) -> bytes:
    try:
        return struct.pack(fmt, value)
    except struct.error as e:
        raise ValueOutOfRange(f"Cannot encode {value!r} as '{fmt}': {e}") from e


class VecWriter:
    """Append-only output buffer with back-patching of 32-bit fields."""

    def __init__(self):
        self.buffer = bytearray()

    def __len__(self) -> int:
        return len(self.buffer)

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    def write_be_u32(self, value: int) -> None:
        self.buffer.extend(_pack(">I", value))

    def write_be_u64(self, value: int) -> None:
        self.buffer.extend(_pack(">Q", value))

    def pad(self, alignment: int) -> None:
        """Append zero bytes until the length is a multiple of ``alignment``.

        Padding to more than a word is only valid from a word boundary; the
        format never needs to jump from a ragged position straight to an
        8-byte boundary.
        """
        granularity = WORD_SIZE if alignment > WORD_SIZE else 1
        if len(self.buffer) % granularity:
            raise UnalignedWrite(
                f"Cannot pad length {len(self.buffer)} to {alignment}: "
                f"not a multiple of {granularity}"
            )
        self.buffer.extend(b"\x00" * (align(len(self.buffer), alignment) - len(self.buffer)))

    def write_be_u32_at(self, pos: int, value: int) -> None:
        """Overwrite the 4 bytes at ``pos``, which must already be written."""
        if pos < 0 or pos + 4 > len(self.buffer):
            raise NonContiguousWrite(
                f"Write of 4 bytes at {pos} outside written region of "
                f"{len(self.buffer)} bytes"
            )
        self.buffer[pos:pos + 4] = _pack(">I", value)

    def getvalue(self) -> bytes:
        return bytes(self.buffer)
