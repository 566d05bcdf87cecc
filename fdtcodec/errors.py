"""
Error taxonomy for the FDT codec.

Every failure raised by ``load``/``store`` and the tree queries derives from
``DeviceTreeError``, so callers can catch the whole family at once.
"""

from enum import Enum


class DeviceTreeError(Exception):
    """Base class for all device tree codec failures."""
    pass


class InvalidMagicNumber(DeviceTreeError):
    """The buffer does not start with the FDT magic number."""

    def __init__(self, magic: int):
        super().__init__(f"Bad DTB magic: 0x{magic:08X} (expected 0xD00DFEED)")
        self.magic = magic


class SizeMismatch(DeviceTreeError):
    """The header's totalsize disagrees with the buffer length."""

    def __init__(self, declared: int, actual: int):
        super().__init__(
            f"Header totalsize {declared} does not match buffer length {actual}"
        )
        self.declared = declared
        self.actual = actual


class VersionNotSupported(DeviceTreeError):
    """The header carries a format version other than 17."""

    def __init__(self, version: int):
        super().__init__(f"DTB version {version} not supported")
        self.version = version


class ParseError(DeviceTreeError):
    """The structure block did not hold the expected tag at ``pos``."""

    def __init__(self, pos: int, message: str = "unexpected tag"):
        super().__init__(f"Parse error at offset 0x{pos:x}: {message}")
        self.pos = pos


class Utf8Error(DeviceTreeError):
    """A node or property name was not valid UTF-8."""
    pass


class SliceReadError(DeviceTreeError):
    """A read ran past the end of the input buffer."""

    def __init__(self, pos: int, length: int, size: int):
        super().__init__(
            f"Unexpected end of input: {length} bytes at offset {pos}, "
            f"buffer holds {size}"
        )
        self.pos = pos
        self.length = length
        self.size = size


class VecWriteError(DeviceTreeError):
    """An invalid write into the encoder's output buffer."""
    pass


class NonContiguousWrite(VecWriteError):
    """A back-patch targeted bytes that have not been written yet."""
    pass


class UnalignedWrite(VecWriteError):
    """Padding was requested from a length that is not word aligned."""
    pass


class ValueOutOfRange(VecWriteError):
    """An integer does not fit the field width it is written into."""
    pass


class PropErrorKind(Enum):
    NOT_FOUND = "not found"
    MISSING_0 = "missing NUL terminator"
    UTF8_ERROR = "invalid UTF-8"
    SLICE_READ_ERROR = "value too short"


class PropError(DeviceTreeError):
    """A property accessor could not produce the requested value."""

    def __init__(self, name: str, reason: PropErrorKind):
        super().__init__(f"Property '{name}': {reason.value}")
        self.name = name
        self.reason = reason


class ConfigError(DeviceTreeError):
    """Raised when encoder options fail validation."""
    pass
