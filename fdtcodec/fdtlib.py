"""FDT (Flattened Device Tree) load/store.

Decodes DTB binaries into a tree of nodes and properties and encodes such a
tree back into a DTB, in the layout 'dtc -I dts -O dtb' produces.

DTB format (big-endian):
  - 40-byte header
  - Memory reservation block ((address, size) u64 pairs, ended by size 0)
  - Structure block (FDT tokens + property data)
  - Strings block (null-terminated property names)
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .errors import (
    InvalidMagicNumber,
    ParseError,
    PropError,
    PropErrorKind,
    SizeMismatch,
    SliceReadError,
    Utf8Error,
    VecWriteError,
    VersionNotSupported,
)
from .options import StoreOptions
from .string_table import make_string_table
from .util import VecWriter, align, read_be_u32, read_be_u64, read_bstring0, subslice

logger = logging.getLogger(__name__)


# FDT tokens
FDT_BEGIN_NODE = 1
FDT_END_NODE = 2
FDT_PROP = 3
FDT_NOP = 4
FDT_END = 9

# FDT magic number
FDT_MAGIC = 0xD00DFEED

# FDT version
FDT_VERSION = 17

HEADER_SIZE = 40

# Byte offsets of the header fields.
OFF_MAGIC = 0
OFF_TOTALSIZE = 4
OFF_DT_STRUCT = 8
OFF_DT_STRINGS = 12
OFF_MEM_RSVMAP = 16
OFF_VERSION = 20
OFF_LAST_COMP_VERSION = 24
OFF_BOOT_CPUID_PHYS = 28
OFF_SIZE_DT_STRINGS = 32
OFF_SIZE_DT_STRUCT = 36

Property = Tuple[str, bytes]


# ---- property value constructors ----

def prop_string(name: str, text: str) -> Property:
    """Create a string property (null-terminated)."""
    return (name, text.encode("utf-8") + b"\x00")


def prop_u32(name: str, value: int) -> Property:
    """Create a single uint32 property (big-endian)."""
    return (name, struct.pack(">I", value))


def prop_u32_pair(name: str, val1: int, val2: int) -> Property:
    """Create a two-element uint32 property (big-endian)."""
    return (name, struct.pack(">II", val1, val2))


def prop_u64(name: str, value: int) -> Property:
    return (name, struct.pack(">Q", value))


def prop_bool(name: str) -> Property:
    """Create a boolean (empty) property."""
    return (name, b"")


def _decode_name(raw: bytes, pos: int) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise Utf8Error(f"Invalid UTF-8 name at offset 0x{pos:x}") from e


@dataclass
class Header:
    """The fixed 40-byte DTB header."""
    magic: int
    totalsize: int
    off_dt_struct: int
    off_dt_strings: int
    off_mem_rsvmap: int
    version: int
    last_comp_version: int
    boot_cpuid_phys: int
    size_dt_strings: int
    size_dt_struct: int

    @classmethod
    def parse(cls, buffer: bytes) -> "Header":
        """Decode the header field by field; short buffers raise SliceReadError."""
        return cls(*(read_be_u32(buffer, off) for off in range(0, HEADER_SIZE, 4)))


@dataclass
class Node:
    """A device tree node with properties and children."""
    name: str
    props: List[Property] = field(default_factory=list)
    children: List["Node"] = field(default_factory=list)

    def add_property(self, prop: Property) -> "Node":
        self.props.append(prop)
        return self

    def add_child(self, child: "Node") -> "Node":
        self.children.append(child)
        return self

    # ---- queries ----

    def find(self, path: str) -> Optional["Node"]:
        """Find a descendant by a '/'-separated path relative to this node."""
        if path == "":
            return self
        head, _, rest = path.partition("/")
        for child in self.children:
            if child.name == head:
                return child.find(rest)
        return None

    def prop_raw(self, name: str) -> Optional[bytes]:
        for key, value in self.props:
            if key == name:
                return value
        return None

    def has_prop(self, name: str) -> bool:
        return self.prop_raw(name) is not None

    def _require(self, name: str) -> bytes:
        raw = self.prop_raw(name)
        if raw is None:
            raise PropError(name, PropErrorKind.NOT_FOUND)
        return raw

    def prop_str(self, name: str) -> str:
        """Return a null-terminated string property without its terminator."""
        raw = self._require(name)
        if not raw or raw[-1] != 0:
            raise PropError(name, PropErrorKind.MISSING_0)
        try:
            return raw[:-1].decode("utf-8")
        except UnicodeDecodeError as e:
            raise PropError(name, PropErrorKind.UTF8_ERROR) from e

    def prop_u32(self, name: str) -> int:
        try:
            return read_be_u32(self._require(name), 0)
        except SliceReadError as e:
            raise PropError(name, PropErrorKind.SLICE_READ_ERROR) from e

    def prop_u64(self, name: str) -> int:
        try:
            return read_be_u64(self._require(name), 0)
        except SliceReadError as e:
            raise PropError(name, PropErrorKind.SLICE_READ_ERROR) from e

    def walk(self, path: str = "/") -> Iterator[Tuple[str, "Node"]]:
        """Yield (path, node) for this node and every descendant, depth first."""
        yield path, self
        for child in self.children:
            child_path = f"{path.rstrip('/')}/{child.name}"
            yield from child.walk(child_path)

    # ---- codec ----

    @classmethod
    def load(cls, buffer: bytes, start: int, off_dt_strings: int) -> Tuple[int, "Node"]:
        """Decode the node at ``start``; return the offset past its END_NODE."""
        if read_be_u32(buffer, start) != FDT_BEGIN_NODE:
            raise ParseError(start, "expected BEGIN_NODE")

        raw_name = read_bstring0(buffer, start + 4)
        node = cls(_decode_name(raw_name, start + 4))

        pos = _skip_nops(buffer, align(start + 4 + len(raw_name) + 1, 4))

        while read_be_u32(buffer, pos) == FDT_PROP:
            val_size = read_be_u32(buffer, pos + 4)
            name_offset = read_be_u32(buffer, pos + 8)

            val_start = pos + 12
            val_end = val_start + val_size
            value = subslice(buffer, val_start, val_end)

            name_pos = off_dt_strings + name_offset
            prop_name = _decode_name(read_bstring0(buffer, name_pos), name_pos)
            node.props.append((prop_name, value))

            pos = _skip_nops(buffer, align(val_end, 4))

        while read_be_u32(buffer, pos) == FDT_BEGIN_NODE:
            pos, child = cls.load(buffer, pos, off_dt_strings)
            node.children.append(child)
            pos = _skip_nops(buffer, pos)

        if read_be_u32(buffer, pos) != FDT_END_NODE:
            raise ParseError(pos, "expected END_NODE")

        return pos + 4, node

    def store(self, out: VecWriter, strings) -> None:
        out.write_be_u32(FDT_BEGIN_NODE)
        out.write(self.name.encode("utf-8") + b"\x00")
        out.pad(4)

        for name, value in self.props:
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise TypeError(
                    f"Property '{name}' of node '{self.name}' must be bytes, "
                    f"got {type(value).__name__}"
                )
            value = bytes(value)
            out.write_be_u32(FDT_PROP)
            out.write_be_u32(len(value))
            out.write_be_u32(strings.add_string(name))
            out.write(value)
            out.pad(4)

        for child in self.children:
            child.store(out, strings)

        out.write_be_u32(FDT_END_NODE)


def _skip_nops(buffer: bytes, pos: int) -> int:
    while read_be_u32(buffer, pos) == FDT_NOP:
        pos += 4
    return pos


@dataclass
class DeviceTree:
    """A decoded device tree."""
    version: int = FDT_VERSION
    boot_cpuid_phys: int = 0
    reserved: List[Tuple[int, int]] = field(default_factory=list)
    root: Node = field(default_factory=lambda: Node(""))

    @classmethod
    def load(cls, buffer: bytes) -> "DeviceTree":
        """Load a device tree from a memory buffer."""
        buffer = bytes(buffer)

        magic = read_be_u32(buffer, OFF_MAGIC)
        if magic != FDT_MAGIC:
            raise InvalidMagicNumber(magic)
        totalsize = read_be_u32(buffer, OFF_TOTALSIZE)
        if totalsize != len(buffer):
            raise SizeMismatch(totalsize, len(buffer))

        header = Header.parse(buffer)
        if header.version != FDT_VERSION:
            raise VersionNotSupported(header.version)

        logger.debug(
            "DTB header: totalsize=%d struct@0x%x strings@0x%x rsvmap@0x%x",
            header.totalsize, header.off_dt_struct, header.off_dt_strings,
            header.off_mem_rsvmap,
        )

        reserved = []
        pos = header.off_mem_rsvmap
        while True:
            address = read_be_u64(buffer, pos)
            size = read_be_u64(buffer, pos + 8)
            pos += 16
            if size == 0:
                break
            reserved.append((address, size))

        try:
            pos, root = Node.load(buffer, header.off_dt_struct, header.off_dt_strings)
        except RecursionError as e:
            raise ParseError(header.off_dt_struct, "nesting too deep") from e

        pos = _skip_nops(buffer, pos)
        if read_be_u32(buffer, pos) != FDT_END:
            raise ParseError(pos, "expected END")

        return cls(
            version=header.version,
            boot_cpuid_phys=header.boot_cpuid_phys,
            reserved=reserved,
            root=root,
        )

    def store(self, options: Optional[StoreOptions] = None) -> bytes:
        """Encode the tree into a DTB binary."""
        if options is None:
            options = StoreOptions()
        if self.version != FDT_VERSION:
            raise VersionNotSupported(self.version)

        out = VecWriter()
        strings = make_string_table(options.dedup)

        out.write(b"\x00" * HEADER_SIZE)
        out.write_be_u32_at(OFF_MAGIC, FDT_MAGIC)
        out.write_be_u32_at(OFF_VERSION, FDT_VERSION)
        out.write_be_u32_at(OFF_LAST_COMP_VERSION, options.last_comp_version)
        out.write_be_u32_at(OFF_BOOT_CPUID_PHYS, self.boot_cpuid_phys)

        # Memory reservation block
        out.pad(8)
        out.write_be_u32_at(OFF_MEM_RSVMAP, len(out))
        for address, size in self.reserved:
            if size == 0:
                raise ValueError(
                    f"Reserved region at 0x{address:x} has size 0, which "
                    f"would terminate the reservation block"
                )
            out.write_be_u64(address)
            out.write_be_u64(size)
        out.write_be_u64(0)
        out.write_be_u64(0)

        # Structure block
        out.pad(4)
        struct_start = len(out)
        out.write_be_u32_at(OFF_DT_STRUCT, struct_start)
        try:
            self.root.store(out, strings)
        except RecursionError as e:
            raise VecWriteError("Node nesting too deep to encode") from e
        out.pad(4)
        out.write_be_u32(FDT_END)
        out.write_be_u32_at(OFF_SIZE_DT_STRUCT, len(out) - struct_start)

        # Strings block
        out.write_be_u32_at(OFF_SIZE_DT_STRINGS, len(strings))
        out.pad(4)
        out.write_be_u32_at(OFF_DT_STRINGS, len(out))
        out.write(strings.buffer)

        out.write_be_u32_at(OFF_TOTALSIZE, len(out))

        logger.debug(
            "Stored DTB: %d bytes, %d reserved regions, strings block %d bytes (dedup=%s)",
            len(out), len(self.reserved), len(strings), options.dedup,
        )
        return out.getvalue()

    def find(self, path: str) -> Optional[Node]:
        """Find a node by absolute path, e.g. '/cpus/cpu@0'."""
        if not path.startswith("/"):
            return None
        return self.root.find(path[1:].rstrip("/"))


def load(buffer: bytes) -> DeviceTree:
    return DeviceTree.load(buffer)


def store(tree: DeviceTree, options: Optional[StoreOptions] = None) -> bytes:
    return tree.store(options)
