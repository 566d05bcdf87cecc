"""
String tables for the DTB strings block.

Property names are stored once in a trailing block of NUL-terminated strings
and referenced by byte offset from the structure block.
"""

from typing import Dict


class StringTable:
    """Appends every name, even repeated ones."""

    def __init__(self):
        self.buffer = bytearray()

    def __len__(self) -> int:
        return len(self.buffer)

    def add_string(self, name: str) -> int:
        """Append ``name`` and return the offset it starts at."""
        offset = len(self.buffer)
        self.buffer.extend(name.encode("utf-8") + b"\x00")
        return offset


class DedupStringTable(StringTable):
    """Interns names so each distinct name appears once."""

    def __init__(self):
        super().__init__()
        self.index: Dict[str, int] = {}

    def add_string(self, name: str) -> int:
        if name in self.index:
            return self.index[name]
        offset = super().add_string(name)
        self.index[name] = offset
        return offset


def make_string_table(dedup: bool = True) -> StringTable:
    return DedupStringTable() if dedup else StringTable()
