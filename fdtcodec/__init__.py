"""
fdtcodec: Flattened Device Tree (DTB) decoder and encoder.

    tree = fdtcodec.load(open("board.dtb", "rb").read())
    cpu = tree.find("/cpus/cpu@0")
    blob = fdtcodec.store(tree, fdtcodec.StoreOptions(dedup=False))
"""

from .errors import (
    ConfigError,
    DeviceTreeError,
    InvalidMagicNumber,
    NonContiguousWrite,
    ParseError,
    PropError,
    PropErrorKind,
    SizeMismatch,
    SliceReadError,
    UnalignedWrite,
    ValueOutOfRange,
    Utf8Error,
    VecWriteError,
    VersionNotSupported,
)
from .fdtlib import (
    FDT_MAGIC,
    FDT_VERSION,
    DeviceTree,
    Header,
    Node,
    load,
    prop_bool,
    prop_string,
    prop_u32,
    prop_u32_pair,
    prop_u64,
    store,
)
from .options import StoreOptions, parse_options_yaml
