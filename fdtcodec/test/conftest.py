"""Shared fixtures for fdtcodec tests."""

import pytest
import struct
import sys
import os

# Add the project root to sys.path so 'fdtcodec' is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from fdtcodec.fdtlib import DeviceTree, Node, prop_string, prop_u32, prop_u32_pair, prop_bool


def assemble_dtb(reserved, struct_words, strings, boot_cpuid_phys=0,
                 version=17, last_comp_version=16) -> bytes:
    """Lay out a DTB by hand: header, rsvmap at 40, struct, strings."""
    rsvmap = b"".join(struct.pack(">QQ", a, s) for a, s in reserved)
    rsvmap += struct.pack(">QQ", 0, 0)
    off_mem_rsvmap = 40
    off_dt_struct = off_mem_rsvmap + len(rsvmap)
    off_dt_strings = off_dt_struct + len(struct_words)
    totalsize = off_dt_strings + len(strings)
    header = struct.pack(
        ">IIIIIIIIII",
        0xD00DFEED,
        totalsize,
        off_dt_struct,
        off_dt_strings,
        off_mem_rsvmap,
        version,
        last_comp_version,
        boot_cpuid_phys,
        len(strings),
        len(struct_words),
    )
    return header + rsvmap + struct_words + strings


def example_struct_block() -> bytes:
    """Structure block of the board example: root + cpu@0."""
    return b"".join([
        struct.pack(">I", 1), b"\x00" * 4,                  # BEGIN_NODE ""
        struct.pack(">III", 3, 13, 0), b"vendor,board\x00\x00\x00\x00",
        struct.pack(">I", 1), b"cpu@0\x00\x00\x00",         # BEGIN_NODE "cpu@0"
        struct.pack(">III", 3, 4, 11), b"\x00\x00\x00\x00",
        struct.pack(">I", 2),                                # END_NODE cpu@0
        struct.pack(">I", 2),                                # END_NODE root
        struct.pack(">I", 9),                                # END
    ])


EXAMPLE_STRINGS = b"compatible\x00reg\x00"


def make_example_tree() -> DeviceTree:
    root = Node("")
    root.add_property(("compatible", b"vendor,board\x00"))
    cpu = Node("cpu@0")
    cpu.add_property(("reg", struct.pack(">I", 0)))
    root.add_child(cpu)
    return DeviceTree(version=17, boot_cpuid_phys=0, reserved=[], root=root)


def make_board_tree() -> DeviceTree:
    """A larger tree with repeated property names and reserved regions."""
    root = Node("")
    root.add_property(prop_string("compatible", "ms-os,stm32f407zgt6"))
    root.add_property(prop_string("model", "STM32F407ZGT6"))
    root.add_property(prop_u32("#address-cells", 1))
    root.add_property(prop_u32("#size-cells", 1))

    cpus = Node("cpus")
    for i in range(2):
        cpu = Node(f"cpu@{i}")
        cpu.add_property(prop_string("compatible", "arm,cortex-m4"))
        cpu.add_property(prop_u32("reg", i))
        cpu.add_property(prop_string("status", "okay"))
        cpus.add_child(cpu)
    root.add_child(cpus)

    memory = Node("memory")
    flash = Node("flash")
    flash.add_property(prop_u32_pair("reg", 0x08000000, 0x100000))
    memory.add_child(flash)
    sram = Node("sram")
    sram.add_property(prop_u32_pair("reg", 0x20000000, 0x20000))
    memory.add_child(sram)
    root.add_child(memory)

    features = Node("features")
    features.add_property(prop_bool("fpu"))
    root.add_child(features)

    return DeviceTree(
        version=17,
        boot_cpuid_phys=1,
        reserved=[(0x10000000, 0x10000), (0x2000000000, 0x1000)],
        root=root,
    )


@pytest.fixture
def example_tree():
    """Root with 'compatible' and a single cpu@0 child."""
    return make_example_tree()


@pytest.fixture
def example_dtb():
    """Hand-assembled DTB for the example tree."""
    return assemble_dtb([], example_struct_block(), EXAMPLE_STRINGS)


@pytest.fixture
def board_tree():
    return make_board_tree()


@pytest.fixture
def board_dtb():
    return make_board_tree().store()
