from __future__ import annotations

import struct
from typing import Dict, Optional, Sequence

import pytest

E_LFANEW = 0x80
SECTION_VA = 0x2000
SECTION_RAW_PTR = 0x200
SECTION_SIZE = 0x400

NAMES_ARRAY_REL = 0x40
STRINGS_REL = 0x100


def build_pe_image(
    names: Sequence[bytes] = (b"Alpha", b"beta", b"Gamma"),
    *,
    pe32_plus: bool = False,
    export_rva: int = SECTION_VA,
    export_size: int = 0x100,
    number_of_names: Optional[int] = None,
    address_of_names: Optional[int] = None,
    names_array_rel: int = NAMES_ARRAY_REL,
    name_rvas: Optional[Sequence[int]] = None,
    raw_patches: Optional[Dict[int, bytes]] = None,
    section_size: int = SECTION_SIZE,
) -> bytes:
    """
    One-section image: .rdata at RVA 0x2000, file offset 0x200, section_size bytes.
    Export directory at the start of .rdata, name pointers at names_array_rel,
    name strings from 0x100. raw_patches writes bytes at .rdata-relative offsets.
    """
    dos = bytearray(b"MZ" + b"\x00" * 58)
    dos += struct.pack("<I", E_LFANEW)
    dos += b"\x00" * (E_LFANEW - len(dos))

    nt = b"PE\x00\x00"

    size_opt = 0xF0 if pe32_plus else 0xE0
    machine = 0x8664 if pe32_plus else 0x14C
    coff = struct.pack("<HHIIIHH", machine, 1, 0x5F3759DF, 0, 0, size_opt, 0x2002)

    opt = bytearray(size_opt)
    if pe32_plus:
        struct.pack_into("<H", opt, 0x00, 0x20B)
        struct.pack_into("<I", opt, 0x6C, 16)   # NumberOfRvaAndSizes
        struct.pack_into("<I", opt, 112, export_rva)
        struct.pack_into("<I", opt, 116, export_size)
    else:
        struct.pack_into("<H", opt, 0x00, 0x10B)
        struct.pack_into("<I", opt, 0x5C, 16)
        struct.pack_into("<I", opt, 96, export_rva)
        struct.pack_into("<I", opt, 100, export_size)

    sh = bytearray(40)
    sh[0:8] = b".rdata\x00\x00"
    struct.pack_into("<I", sh, 8, section_size)       # VirtualSize
    struct.pack_into("<I", sh, 12, SECTION_VA)        # VirtualAddress
    struct.pack_into("<I", sh, 16, section_size)      # SizeOfRawData
    struct.pack_into("<I", sh, 20, SECTION_RAW_PTR)   # PointerToRawData
    struct.pack_into("<I", sh, 36, 0x40000040)

    blob = bytearray(bytes(dos) + nt + coff + bytes(opt) + bytes(sh))
    blob += b"\x00" * (SECTION_RAW_PTR - len(blob))

    rdata = bytearray(section_size)
    struct.pack_into("<I", rdata, 20, len(names))   # NumberOfFunctions
    struct.pack_into("<I", rdata, 24, len(names) if number_of_names is None else number_of_names)
    struct.pack_into(
        "<I",
        rdata,
        32,
        SECTION_VA + names_array_rel if address_of_names is None else address_of_names,
    )

    str_rel = STRINGS_REL
    rvas = []
    for n in names:
        rdata[str_rel : str_rel + len(n) + 1] = n + b"\x00"
        rvas.append(SECTION_VA + str_rel)
        str_rel += len(n) + 1

    for i, rva in enumerate(name_rvas if name_rvas is not None else rvas):
        off = names_array_rel + i * 4
        if off + 4 <= section_size:
            struct.pack_into("<I", rdata, off, rva)

    for rel, patch in (raw_patches or {}).items():
        rdata[rel : rel + len(patch)] = patch

    blob += rdata
    return bytes(blob)


@pytest.fixture
def pe_image():
    return build_pe_image
