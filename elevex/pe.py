from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

IMAGE_DOS_SIGNATURE = b"MZ"
IMAGE_NT_SIGNATURE = b"PE\x00\x00"

PE32_MAGIC = 0x10B
PE32P_MAGIC = 0x20B

DOS_HEADER_SIZE = 64
E_LFANEW_OFFSET = 0x3C
COFF_HEADER_SIZE = 20
SECTION_HEADER_SIZE = 40
EXPORT_DIRECTORY_SIZE = 40

# Hard ceilings against corrupt counts and unterminated names.
MAX_EXPORT_NAMES = 500
MAX_EXPORT_NAME_LEN = 256


class ImageFormat(str, Enum):
    PE32 = "pe32"
    PE32_PLUS = "pe32+"

    @property
    def export_directory_offsets(self) -> tuple[int, int]:
        """(rva, size) offsets of the export data directory within the optional header."""
        return _EXPORT_DIR_OFFSETS[self]

    @classmethod
    def from_magic(cls, magic: int) -> Optional["ImageFormat"]:
        if magic == PE32_MAGIC:
            return cls.PE32
        if magic == PE32P_MAGIC:
            return cls.PE32_PLUS
        return None


_EXPORT_DIR_OFFSETS = {
    ImageFormat.PE32: (96, 100),
    ImageFormat.PE32_PLUS: (112, 116),
}


class ExportStatus(str, Enum):
    OK = "ok"
    NO_EXPORTS = "no_exports"
    FILE_NOT_FOUND = "file_not_found"
    INVALID_PE = "invalid_pe"
    NOT_PE = "not_pe"
    INVALID_PE_HEADER = "invalid_pe_header"
    INVALID_PE_SIGNATURE = "invalid_pe_signature"
    EXPORT_DIR_NOT_FOUND = "export_dir_not_found"
    NAMES_NOT_FOUND = "names_not_found"
    NO_NAMED_EXPORTS = "no_named_exports"
    DECODE_FAILED = "decode_failed"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    ExportStatus.OK: "[OK]",
    ExportStatus.NO_EXPORTS: "[No exports]",
    ExportStatus.FILE_NOT_FOUND: "[File not found]",
    ExportStatus.INVALID_PE: "[Invalid PE]",
    ExportStatus.NOT_PE: "[Not a PE file]",
    ExportStatus.INVALID_PE_HEADER: "[Invalid PE header]",
    ExportStatus.INVALID_PE_SIGNATURE: "[Invalid PE signature]",
    ExportStatus.EXPORT_DIR_NOT_FOUND: "[Export directory not found]",
    ExportStatus.NAMES_NOT_FOUND: "[Names array not found]",
    ExportStatus.NO_NAMED_EXPORTS: "[No named exports]",
    ExportStatus.DECODE_FAILED: "[Error parsing PE]",
}


@dataclass(frozen=True)
class ExportReadResult:
    status: ExportStatus
    names: List[str] = field(default_factory=list)
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ExportStatus.OK

    @property
    def succeeded(self) -> bool:
        """True for a decoded export list and for a legitimately empty export table."""
        return self.status in (ExportStatus.OK, ExportStatus.NO_EXPORTS)

    @property
    def failed(self) -> bool:
        return not self.succeeded

    def describe(self) -> str:
        if self.detail and self.status is ExportStatus.DECODE_FAILED:
            return f"{self.status.label[:-1]}: {self.detail}]"
        return self.status.label

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "label": self.describe(),
            "names": list(self.names),
            "detail": self.detail,
        }


class _Section(NamedTuple):
    virtual_address: int
    virtual_size: int
    raw_ptr: int


def _fail(status: ExportStatus, detail: Optional[str] = None) -> ExportReadResult:
    return ExportReadResult(status=status, names=[], detail=detail)


def _u16(data: bytes, off: int) -> Optional[int]:
    if off < 0 or off + 2 > len(data):
        return None
    return struct.unpack_from("<H", data, off)[0]


def _u32(data: bytes, off: int) -> Optional[int]:
    if off < 0 or off + 4 > len(data):
        return None
    return struct.unpack_from("<I", data, off)[0]


def _read_name(data: bytes, off: int, *, max_len: int = MAX_EXPORT_NAME_LEN) -> bytes:
    """
    Read a NUL-terminated name starting at off.
    Stops at NUL, end of buffer or max_len bytes, whichever comes first.
    """
    if off < 0 or off >= len(data):
        return b""
    chunk = data[off : min(len(data), off + max_len)]
    nul = chunk.find(b"\x00")
    if nul != -1:
        chunk = chunk[:nul]
    return chunk


def _read_sections(data: bytes, sect_off: int, count: int) -> List[_Section]:
    sections: List[_Section] = []
    for i in range(count):
        sh_off = sect_off + i * SECTION_HEADER_SIZE
        if sh_off + SECTION_HEADER_SIZE > len(data):
            break
        virtual_size = _u32(data, sh_off + 8)
        virtual_address = _u32(data, sh_off + 12)
        raw_ptr = _u32(data, sh_off + 20)
        if virtual_size is None or virtual_address is None or raw_ptr is None:
            break
        sections.append(_Section(virtual_address, virtual_size, raw_ptr))
    return sections


def _rva_to_offset(rva: int, sections: List[_Section]) -> Optional[int]:
    for s in sections:
        if s.virtual_address <= rva < s.virtual_address + s.virtual_size:
            return rva - s.virtual_address + s.raw_ptr
    return None


def _decode(data: bytes) -> ExportReadResult:
    if len(data) < DOS_HEADER_SIZE:
        return _fail(ExportStatus.INVALID_PE)

    if data[:2] != IMAGE_DOS_SIGNATURE:
        return _fail(ExportStatus.NOT_PE)

    e_lfanew = _u32(data, E_LFANEW_OFFSET)
    if e_lfanew is None or e_lfanew + 4 > len(data):
        return _fail(ExportStatus.INVALID_PE_HEADER, f"e_lfanew={e_lfanew}")

    if data[e_lfanew : e_lfanew + 4] != IMAGE_NT_SIGNATURE:
        return _fail(ExportStatus.INVALID_PE_SIGNATURE)

    coff_off = e_lfanew + 4
    number_of_sections = _u16(data, coff_off + 2)
    size_of_optional_header = _u16(data, coff_off + 16)
    if number_of_sections is None or size_of_optional_header is None:
        return _fail(ExportStatus.DECODE_FAILED, "COFF header truncated")

    opt_off = coff_off + COFF_HEADER_SIZE
    magic = _u16(data, opt_off)
    if magic is None:
        return _fail(ExportStatus.DECODE_FAILED, "optional header truncated")

    fmt = ImageFormat.from_magic(magic)
    if fmt is None:
        return _fail(ExportStatus.DECODE_FAILED, f"unknown optional header magic 0x{magic:x}")

    rva_rel, size_rel = fmt.export_directory_offsets
    export_rva = _u32(data, opt_off + rva_rel)
    export_size = _u32(data, opt_off + size_rel)
    if export_rva is None or export_size is None:
        return _fail(ExportStatus.DECODE_FAILED, "export data directory truncated")

    if export_rva == 0 or export_size == 0:
        return _fail(ExportStatus.NO_EXPORTS)

    sections = _read_sections(data, opt_off + size_of_optional_header, number_of_sections)

    export_off = _rva_to_offset(export_rva, sections)
    if export_off is None:
        return _fail(ExportStatus.EXPORT_DIR_NOT_FOUND, f"export_rva=0x{export_rva:x}")

    number_of_names = _u32(data, export_off + 24)
    address_of_names = _u32(data, export_off + 32)
    if number_of_names is None or address_of_names is None:
        return _fail(ExportStatus.DECODE_FAILED, "export directory truncated")

    names_off = _rva_to_offset(address_of_names, sections)
    if names_off is None:
        return _fail(ExportStatus.NAMES_NOT_FOUND, f"address_of_names=0x{address_of_names:x}")

    raw_names: List[bytes] = []
    for i in range(min(number_of_names, MAX_EXPORT_NAMES)):
        name_rva = _u32(data, names_off + i * 4)
        if name_rva is None:
            break
        name_off = _rva_to_offset(name_rva, sections)
        if name_off is None:
            continue
        name = _read_name(data, name_off)
        if name:
            raw_names.append(name)

    if not raw_names:
        return _fail(ExportStatus.NO_NAMED_EXPORTS)

    raw_names.sort()
    return ExportReadResult(
        status=ExportStatus.OK,
        names=[n.decode("ascii", errors="replace") for n in raw_names],
    )


def read_exports(data: bytes) -> ExportReadResult:
    """
    Decode the exported symbol names of a PE image held in memory.

    Never raises: every failure is reported as an ExportReadResult whose status
    says why no names could be produced. NO_EXPORTS is a success with no names.
    """
    try:
        return _decode(bytes(data))
    except Exception as e:
        return _fail(ExportStatus.DECODE_FAILED, f"{type(e).__name__}: {e}")


def read_exports_from_path(path: Path, *, max_bytes: int = 20_000_000) -> ExportReadResult:
    if not path.is_file():
        return _fail(ExportStatus.FILE_NOT_FOUND, str(path))
    try:
        with path.open("rb") as f:
            data = f.read(max_bytes)
    except OSError as e:
        return _fail(ExportStatus.DECODE_FAILED, f"{type(e).__name__}: {e}")
    return read_exports(data)
