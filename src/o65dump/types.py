import ctypes
from enum import IntEnum

# =============================================================================
# o65 Constants and Enums
# =============================================================================

# Marker (01 00), magic "o65" and version 0 at the start of every image
O65_MARKER = b'\x01\x00o65\x00'


class ModeFlag(IntEnum):
    """Header mode word bits"""
    CPU_65816 = 0x8000      # CPU is a 65816 (otherwise 6502 family)
    PAGED = 0x4000          # Pagewise relocation
    SIZE_32BIT = 0x2000     # 32-bit addresses and sizes
    OBJ = 0x1000            # Object file (otherwise executable)
    SIMPLE = 0x0800         # Simple linking style
    CHAIN = 0x0400          # Another image follows
    BSSZERO = 0x0200        # bss segment must be zeroed
    CPU2 = 0x00F0           # CPU sub-type mask
    ALIGN = 0x0003          # Alignment mask


class Align(IntEnum):
    """Alignment classes in the low bits of the mode word"""
    ALIGN_8 = 0
    ALIGN_16 = 1
    ALIGN_32 = 2
    ALIGN_256 = 3


class CPUType(IntEnum):
    """CPU2 sub-type codes (mode bits 4-7)"""
    CPU_6502 = 0x0
    CPU_65C02 = 0x1
    CPU_65SC02 = 0x2
    CPU_65CE02 = 0x3
    CPU_NMOS6502 = 0x4
    CPU_65816_EMU = 0x5
    CPU_6809 = 0x8
    CPU_Z80 = 0xA
    CPU_8086 = 0xC
    CPU_80286 = 0xD


class SegmentID(IntEnum):
    """Segment identifiers used by relocations and exported symbols"""
    UNDEF = 0
    ABS = 1
    TEXT = 2
    DATA = 3
    BSS = 4
    ZERO = 5


class RelocType(IntEnum):
    """Relocation kinds (high bits of the type byte)"""
    WORD = 0x80
    HIGH = 0x40
    LOW = 0x20
    SEGADR = 0xC0
    SEG = 0xA0


# Type byte masks
RELOC_TYPE_MASK = 0xE0
RELOC_SEGID_MASK = 0x1F

# Relocation offset sentinels
RELOC_END = 0
RELOC_SKIP = 255
RELOC_SKIP_DISTANCE = 254


class OptionType(IntEnum):
    """Header option tags"""
    FILENAME = 0
    OS = 1
    PROGRAM = 2
    AUTHOR = 3
    CREATED = 4


# =============================================================================
# Name lookup tables
# =============================================================================

CPU_NAMES = {
    CPUType.CPU_6502: "6502",
    CPUType.CPU_65C02: "65C02",
    CPUType.CPU_65SC02: "65SC02",
    CPUType.CPU_65CE02: "65CE02",
    CPUType.CPU_NMOS6502: "NMOS 6502",
    CPUType.CPU_65816_EMU: "65816 (6502 emulation)",
    CPUType.CPU_6809: "6809",
    CPUType.CPU_Z80: "Z80",
    CPUType.CPU_8086: "8086",
    CPUType.CPU_80286: "80286",
}

SEGMENT_NAMES = {
    SegmentID.UNDEF: "undef",
    SegmentID.ABS: "abs",
    SegmentID.TEXT: ".text",
    SegmentID.DATA: ".data",
    SegmentID.BSS: ".bss",
    SegmentID.ZERO: ".zero",
}

ALIGN_NAMES = {
    Align.ALIGN_8: "byte alignment",
    Align.ALIGN_16: "word alignment",
    Align.ALIGN_32: "long alignment",
    Align.ALIGN_256: "page alignment",
}

RELOC_NAMES = {
    RelocType.WORD: "WORD",
    RelocType.HIGH: "HIGH",
    RelocType.LOW: "LOW",
    RelocType.SEGADR: "SEGADR",
    RelocType.SEG: "SEG",
}


def get_cpu_name(mode: int) -> str:
    """Name of the CPU described by a header mode word"""
    if mode & ModeFlag.CPU_65816:
        return "65816"
    cpu2 = (mode & ModeFlag.CPU2) >> 4
    return CPU_NAMES.get(cpu2, f"CPU-{cpu2:x}")


def get_segment_name(segment_id: int) -> str:
    """Display name of a segment identifier"""
    return SEGMENT_NAMES.get(segment_id, f"seg-{segment_id}")


# =============================================================================
# ctypes Type Definitions
# =============================================================================

class O65Prefix(ctypes.LittleEndianStructure):
    """Fixed start of every header: marker, magic, version and mode"""
    _pack_ = 1
    _fields_ = [
        ('marker', ctypes.c_uint8 * 6),   # 01 00 'o' '6' '5' 00
        ('mode', ctypes.c_uint16),        # Mode word
    ]


class O65Fields16(ctypes.LittleEndianStructure):
    """Header fields for 16-bit images"""
    _pack_ = 1
    _fields_ = [
        ('tbase', ctypes.c_uint16),   # Text segment base address
        ('tlen', ctypes.c_uint16),    # Text segment length
        ('dbase', ctypes.c_uint16),   # Data segment base address
        ('dlen', ctypes.c_uint16),    # Data segment length
        ('bbase', ctypes.c_uint16),   # bss segment base address
        ('blen', ctypes.c_uint16),    # bss segment length
        ('zbase', ctypes.c_uint16),   # Zero page segment base address
        ('zlen', ctypes.c_uint16),    # Zero page segment length
        ('stack', ctypes.c_uint16),   # Minimum stack size
    ]


class O65Fields32(ctypes.LittleEndianStructure):
    """Header fields for 32-bit images"""
    _pack_ = 1
    _fields_ = [
        ('tbase', ctypes.c_uint32),
        ('tlen', ctypes.c_uint32),
        ('dbase', ctypes.c_uint32),
        ('dlen', ctypes.c_uint32),
        ('bbase', ctypes.c_uint32),
        ('blen', ctypes.c_uint32),
        ('zbase', ctypes.c_uint32),
        ('zlen', ctypes.c_uint32),
        ('stack', ctypes.c_uint32),
    ]


HEADER_FIELD_NAMES = tuple(name for name, _ in O65Fields16._fields_)


def get_o65_fields_type(is_32bit: bool):
    """
    Select the header field structure for an address width

    Args:
        is_32bit: True for 32-bit images, False for 16-bit

    Returns:
        O65Fields32 or O65Fields16
    """
    return O65Fields32 if is_32bit else O65Fields16
