#!/usr/bin/env python3
"""
o65 Reader Module
=================

o65文件的顺序流解码器。文件只向前读取一次，不做任何回退或seek。

一个镜像(image)的解码顺序：
- 文件头 (标记、模式字、段基址/长度、栈大小)
- 选项表 (以长度为0的记录结束)
- .text 和 .data 段数据
- 未定义符号表
- .text 和 .data 重定位表
- 导出符号表

如果文件头设置了chain标志，紧接着的是下一个镜像。

特性：
- 模式字读出后一次性选定16/32位字段结构
- 重定位地址通过偏移累加重建 (起点为段基址-1，255表示跳过254字节)
- 格式错误 (O65FormatError) 与截断错误 (O65EOFError) 严格区分
"""

import ctypes
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from .errors import O65ChainError, O65EOFError, O65Error, O65FormatError, O65MarkerError
from .stream import read_addr, read_bytes, read_nul_string, read_u8, read_u16
from .types import *

# 配置日志
logger = logging.getLogger(__name__)

SEGMENT_CHUNK_SIZE = 16


# =============================================================================
# 解码结果类型
# =============================================================================

@dataclass(frozen=True)
class _HeaderFields:
    tbase: int
    tlen: int
    dbase: int
    dlen: int
    bbase: int
    blen: int
    zbase: int
    zlen: int
    stack: int

    @classmethod
    def from_struct(cls, raw):
        """从ctypes结构复制字段值"""
        return cls(**{name: getattr(raw, name) for name in HEADER_FIELD_NAMES})


class HeaderFields16(_HeaderFields):
    """Header fields of a 16-bit image"""


class HeaderFields32(_HeaderFields):
    """Header fields of a 32-bit image"""


@dataclass(frozen=True)
class O65Header:
    """
    o65文件头

    字段 (tbase, tlen, ... stack) 保存在 HeaderFields16 或 HeaderFields32 中，
    由模式字的32位标志一次性决定，可以直接作为属性访问。
    """
    mode: int
    fields: Union[HeaderFields16, HeaderFields32]

    def __getattr__(self, name):
        if name in HEADER_FIELD_NAMES:
            return getattr(self.fields, name)
        raise AttributeError(name)

    @property
    def is_32bit(self) -> bool:
        return bool(self.mode & ModeFlag.SIZE_32BIT)

    @property
    def is_paged(self) -> bool:
        return bool(self.mode & ModeFlag.PAGED)

    @property
    def is_chained(self) -> bool:
        return bool(self.mode & ModeFlag.CHAIN)

    @property
    def align(self) -> Align:
        return Align(self.mode & ModeFlag.ALIGN)


@dataclass(frozen=True)
class O65Option:
    """A header option record; length includes the two prefix bytes"""
    type: int
    length: int
    data: bytes


@dataclass(frozen=True)
class SegmentChunk:
    address: int
    data: bytes


@dataclass(frozen=True)
class O65Segment:
    name: str
    base: int
    length: int
    chunks: Tuple[SegmentChunk, ...]

    @property
    def data(self) -> bytes:
        return b''.join(chunk.data for chunk in self.chunks)


@dataclass(frozen=True)
class O65ExportedSymbol:
    name: bytes
    segment_id: int
    value: int


@dataclass(frozen=True)
class O65RelocEntry:
    """
    一条原始重定位记录

    offset为0 (表结束) 或255 (跳过) 时type为None，且后面没有其它字节。
    """
    offset: int
    type: Optional[int] = None
    undef_index: Optional[int] = None
    extra: Optional[int] = None

    @property
    def segment_id(self) -> int:
        return self.type & RELOC_SEGID_MASK

    @property
    def kind(self) -> int:
        return self.type & RELOC_TYPE_MASK


@dataclass(frozen=True)
class O65Relocation:
    """A relocation with its reconstructed absolute address"""
    address: int
    segment_id: int
    kind: int
    undef_index: Optional[int] = None
    extra: Optional[int] = None


@dataclass(frozen=True)
class O65Image:
    header: O65Header
    options: Tuple[O65Option, ...]
    text: O65Segment
    data: O65Segment
    undefined_symbols: Tuple[bytes, ...]
    text_relocs: Tuple[O65Relocation, ...]
    data_relocs: Tuple[O65Relocation, ...]
    exported_symbols: Tuple[O65ExportedSymbol, ...]


class ImageState(IntEnum):
    """Decoding stages of one image, in stream order"""
    HEADER = 0
    OPTIONS = 1
    TEXT_SEGMENT = 2
    DATA_SEGMENT = 3
    UNDEF_SYMBOLS = 4
    TEXT_RELOCS = 5
    DATA_RELOCS = 6
    EXPORT_SYMBOLS = 7
    DONE = 8


# =============================================================================
# 文件头
# =============================================================================

def read_header(stream: BinaryIO) -> O65Header:
    """
    读取并验证o65文件头

    Args:
        stream: 位于文件头起始位置的二进制流

    Returns:
        O65Header

    Raises:
        O65MarkerError: 标记/魔数/版本不匹配 (不是o65格式)
        O65EOFError: 标记匹配后文件被截断
    """
    prefix_size = ctypes.sizeof(O65Prefix)
    prefix_data = stream.read(prefix_size)

    # 标记不完整也视为"不是o65格式"
    if len(prefix_data) < len(O65_MARKER) or prefix_data[:len(O65_MARKER)] != O65_MARKER:
        raise O65MarkerError()
    if len(prefix_data) != prefix_size:
        raise O65EOFError(prefix_size, len(prefix_data), "header mode")

    prefix = O65Prefix.from_buffer_copy(prefix_data)
    mode = prefix.mode
    is_32bit = bool(mode & ModeFlag.SIZE_32BIT)

    # 模式字决定之后所有字段的宽度
    fields_type = get_o65_fields_type(is_32bit)
    fields_data = read_bytes(stream, ctypes.sizeof(fields_type), "header")
    fields_class = HeaderFields32 if is_32bit else HeaderFields16
    fields = fields_class.from_struct(fields_type.from_buffer_copy(fields_data))
    header = O65Header(mode=mode, fields=fields)

    logger.debug(f"o65 header: mode=0x{mode:04x} ({'32' if is_32bit else '16'}-bit), "
                 f"tbase=0x{header.tbase:x}, tlen=0x{header.tlen:x}, "
                 f"dbase=0x{header.dbase:x}, dlen=0x{header.dlen:x}")
    return header


# =============================================================================
# 选项表
# =============================================================================

def read_option(stream: BinaryIO) -> Optional[O65Option]:
    """
    读取一条选项记录

    Returns:
        O65Option，遇到长度为0的结束记录时返回None
    """
    length = read_u8(stream, "option length")
    if length == 0:
        return None
    if length < 2:
        raise O65FormatError(f"invalid option length {length}")

    option_type = read_u8(stream, "option type")
    data = read_bytes(stream, length - 2, "option data")
    logger.debug(f"Option: type={option_type}, length={length}")
    return O65Option(type=option_type, length=length, data=data)


def iter_options(stream: BinaryIO) -> Iterator[O65Option]:
    while True:
        option = read_option(stream)
        if option is None:
            return
        yield option


# =============================================================================
# 段数据
# =============================================================================

def read_segment(stream: BinaryIO, base: int, length: int) -> Iterator[SegmentChunk]:
    """
    按16字节一块读取段数据

    Args:
        stream: 二进制流
        base: 段基址，用于计算每块的显示地址
        length: 段长度

    Yields:
        SegmentChunk，地址为 base + 已读取字节数

    Raises:
        O65EOFError: 段数据被截断 (不会产生不完整的块)
    """
    consumed = 0
    while consumed < length:
        size = min(SEGMENT_CHUNK_SIZE, length - consumed)
        data = read_bytes(stream, size, "segment data")
        yield SegmentChunk(address=base + consumed, data=data)
        consumed += size


def _read_segment_table(stream: BinaryIO, name: str, base: int, length: int) -> O65Segment:
    chunks = tuple(read_segment(stream, base, length))
    logger.debug(f"Read segment {name}: base=0x{base:x}, {length} bytes")
    return O65Segment(name=name, base=base, length=length, chunks=chunks)


# =============================================================================
# 符号表
# =============================================================================

def read_symbol_count(stream: BinaryIO, is_32bit: bool) -> int:
    return read_addr(stream, is_32bit, "symbol count")


def read_undefined_symbol(stream: BinaryIO) -> bytes:
    return read_nul_string(stream, "undefined symbol name")


def read_exported_symbol(stream: BinaryIO, is_32bit: bool) -> O65ExportedSymbol:
    """读取一个导出符号：名称、段ID、值 (宽度与地址相同)"""
    name = read_nul_string(stream, "exported symbol name")
    segment_id = read_u8(stream, "exported symbol segment")
    value = read_addr(stream, is_32bit, "exported symbol value")
    return O65ExportedSymbol(name=name, segment_id=segment_id, value=value)


def read_undefined_symbols(stream: BinaryIO, is_32bit: bool) -> Tuple[bytes, ...]:
    count = read_symbol_count(stream, is_32bit)
    logger.debug(f"Undefined symbols: {count}")
    return tuple(read_undefined_symbol(stream) for _ in range(count))


def read_exported_symbols(stream: BinaryIO, is_32bit: bool) -> Tuple[O65ExportedSymbol, ...]:
    count = read_symbol_count(stream, is_32bit)
    logger.debug(f"Exported symbols: {count}")
    return tuple(read_exported_symbol(stream, is_32bit) for _ in range(count))


# =============================================================================
# 重定位表
# =============================================================================

def read_reloc(stream: BinaryIO, header: O65Header) -> O65RelocEntry:
    """
    读取一条原始重定位记录

    记录格式：
        offset [type [undef_index] [extra]]

    - offset为0表示表结束，255表示跳过254字节，这两种情况没有type字节
    - 目标段为UNDEF时，type后跟未定义符号索引 (宽度与地址相同)
    - HIGH类型在非分页模式下跟1字节低位地址
    - SEG类型跟2字节 (地址的低16位)

    Args:
        stream: 二进制流
        header: 当前镜像的文件头，决定索引宽度和分页模式

    Returns:
        O65RelocEntry
    """
    offset = read_u8(stream, "relocation offset")
    if offset in (RELOC_END, RELOC_SKIP):
        return O65RelocEntry(offset=offset)

    reloc_type = read_u8(stream, "relocation type")
    undef_index = None
    extra = None

    if reloc_type & RELOC_SEGID_MASK == SegmentID.UNDEF:
        undef_index = read_addr(stream, header.is_32bit, "undefined symbol index")

    kind = reloc_type & RELOC_TYPE_MASK
    if kind == RelocType.HIGH and not header.is_paged:
        extra = read_u8(stream, "relocation low byte")
    elif kind == RelocType.SEG:
        extra = read_u16(stream, "relocation segment offset")

    return O65RelocEntry(offset=offset, type=reloc_type,
                         undef_index=undef_index, extra=extra)


def iter_relocations(stream: BinaryIO, header: O65Header, base: int) -> Iterator[O65Relocation]:
    """
    读取一个段的重定位表并重建每条重定位的绝对地址

    地址游标从 base - 1 开始，每条记录加上offset；
    offset为255时游标前进254且不产生重定位；offset为0时结束。
    """
    # 重定位地址实际从段基址-1开始
    cursor = base - 1
    while True:
        entry = read_reloc(stream, header)
        if entry.offset == RELOC_END:
            return
        if entry.offset == RELOC_SKIP:
            cursor += RELOC_SKIP_DISTANCE
            continue

        cursor += entry.offset
        yield O65Relocation(address=cursor,
                            segment_id=entry.segment_id,
                            kind=entry.kind,
                            undef_index=entry.undef_index,
                            extra=entry.extra)


def _read_reloc_table(stream: BinaryIO, header: O65Header, name: str, base: int) -> Tuple[O65Relocation, ...]:
    relocs = tuple(iter_relocations(stream, header, base))
    logger.debug(f"Read {len(relocs)} relocations for {name}")
    return relocs


# =============================================================================
# 镜像解码
# =============================================================================

def read_image_body(stream: BinaryIO, header: O65Header) -> O65Image:
    """
    在已读取文件头之后解码镜像的其余部分

    任何一步失败都会中止整个镜像，不返回部分结果。
    """
    is_32bit = header.is_32bit
    state = ImageState.OPTIONS
    try:
        options = tuple(iter_options(stream))

        state = ImageState.TEXT_SEGMENT
        text = _read_segment_table(stream, ".text", header.tbase, header.tlen)

        state = ImageState.DATA_SEGMENT
        data = _read_segment_table(stream, ".data", header.dbase, header.dlen)

        state = ImageState.UNDEF_SYMBOLS
        undefined_symbols = read_undefined_symbols(stream, is_32bit)

        state = ImageState.TEXT_RELOCS
        text_relocs = _read_reloc_table(stream, header, ".text", header.tbase)

        state = ImageState.DATA_RELOCS
        data_relocs = _read_reloc_table(stream, header, ".data", header.dbase)

        state = ImageState.EXPORT_SYMBOLS
        exported_symbols = read_exported_symbols(stream, is_32bit)
    except O65Error as e:
        logger.debug(f"Image decoding failed in state {state.name}: {e}")
        raise

    return O65Image(header=header,
                    options=options,
                    text=text,
                    data=data,
                    undefined_symbols=undefined_symbols,
                    text_relocs=text_relocs,
                    data_relocs=data_relocs,
                    exported_symbols=exported_symbols)


def read_image(stream: BinaryIO) -> O65Image:
    """读取一个完整的镜像 (文件头 + 内容)"""
    return read_image_body(stream, read_header(stream))


def iter_images(stream: BinaryIO) -> Iterator[O65Image]:
    """
    依次解码文件中的所有镜像

    第一个镜像的文件头错误原样抛出 (O65FormatError表示不是o65格式)；
    之后的镜像文件头错误抛出O65ChainError。
    chain标志为0的镜像之后停止，不再读取。
    """
    index = 0
    state = ImageState.HEADER
    while state == ImageState.HEADER:
        try:
            header = read_header(stream)
        except O65Error as e:
            if index == 0:
                raise
            raise O65ChainError(index, f"corrupt chain (image {index}): {e}") from e

        image = read_image_body(stream, header)
        state = ImageState.DONE
        yield image

        # chain标志表示同一个流中紧接着下一个镜像，回到HEADER状态
        if header.is_chained:
            index += 1
            state = ImageState.HEADER
            logger.debug(f"Chain flag set, decoding image {index}")


# =============================================================================
# 文件读取器
# =============================================================================

class O65Reader:
    """
    o65文件读取器

    打开文件后按顺序解码所有链接的镜像，支持上下文管理器。
    """

    def __init__(self, file_path: str):
        """
        Args:
            file_path: 要读取的o65文件路径
        """
        self.file_path = file_path
        self.file_handle = None
        self.images_read = []

    def __enter__(self):
        """上下文管理器入口"""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """上下文管理器出口"""
        self.close()

    def open(self) -> None:
        """打开文件；OSError会直接抛出"""
        if self.file_handle is None:
            self.file_handle = open(self.file_path, 'rb')
            logger.debug(f"Opened o65 file: {self.file_path}")

    def close(self) -> None:
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def images(self) -> Iterator[O65Image]:
        """逐个产生镜像，已解码的镜像同时保存在images_read中"""
        self.open()
        for image in iter_images(self.file_handle):
            self.images_read.append(image)
            yield image

    def load(self) -> List[O65Image]:
        """解码整个文件，返回所有镜像"""
        images = list(self.images())
        logger.info(f"Read {len(images)} image(s) from {self.file_path}")
        return images
