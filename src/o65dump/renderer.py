#!/usr/bin/env python3
"""
o65 Renderer Module
===================

Turns decoded o65 images into the text dump layout:

- header fields and mode description
- options, segment hex dumps (16 bytes per line)
- undefined symbols, relocations and exported symbols

Addresses are printed with 4 hex digits for 16-bit images and 8 for 32-bit.
"""

from typing import List, TextIO

from .o65_reader import O65Header, O65Image, O65Option, O65Relocation, O65Segment
from .types import *


def escape_string(data: bytes) -> str:
    """Printable ASCII verbatim, NUL dropped, anything else as \\xHH"""
    out = []
    for ch in data:
        if 0x20 <= ch <= 0x7E:
            out.append(chr(ch))
        elif ch != 0:
            out.append(f"\\x{ch:02x}")
    return ''.join(out)


def hex_bytes(data: bytes) -> str:
    return ''.join(f" {ch:02x}" for ch in data)


def format_addr(header: O65Header, value: int) -> str:
    if header.is_32bit:
        return f"{value:08x}"
    return f"{value:04x}"


def describe_mode(mode: int) -> str:
    """
    模式字的可读描述

    Returns:
        例如 "6502, 16-bit addresses, exe, byte alignment"
    """
    parts = [get_cpu_name(mode)]
    if mode & ModeFlag.PAGED:
        parts.append("pagewise relocation")
    parts.append("32-bit addresses" if mode & ModeFlag.SIZE_32BIT else "16-bit addresses")
    parts.append("obj" if mode & ModeFlag.OBJ else "exe")
    if mode & ModeFlag.SIMPLE:
        parts.append("simple")
    if mode & ModeFlag.CHAIN:
        parts.append("chain")
    if mode & ModeFlag.BSSZERO:
        parts.append("bsszero")
    parts.append(ALIGN_NAMES[Align(mode & ModeFlag.ALIGN)])
    return ', '.join(parts)


def format_header(header: O65Header) -> List[str]:
    lines = ["Header:",
             f"    mode  = 0x{header.mode:04x} ({describe_mode(header.mode)})"]
    for name in HEADER_FIELD_NAMES:
        lines.append(f"    {name:<5} = 0x{format_addr(header, getattr(header, name))}")
    return lines


def format_option(option: O65Option) -> str:
    if option.type == OptionType.FILENAME:
        text = "Filename: " + escape_string(option.data)
    elif option.type == OptionType.OS:
        text = "Operating System Information:" + hex_bytes(option.data)
    elif option.type == OptionType.PROGRAM:
        text = "Assembler/Linker: " + escape_string(option.data)
    elif option.type == OptionType.AUTHOR:
        text = "Author: " + escape_string(option.data)
    elif option.type == OptionType.CREATED:
        text = "Created: " + escape_string(option.data)
    else:
        text = f"Option {option.type}:" + hex_bytes(option.data)
    return "    " + text


def format_segment(header: O65Header, segment: O65Segment) -> List[str]:
    lines = ["", f"{segment.name}: {segment.length} bytes"]
    for chunk in segment.chunks:
        lines.append(f"    {format_addr(header, chunk.address)}:{hex_bytes(chunk.data)}")
    return lines


def format_relocation(header: O65Header, reloc: O65Relocation) -> str:
    if reloc.segment_id == SegmentID.UNDEF:
        target = f"undef {reloc.undef_index}"
    else:
        target = get_segment_name(reloc.segment_id)

    # HIGH只有在非分页模式下才带低位字节
    if reloc.kind == RelocType.HIGH:
        kind = "HIGH" if reloc.extra is None else f"HIGH {reloc.extra:02x}"
    elif reloc.kind == RelocType.SEG:
        kind = f"SEG {reloc.extra:04x}"
    elif reloc.kind in RELOC_NAMES:
        kind = RELOC_NAMES[reloc.kind]
    else:
        kind = f"RELOC-{reloc.kind:02x}"

    return f"    {format_addr(header, reloc.address)}: {target}, {kind}"


def format_image(image: O65Image) -> List[str]:
    """Render one image as a list of output lines"""
    header = image.header
    lines = format_header(header)

    if image.options:
        lines += ["", "Options:"]
        lines += [format_option(option) for option in image.options]

    lines += format_segment(header, image.text)
    lines += format_segment(header, image.data)

    if not image.undefined_symbols:
        lines += ["", "Undefined Symbols: none"]
    else:
        lines += ["", "Undefined Symbols:"]
        for index, name in enumerate(image.undefined_symbols):
            lines.append(f"    {index}: {escape_string(name)}")

    for name, relocs in ((".text", image.text_relocs), (".data", image.data_relocs)):
        lines += ["", f"{name}.relocs:"]
        lines += [format_relocation(header, reloc) for reloc in relocs]

    if not image.exported_symbols:
        lines += ["", "Exported Symbols: none"]
    else:
        lines += ["", "Exported Symbols:"]
        for symbol in image.exported_symbols:
            lines.append(f"    {escape_string(symbol.name)}, "
                         f"{get_segment_name(symbol.segment_id)}, "
                         f"0x{format_addr(header, symbol.value)}")
    return lines


def dump_image(image: O65Image, out: TextIO) -> None:
    for line in format_image(image):
        print(line, file=out)

    # 后面还有链接的镜像时输出空行分隔
    if image.header.is_chained:
        print(file=out)
