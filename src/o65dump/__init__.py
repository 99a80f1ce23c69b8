#!/usr/bin/env python3
"""
o65dump
=======

.o65目标文件/可执行文件的解码和显示工具。

o65是6502系列交叉汇编器和链接器使用的可重定位格式，包含代码/数据段、
符号表和重定位信息，一个文件中可以链接多个镜像。

核心模块：
- stream: 小端序基本字段读取
- o65_reader: 文件头、选项、段、符号表、重定位表和镜像解码
- renderer: 文本格式输出
- types: o65常量和结构定义
- errors: 解码错误类型
- main: 命令行主程序
"""

__version__ = "1.0.0"

# 导出主要类和函数
from .errors import (
    O65ChainError,
    O65EOFError,
    O65Error,
    O65FormatError,
    O65MarkerError,
)
from .o65_reader import (
    O65ExportedSymbol,
    O65Header,
    O65Image,
    O65Option,
    O65Reader,
    O65Relocation,
    O65Segment,
    iter_images,
    read_image,
)
from .renderer import dump_image, format_image
from .main import main, dump_file, dump_o65, read_o65

__all__ = [
    'O65Error',
    'O65FormatError',
    'O65MarkerError',
    'O65ChainError',
    'O65EOFError',
    'O65Header',
    'O65Option',
    'O65Segment',
    'O65ExportedSymbol',
    'O65Relocation',
    'O65Image',
    'O65Reader',
    'iter_images',
    'read_image',
    'dump_image',
    'format_image',
    'main',
    'dump_file',
    'dump_o65',
    'read_o65',
]
