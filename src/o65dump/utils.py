#!/usr/bin/env python3
"""
o65dump Utilities Module
========================

Helpers shared by the command line tool and the module API:
- Logging configuration
- Diagnostic messages for decoding failures
"""

import logging

from .errors import O65ChainError, O65EOFError, O65FormatError, O65MarkerError


def setup_logging(debug: bool):
    """Setup logging configuration"""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s',
        force=True
    )


def describe_error(filename: str, error: Exception) -> str:
    """
    生成一条面向用户的错误信息

    Args:
        filename: 出错的文件
        error: 解码或I/O时抛出的异常

    Returns:
        "filename: 原因" 形式的诊断信息
    """
    if isinstance(error, O65ChainError):
        return f"{filename}: {error}"
    if isinstance(error, O65MarkerError):
        return f"{filename}: not in .o65 format"
    if isinstance(error, O65FormatError):
        return f"{filename}: invalid format"
    if isinstance(error, O65EOFError):
        return f"{filename}: unexpected EOF"
    if isinstance(error, OSError):
        return f"{filename}: {error.strerror or error}"
    return f"{filename}: {error}"
