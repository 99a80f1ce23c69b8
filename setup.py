#!/usr/bin/env python3
"""
o65dump 安装脚本
================

.o65目标文件解码和显示工具的安装配置。
"""

from setuptools import setup, find_packages
import os

# 读取长描述
def read_long_description():
    here = os.path.abspath(os.path.dirname(__file__))
    try:
        with open(os.path.join(here, 'README.md'), 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        return "o65dump - .o65目标文件解码工具"

setup(
    name="o65dump",
    version="1.0.0",
    author="",
    author_email="",
    description="Decode and dump 6502 .o65 relocatable object and executable files",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",

    # 包配置
    package_dir={"": "src"},
    packages=find_packages(where="src"),

    # 依赖
    install_requires=[],
    extras_require={
        "test": ["pytest"],
    },

    # Python版本要求
    python_requires=">=3.8",

    # 分类器
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Assemblers",
        "Topic :: Software Development :: Disassemblers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],

    # 命令行入口点
    entry_points={
        "console_scripts": [
            "o65dump=o65dump.main:main",
        ],
    },

    # 项目关键词
    keywords="o65, 6502, 65816, xa65, object file, relocation, binary analysis",

    include_package_data=True,
    zip_safe=False,
)
