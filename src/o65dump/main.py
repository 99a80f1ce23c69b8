#!/usr/bin/env python3
"""
o65dump - dump the contents of .o65 object files
================================================

Decodes 6502-family ".o65" relocatable object and executable files and prints
the header, options, segment contents, symbol tables and relocation tables of
every image in the file, including chained images.

CLI Usage:
    o65dump file1.o65 [file2.o65 ...]
    o65dump -d file.o65            # with debug logging

Module Usage:
    import o65dump

    with open('hello.o65', 'rb') as f:
        data = f.read()

    images = o65dump.read_o65(data)
    print(images[0].header.tbase)

    print(o65dump.dump_o65(data))
"""

import argparse
import io
import logging
import sys
from typing import List, Optional, TextIO, Union

from .errors import O65Error
from .o65_reader import O65Image, O65Reader, iter_images
from .renderer import dump_image
from .utils import describe_error, setup_logging

# Configure logging
logger = logging.getLogger(__name__)


def read_o65(data: Union[bytes, bytearray]) -> List[O65Image]:
    """
    Decode all images of an o65 file held in memory.

    Args:
        data: The complete file contents

    Returns:
        The decoded images, in file order

    Raises:
        O65MarkerError: data is not in .o65 format
        O65ChainError: a chained image after the first has a bad header
        O65FormatError: a table is malformed
        O65EOFError: data is truncated
    """
    return list(iter_images(io.BytesIO(bytes(data))))


def dump_o65(data: Union[bytes, bytearray]) -> str:
    """
    Render an o65 file held in memory as text.

    Example:
        >>> with open('hello.o65', 'rb') as f:
        ...     print(dump_o65(f.read()))
    """
    out = io.StringIO()
    for image in read_o65(data):
        dump_image(image, out)
    return out.getvalue()


def dump_file(filename: str, out: Optional[TextIO] = None) -> bool:
    """
    Dump every image of one file.

    Images are printed as they are decoded, so the images before a failure
    in a chain are still shown.

    Returns:
        True on success, False if the file could not be opened or decoded
    """
    out = out or sys.stdout
    try:
        with O65Reader(filename) as reader:
            for image in reader.images():
                dump_image(image, out)
            logger.debug(f"Dumped {len(reader.images_read)} image(s) from {filename}")
        return True
    except (O65Error, OSError) as e:
        logger.debug(f"Failed to dump {filename}: {e!r}")
        logger.error(describe_error(filename, e))
        return False


def main(argv: Optional[List[str]] = None):
    """Main entry point for o65dump"""
    parser = argparse.ArgumentParser(
        prog='o65dump',
        description='Dump the contents of .o65 object and executable files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dump a single file
  o65dump hello.o65

  # Dump several files, each preceded by its name
  o65dump a.o65 b.o65
        """
    )

    parser.add_argument('files', nargs='*', metavar='file',
                        help='o65 files to dump')
    parser.add_argument('-d', '--debug', action='store_true',
                        help='Enable debug output')

    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.debug)

    if not args.files:
        parser.print_usage(sys.stderr)
        return 1

    exit_val = 0
    try:
        for index, filename in enumerate(args.files):
            if index > 0:
                print()
            if len(args.files) > 1:
                print(f"{filename}:\n")
            if not dump_file(filename):
                exit_val = 1
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 1

    return exit_val


if __name__ == '__main__':
    sys.exit(main())
