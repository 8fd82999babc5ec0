"""
Parsing and printing of Python source files.

libcst keeps every byte of the original text (whitespace, comments, quote
style, line endings) in the tree, so printing an untouched tree returns the
exact input. The rest of the engine relies on that. The one exception is a
leading UTF-8 byte order mark, which libcst drops; callers split it off with
`split_bom` and put it back when writing.
"""

import logging
import pathlib
from typing import Tuple

import libcst as cst

from .errors import ParseError

logger = logging.getLogger(__name__)

BOM = "\ufeff"


def parse_source(text: str, path: str = "<string>") -> cst.Module:
    """
    Parse source text into a concrete syntax tree.

    Args:
        text: Python source code
        path: File name used in error messages

    Returns:
        The parsed module

    Raises:
        ParseError: If the text is not valid Python
    """
    try:
        return cst.parse_module(text)
    except cst.ParserSyntaxError as e:
        logger.debug(f"Parse failure in {path}: {e}")
        raise ParseError(path, f"{e.message} (line {e.raw_line}, column {e.raw_column})") from e


def print_source(tree: cst.Module) -> str:
    """Render a tree back to source text."""
    return tree.code


def read_source(path: pathlib.Path) -> str:
    """Read UTF-8 source text, keeping its original line endings."""
    with open(path, "r", encoding="utf-8", newline="") as fh:
        return fh.read()


def split_bom(text: str) -> Tuple[str, str]:
    """Split `text` into its byte order mark (or "") and the source after it."""
    if text.startswith(BOM):
        return BOM, text[len(BOM):]
    return "", text


def parse_file(path: pathlib.Path) -> cst.Module:
    """Read and parse a file in one step."""
    _, text = split_bom(read_source(path))
    return parse_source(text, str(path))
