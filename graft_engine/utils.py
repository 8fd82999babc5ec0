"""
Shared utility functions for the graft engine.
"""

import difflib
import pathlib


def rel_to(root: pathlib.Path, path: pathlib.Path) -> str:
    """
    Return a path relative to root if possible, else the absolute path as string.

    Args:
        root: Root directory
        path: Path to make relative

    Returns:
        Relative path string (always with forward slashes) or absolute path string
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def write_text_atomic(p: pathlib.Path, content: str) -> None:
    """
    Atomically write UTF-8 text to a file by writing to a temp path and renaming.
    This minimizes races and prevents partial writes.
    """
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(p.suffix + ".graft.tmp")
    try:
        # newline="" keeps the line endings of `content` untouched
        with open(tmp, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        tmp.replace(p)
    except OSError:
        if tmp.exists():
            tmp.unlink()
        raise


def unified_diff(path: str, old_content: str, new_content: str) -> str:
    """
    Generate unified diff between old and new content.

    Args:
        path: File path for diff headers
        old_content: Original file content
        new_content: Modified file content

    Returns:
        Unified diff string, or empty string if no changes
    """
    if old_content == new_content:
        return ""

    diff = difflib.unified_diff(
        old_content.splitlines(keepends=True),
        new_content.splitlines(keepends=True),
        fromfile=f"{path}:old",
        tofile=f"{path}:new",
    )
    return "".join(diff)
