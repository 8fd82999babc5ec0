"""
Patch: a declarative description of one source transformation.
"""

from dataclasses import dataclass, field
from typing import Callable, FrozenSet

import libcst as cst

from .cursor import Cursor

Recipe = Callable[[Cursor], Cursor]
Check = Callable[[Cursor], bool]
Transform = Callable[[Cursor], cst.Module]


@dataclass(frozen=True)
class Patch:
    """
    One idempotent change to one file.

    The file is not part of the patch: callers map file paths (or globs) to
    lists of patches, so the same patch value can target several files.

    Attributes:
        label: Human-readable name shown in reports
        recipe: Navigates from the module root to the anchor of the change
        check: Given the anchor, True if the change is already present
        transform: Given the anchor, returns the patched module
        instructions: What the operator should do by hand when the patch is
            skipped or fails
        dependencies: Package names the change introduces (e.g. "django-htmx")
    """
    label: str
    recipe: Recipe
    check: Check
    transform: Transform
    instructions: str = ""
    dependencies: FrozenSet[str] = field(default_factory=frozenset)
