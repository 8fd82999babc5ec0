"""
Apply one Patch to one parsed file.

    recipe -> (invalid cursor)      -> skipped
           -> check                 -> already_applied
           -> transform             -> failed on error
           -> verify on new tree    -> failed if the change is not detected
           -> applied

Nothing raised while evaluating a patch escapes `apply_patch`; every error is
logged and turned into a failed outcome.
"""

import logging
from typing import Tuple

import libcst as cst

from .cursor import Cursor
from .models import PatchOutcome
from .patch import Patch

logger = logging.getLogger(__name__)


def apply_patch(tree: cst.Module, patch: Patch, path: str = "<module>") -> Tuple[cst.Module, PatchOutcome]:
    """
    Run a patch against a tree.

    Args:
        tree: Current tree of the file (output of the previous patch, if any)
        patch: Patch to apply
        path: File path, used as the root label and in log messages

    Returns:
        (tree, outcome). The tree is the patched one when the outcome is
        applied, and the input tree otherwise.
    """
    root = Cursor.root(tree, label=path)

    try:
        anchor = patch.recipe(root)
    except Exception as e:
        logger.error(f"Recipe of '{patch.label}' raised on {path}: {e}", exc_info=True)
        return tree, PatchOutcome.failed(f"navigation error: {e}")

    if not anchor.valid:
        logger.info(f"Skipped '{patch.label}' on {path}: {anchor.reason}")
        return tree, PatchOutcome.skipped(anchor.reason or "anchor not found")

    try:
        if patch.check(anchor):
            logger.info(f"'{patch.label}' already applied to {path}")
            return tree, PatchOutcome.already_applied()
    except Exception as e:
        logger.error(f"Check of '{patch.label}' raised on {path}: {e}", exc_info=True)
        return tree, PatchOutcome.failed(f"idempotency check error: {e}")

    try:
        new_tree = patch.transform(anchor)
    except Exception as e:
        logger.error(f"Transform of '{patch.label}' raised on {path}: {e}", exc_info=True)
        return tree, PatchOutcome.failed(f"transform error: {e}")

    if not isinstance(new_tree, cst.Module):
        return tree, PatchOutcome.failed(
            f"transform returned {type(new_tree).__name__} instead of a module"
        )

    new_code = new_tree.code
    if new_code == tree.code:
        return tree, PatchOutcome.failed("transform made no change")

    # The printed code must parse on its own; a tree can be built that prints
    # to invalid Python (e.g. a statement where an expression belongs).
    try:
        reparsed = cst.parse_module(new_code)
    except cst.ParserSyntaxError as e:
        logger.error(f"'{patch.label}' produced invalid code for {path}: {e}")
        return tree, PatchOutcome.failed(f"transform produced invalid code: {e.message}")

    verdict = _verify(reparsed, patch, path)
    if verdict is not None:
        return tree, PatchOutcome.failed(verdict)

    logger.info(f"Applied '{patch.label}' to {path}")
    return reparsed, PatchOutcome.applied()


def _verify(tree: cst.Module, patch: Patch, path: str):
    """Re-run recipe and check on the patched tree. Returns a failure reason or None."""
    try:
        anchor = patch.recipe(Cursor.root(tree, label=path))
        if not anchor.valid:
            return f"change not verifiable: {anchor.reason}"
        if not patch.check(anchor):
            return "change not detected after applying it; the patch is not idempotent"
    except Exception as e:
        logger.error(f"Verification of '{patch.label}' raised on {path}: {e}", exc_info=True)
        return f"verification error: {e}"
    return None
