"""
Run aggregation: apply many patches to many files and collect the outcomes.

Files are processed one after another. Within a file, patches run in the
order they were submitted against the evolving tree, and the file is written
once at the end. A problem with one file never affects another.
"""

import glob
import logging
import pathlib
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from jinja2 import TemplateError

from .errors import ParseError, ProjectError, WriteError
from .executor import apply_patch
from .models import (
    CreateKind, CreateResult, FileResult, OutcomeKind, PatchOutcome, PatchResult, RunResult,
)
from .patch import Patch
from .source import parse_source, read_source, split_bom
from .templates import output_name, render_template
from .utils import rel_to, unified_diff, write_text_atomic

logger = logging.getLogger(__name__)

Assignments = Mapping[str, Sequence[Patch]]

# (template name, destination directory relative to the project root)
FileRequest = Tuple[str, str]


def merge_assignments(groups: Iterable[Assignments]) -> "OrderedDict[str, List[Patch]]":
    """
    Merge several file -> patches mappings, keeping first-seen file order and
    appending patches for files that appear in more than one group.
    """
    merged: "OrderedDict[str, List[Patch]]" = OrderedDict()
    for group in groups:
        for path, patches in group.items():
            merged.setdefault(path, []).extend(patches)
    return merged


def extract_dependencies(results: Iterable[FileResult]) -> List[str]:
    """
    Packages introduced by applied patches, de-duplicated, in first-seen order.
    """
    seen: List[str] = []
    for file_result in results:
        for patch_result in file_result.patches:
            if patch_result.outcome.kind != OutcomeKind.APPLIED:
                continue
            for dep in patch_result.dependencies:
                if dep not in seen:
                    seen.append(dep)
    return seen


def _is_glob(path: str) -> bool:
    return glob.has_magic(path)


class PatchRunner:
    """
    Applies patch assignments and file creation requests to one project.

    Args:
        root: Project root; all paths are relative to it
        dry_run: Compute outcomes and diffs without writing anything
    """

    def __init__(self, root: pathlib.Path, dry_run: bool = False):
        self.root = pathlib.Path(root).resolve()
        self.dry_run = dry_run

    def _ensure_root(self) -> None:
        if not self.root.is_dir():
            raise ProjectError(f"Project root is not a directory: {self.root}")

    # ---------------- Patching ----------------

    def expand(self, assignments: Assignments) -> "OrderedDict[str, List[Patch]]":
        """
        Resolve globs to concrete relative paths (sorted), keeping submission order.

        A glob without matches is kept as-is so its patches get reported.
        """
        self._ensure_root()
        expanded: "OrderedDict[str, List[Patch]]" = OrderedDict()
        for key, patches in assignments.items():
            if _is_glob(key):
                if pathlib.PurePath(key).is_absolute():
                    found = (pathlib.Path(m).resolve() for m in glob.glob(key))
                else:
                    found = self.root.glob(key)
                matches = sorted(p for p in found if p.is_file())
                if not matches:
                    expanded.setdefault(key, []).extend(patches)
                for match in matches:
                    expanded.setdefault(rel_to(self.root, match), []).extend(patches)
            else:
                expanded.setdefault(pathlib.PurePath(key).as_posix(), []).extend(patches)
        return expanded

    def patch_files(self, assignments: Assignments) -> List[FileResult]:
        """
        Apply every assignment, file by file.

        Raises:
            ProjectError: The project root does not exist
        """
        return [self.patch_file(path, patches) for path, patches in self.expand(assignments).items()]

    def patch_file(self, rel_path: str, patches: Sequence[Patch]) -> FileResult:
        """Parse one file once, apply its patches in order, write it once."""
        path = self.root / rel_path
        result = FileResult(path=rel_path)

        if not path.is_file():
            reason = f"file not found: {rel_path}"
            logger.info(reason)
            result.error = reason
            result.patches = [_result(p, PatchOutcome.skipped(reason)) for p in patches]
            return result

        try:
            bom, original = split_bom(read_source(path))
            tree = parse_source(original, rel_path)
        except (OSError, UnicodeDecodeError) as e:
            reason = f"could not read {rel_path}: {e}"
            logger.error(reason)
            result.error = reason
            result.patches = [_result(p, PatchOutcome.failed(reason)) for p in patches]
            return result
        except ParseError as e:
            reason = f"could not parse {e}"
            logger.error(reason)
            result.error = reason
            result.patches = [_result(p, PatchOutcome.failed(reason)) for p in patches]
            return result

        for patch in patches:
            tree, outcome = apply_patch(tree, patch, rel_path)
            result.patches.append(_result(patch, outcome))

        new_code = tree.code
        if new_code == original or not any(
            p.outcome.kind == OutcomeKind.APPLIED for p in result.patches
        ):
            return result

        result.changed = True
        result.diff = unified_diff(rel_path, original, new_code)
        if self.dry_run:
            logger.info(f"Dry run: not writing {rel_path}")
            return result

        try:
            self._write(path, rel_path, bom + new_code)
            result.written = True
        except WriteError as e:
            logger.error(str(e))
            result.error = str(e)
            for patch_result in result.patches:
                if patch_result.outcome.kind == OutcomeKind.APPLIED:
                    patch_result.outcome = PatchOutcome.failed(str(e))
        return result

    def _write(self, path: pathlib.Path, rel_path: str, content: str) -> None:
        try:
            write_text_atomic(path, content)
        except OSError as e:
            raise WriteError(rel_path, e.strerror or str(e)) from e
        logger.info(f"Wrote {rel_path}")

    # ---------------- File creation ----------------

    def create_files(self, requests: Iterable[FileRequest], context: Dict[str, Any],
                     force: bool = False) -> List[CreateResult]:
        """
        Render templates into the project.

        Args:
            requests: (template, destination directory) pairs
            context: Template variables
            force: Overwrite files that already exist
        """
        self._ensure_root()
        return [self.create_file(template, dest, context, force) for template, dest in requests]

    def create_file(self, template: str, dest_dir: str, context: Dict[str, Any],
                    force: bool = False) -> CreateResult:
        rel_path = pathlib.PurePath(dest_dir, output_name(template)).as_posix()
        path = self.root / rel_path

        if path.exists() and not force:
            logger.info(f"{rel_path} already exists, skipping")
            return CreateResult(path=rel_path, template=template, kind=CreateKind.ALREADY_EXISTS)

        try:
            content = render_template(template, context)
        except TemplateError as e:
            logger.error(f"Could not render {template}: {e}", exc_info=True)
            return CreateResult(path=rel_path, template=template, kind=CreateKind.FAILED,
                                reason=f"could not render {template}: {e}")

        if not self.dry_run:
            try:
                self._write(path, rel_path, content)
            except WriteError as e:
                logger.error(str(e))
                return CreateResult(path=rel_path, template=template, kind=CreateKind.FAILED, reason=str(e))
        return CreateResult(path=rel_path, template=template, kind=CreateKind.CREATED)

    # ---------------- Whole run ----------------

    def run(self, assignments: Assignments, requests: Iterable[FileRequest] = (),
            context: Dict[str, Any] = None, force: bool = False) -> RunResult:
        """Patch files, create files, and collect the introduced dependencies."""
        files = self.patch_files(assignments)
        created = self.create_files(requests, context or {}, force=force)
        return RunResult(
            files=files,
            created=created,
            dry_run=self.dry_run,
            dependencies=extract_dependencies(files),
        )


def _result(patch: Patch, outcome: PatchOutcome) -> PatchResult:
    return PatchResult(
        label=patch.label,
        outcome=outcome,
        instructions=patch.instructions,
        dependencies=sorted(patch.dependencies),
    )
