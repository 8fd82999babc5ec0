"""
Pydantic models for run outcomes and reports.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class OutcomeKind(str, Enum):
    """How applying one patch to one file ended."""
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class PatchOutcome(BaseModel):
    """Outcome of one patch, with a human-readable reason for skipped/failed."""
    kind: OutcomeKind
    reason: Optional[str] = None

    @classmethod
    def applied(cls) -> "PatchOutcome":
        return cls(kind=OutcomeKind.APPLIED)

    @classmethod
    def already_applied(cls) -> "PatchOutcome":
        return cls(kind=OutcomeKind.ALREADY_APPLIED)

    @classmethod
    def skipped(cls, reason: str) -> "PatchOutcome":
        return cls(kind=OutcomeKind.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "PatchOutcome":
        return cls(kind=OutcomeKind.FAILED, reason=reason)


class PatchResult(BaseModel):
    """Result of one patch within a file."""
    label: str
    outcome: PatchOutcome
    instructions: str = ""
    dependencies: List[str] = Field(default_factory=list, description="Packages the patch introduces")


class FileResult(BaseModel):
    """All patch results for one file, in submission order."""
    path: str = Field(..., description="Path relative to the project root")
    patches: List[PatchResult] = Field(default_factory=list)
    changed: bool = False
    written: bool = False
    diff: Optional[str] = Field(None, description="Unified diff of the change, if any")
    error: Optional[str] = Field(None, description="File-level error (read, parse or write)")


class CreateKind(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


class CreateResult(BaseModel):
    """Result of rendering one template into the project."""
    path: str
    template: str
    kind: CreateKind
    reason: Optional[str] = None


class RunResult(BaseModel):
    """Everything a run produced."""
    files: List[FileResult] = Field(default_factory=list)
    created: List[CreateResult] = Field(default_factory=list)
    dry_run: bool = False
    dependencies: List[str] = Field(default_factory=list, description="Packages introduced by applied patches")

    def by_file(self) -> Dict[str, List[Tuple[str, PatchOutcome]]]:
        """Map each file path to its ordered (label, outcome) pairs."""
        return {f.path: [(p.label, p.outcome) for p in f.patches] for f in self.files}

    def count(self, kind: OutcomeKind) -> int:
        return sum(1 for f in self.files for p in f.patches if p.outcome.kind == kind)

    @property
    def ok(self) -> bool:
        """True when no patch failed and no file creation failed."""
        return self.count(OutcomeKind.FAILED) == 0 and all(
            c.kind != CreateKind.FAILED for c in self.created
        )
