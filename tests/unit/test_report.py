"""Unit tests for the human-readable report (graft_engine/report.py)."""

import io

import pytest
from rich.console import Console

from graft_engine.models import (
    CreateKind, CreateResult, FileResult, PatchOutcome, PatchResult, RunResult,
)
from graft_engine.report import print_results, remediation_lines, summary_table


@pytest.fixture
def run():
    return RunResult(
        files=[
            FileResult(path="mysite/settings.py", diff="--- a\n+++ b\n", patches=[
                PatchResult(label="Add app", outcome=PatchOutcome.applied()),
                PatchResult(label="Add [middleware]", outcome=PatchOutcome.skipped("assignment to MIDDLEWARE not found"),
                            instructions="Add it by hand."),
            ]),
            FileResult(path="manage.py", patches=[
                PatchResult(label="Call load_dotenv", outcome=PatchOutcome.failed("could not parse manage.py")),
            ]),
        ],
        created=[CreateResult(path="mysite/hero.py", template="demo/hero.py.jinja", kind=CreateKind.CREATED)],
    )


def render(run, width=200) -> str:
    out = io.StringIO()
    print_results(run, Console(file=out, width=width, color_system=None))
    return out.getvalue()


@pytest.mark.unit
class TestReport:

    def test_one_row_per_patch_and_created_file(self, run):
        assert summary_table(run).row_count == 4

    def test_remediation_lists_skipped_and_failed_only(self, run):
        lines = remediation_lines(run)
        assert lines == [
            "* mysite/settings.py: Add [middleware]",
            "  reason: assignment to MIDDLEWARE not found",
            "  to do it by hand: Add it by hand.",
            "* manage.py: Call load_dotenv",
            "  reason: could not parse manage.py",
        ]

    def test_failed_creation_in_remediation(self, run):
        run.created.append(CreateResult(path="mysite/demo.py", template="demo/demo.py.jinja",
                                        kind=CreateKind.FAILED, reason="disk full"))
        assert remediation_lines(run)[-2:] == ["* mysite/demo.py: could not be created", "  reason: disk full"]

    def test_print_results(self, run):
        text = render(run)
        assert "graft: results" in text
        assert "Add [middleware]" in text
        assert "Please apply them manually" in text
        # diffs only in dry runs
        assert "+++ b" not in text

    def test_dry_run_prints_diffs(self, run):
        run.dry_run = True
        text = render(run)
        assert "dry run" in text
        assert "+++ b" in text

    def test_nothing_to_remediate(self):
        run = RunResult(files=[FileResult(path="a.py", patches=[
            PatchResult(label="p", outcome=PatchOutcome.already_applied()),
        ])])
        assert remediation_lines(run) == []
        assert "manually" not in render(run)
