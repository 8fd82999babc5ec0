"""
Human-readable rendering of a RunResult: a summary table followed by
remediation steps for everything that was skipped or failed.
"""

from typing import List

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .models import CreateKind, OutcomeKind, RunResult

_OUTCOME_STYLE = {
    OutcomeKind.APPLIED: ("applied", "green"),
    OutcomeKind.ALREADY_APPLIED: ("already applied", "cyan"),
    OutcomeKind.SKIPPED: ("skipped", "yellow"),
    OutcomeKind.FAILED: ("failed", "red"),
}

_CREATE_STYLE = {
    CreateKind.CREATED: ("created", "green"),
    CreateKind.ALREADY_EXISTS: ("already exists", "cyan"),
    CreateKind.FAILED: ("failed", "red"),
}


def summary_table(result: RunResult) -> Table:
    """One row per patch and per created file."""
    title = "graft: planned changes (dry run)" if result.dry_run else "graft: results"
    table = Table(title=title, show_lines=False)
    table.add_column("File", style="bold")
    table.add_column("Change")
    table.add_column("Status")
    table.add_column("Details", overflow="fold")

    for file_result in result.files:
        for patch_result in file_result.patches:
            text, style = _OUTCOME_STYLE[patch_result.outcome.kind]
            table.add_row(
                Text(file_result.path),
                Text(patch_result.label),
                Text(text, style=style),
                Text(patch_result.outcome.reason or ""),
            )
    for created in result.created:
        text, style = _CREATE_STYLE[created.kind]
        table.add_row(Text(created.path), Text(f"create from {created.template}"), Text(text, style=style),
                      Text(created.reason or ""))
    return table


def remediation_lines(result: RunResult) -> List[str]:
    """Manual steps for every skipped or failed patch, in run order."""
    lines: List[str] = []
    for file_result in result.files:
        for patch_result in file_result.patches:
            if patch_result.outcome.kind not in (OutcomeKind.SKIPPED, OutcomeKind.FAILED):
                continue
            lines.append(f"* {file_result.path}: {patch_result.label}")
            lines.append(f"  reason: {patch_result.outcome.reason}")
            if patch_result.instructions:
                lines.append(f"  to do it by hand: {patch_result.instructions}")
    for created in result.created:
        if created.kind == CreateKind.FAILED:
            lines.append(f"* {created.path}: could not be created")
            lines.append(f"  reason: {created.reason}")
    return lines


def print_results(result: RunResult, console: Console) -> None:
    """Print the summary table, diffs in dry-run mode, and remediation steps."""
    console.print(summary_table(result))

    if result.dry_run:
        for file_result in result.files:
            if file_result.diff:
                console.print(file_result.diff, markup=False, highlight=False)

    remediation = remediation_lines(result)
    if remediation:
        console.print("\n[yellow]Some changes could not be applied automatically.[/yellow] "
                      "Please apply them manually:\n")
        for line in remediation:
            console.print(line, markup=False, highlight=False)
