#!/usr/bin/env python3
"""
graft: set up htmx (and friends) in a Django project by patching its source.

`graft init` is meant to be run right after `django-admin startproject`. It
can also be used on older projects, but some patches may not apply because
the code they look for has changed. Those patches are reported as skipped,
with instructions to make the change by hand.

Every patch checks whether it has already been applied, so running the
command twice is safe. Still, commit your work first: files are changed in
place.

Core engine:
- libcst (format-preserving parsing and printing).
- graft_engine (cursor navigation, patch execution, run reports).
"""

from __future__ import annotations

import json
import logging
import pathlib
import subprocess
import sys
from typing import Any, List

import typer
from rich.console import Console

from graft_engine.catalogue import all_patches, files_for
from graft_engine.config import InitOptions, detect_project
from graft_engine.errors import ProjectError
from graft_engine.report import print_results
from graft_engine.runner import PatchRunner, merge_assignments

# --------------------------------------------------------------------------------------
# Version
# --------------------------------------------------------------------------------------

VERSION = "1.0.0"

# --------------------------------------------------------------------------------------
# CLI bootstrap
# --------------------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "graft: idempotent source patching for Django projects\n"
        "Adds htmx, dotenv, debug toolbar and a demo page to an existing project.\n"
        "Use --help on any subcommand for details."
    )
)

console = Console()


def version_callback(value: bool):
    """
    Eager --version callback: print the graft version and exit.
    """
    if value:
        typer.echo(f"graft version {VERSION}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity to stderr."),
):
    """
    Global options callback. Handles --version and logging before any subcommand runs.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            stream=sys.stderr,
        )

# --------------------------------------------------------------------------------------
# Small utility helpers
# --------------------------------------------------------------------------------------


def eprint(*a, **k) -> None:
    """Print to stderr (convenience)."""
    print(*a, file=sys.stderr, **k)


def ensure(cond: bool, msg: str):
    """
    Exit with status 2 and `msg` on stderr unless `cond` holds.
    """
    if not cond:
        typer.echo(msg, err=True)
        raise typer.Exit(code=2)


def maybe_json(data: Any, json_out: bool) -> None:
    """
    Print structured JSON, or a human-friendly representation.
    """
    if json_out:
        typer.echo(json.dumps(data, ensure_ascii=False, indent=2))
    elif isinstance(data, dict):
        for k, v in data.items():
            typer.echo(f"{k}: {v}")
    else:
        typer.echo(str(data))


def confirm(prompt: str, yes: bool) -> bool:
    """
    Ask a yes/no question unless --yes was given.
    """
    if yes:
        return True
    typer.echo(f"{prompt} [y/N] ", nl=False)
    ans = sys.stdin.readline().strip().lower()
    return ans in ("y", "yes")


def install_dependencies(deps: List[str], root: pathlib.Path) -> int:
    """
    Install packages into the current interpreter's environment with pip.
    Returns pip's exit code.
    """
    cmd = [sys.executable, "-m", "pip", "install", *deps]
    eprint(f"$ {' '.join(cmd)}")
    out = subprocess.run(cmd, cwd=str(root))
    return out.returncode

# --------------------------------------------------------------------------------------
# Commands
# --------------------------------------------------------------------------------------


@app.command()
def detect(
        root: str = typer.Option(".", help="Project root."),
        json_out: bool = typer.Option(True, "--json/--no-json", help="Emit JSON."),
):
    """
    Show the project layout graft detected (package, settings, urls, i18n).
    """
    try:
        project = detect_project(pathlib.Path(root))
    except ProjectError as e:
        ensure(False, f"Error: {e}")
    maybe_json(project.model_dump(), json_out)


@app.command()
def init(
        root: str = typer.Option(".", help="Project root (the directory holding manage.py)."),
        debug_toolbar: bool = typer.Option(False, "--debug-toolbar", help="Configure django-debug-toolbar."),
        demo: bool = typer.Option(False, "--demo", help="Generate a demo page at /demo/."),
        yes: bool = typer.Option(
            False, "--yes", "-y",
            help="Answer yes to every prompt, including installing dependencies."
        ),
        dotenv: bool = typer.Option(True, "--dotenv/--no-dotenv", help="Load .env files from manage.py."),
        i18n: bool = typer.Option(True, "--i18n/--no-i18n", help="Add LocaleMiddleware when USE_I18N is on."),
        dep_install: bool = typer.Option(
            True, "--dep-install/--no-dep-install",
            help="Offer to install the dependencies the patches introduce."
        ),
        dry_run: bool = typer.Option(False, "--dry-run", help="Show what would change without writing."),
        force: bool = typer.Option(False, "--force", help="Overwrite generated files that already exist."),
        json_out: bool = typer.Option(False, "--json/--no-json", help="Emit the run report as JSON."),
):
    """
    Configure htmx in a Django project. Patches settings, urls and manage.py,
    reports every change, and lists manual steps for anything it could not do.
    """
    options = InitOptions(
        dotenv=dotenv, i18n=i18n, debug_toolbar=debug_toolbar, demo=demo, yes=yes,
        dep_install=dep_install, dry_run=dry_run, force=force,
    )
    rootp = pathlib.Path(root)
    try:
        project = detect_project(rootp)
    except ProjectError as e:
        ensure(False, f"Error: {e}")

    if not options.yes and not options.dry_run:
        eprint(
            "Note: this command will change existing files in your project.\n"
            "Make sure you commit your work before running it, especially if this "
            "is not a fresh Django project."
        )
        if not confirm("Do you want to continue?", False):
            eprint("Aborted. No files were changed.")
            raise typer.Exit()

    runner = PatchRunner(pathlib.Path(project.root), dry_run=options.dry_run)
    try:
        result = runner.run(
            merge_assignments(all_patches(project, options)),
            files_for(project, options),
            project.template_context(options),
            force=options.force or options.yes,
        )
    except ProjectError as e:
        ensure(False, f"Error: {e}")

    if json_out:
        typer.echo(result.model_dump_json(indent=2))
    else:
        print_results(result, console)

    if result.dependencies and options.dep_install and not options.dry_run:
        eprint("\nThe following dependencies were added to your project:\n")
        for dep in result.dependencies:
            eprint(f"  * {dep}")
        eprint("")
        if confirm("Do you want to install them now?", options.yes):
            code = install_dependencies(result.dependencies, pathlib.Path(project.root))
            ensure(code == 0, f"pip exited with status {code}; install the packages manually.")

    if not result.ok:
        raise typer.Exit(code=1)

# --------------------------------------------------------------------------------------
# Entry point
# --------------------------------------------------------------------------------------


def main() -> None:
    """
    Entrypoint. Exposes Typer app. Keep this trivial so the module can be
    imported without side effects.
    """
    app()


if __name__ == "__main__":
    main()
