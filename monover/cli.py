"""CLI entry point for monover."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import click

from monover.config import PrereleaseType
from monover.models import VersioningReport
from monover.pipeline import run_versioning


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _print_report(report: VersioningReport) -> None:
    for name, result in report.results.items():
        status = "changed" if result.changed else "unchanged"
        line = f"{name} {result.version_string} ({status}: {result.reason})"
        if result.group_name:
            line += f" [group {result.group_name}]"
        click.echo(line)
        if result.validation and not result.validation.is_valid:
            for error in result.validation.errors:
                click.echo(f"  ! {error.constraint}: {error.message}", err=True)
        for diagnostic in result.diagnostics:
            click.echo(f"  ~ {diagnostic.kind.value}: {diagnostic.message}", err=True)
    for name, failure in report.failures.items():
        click.echo(f"ERROR: {name}: {failure.kind.value}: {failure.message}", err=True)


@click.group()
@click.version_option(package_name="monover")
def cli() -> None:
    """Monorepo version resolver: one version per project from git history."""


@cli.command()
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Repository root with the workspace pyproject.toml.",
)
@click.option(
    "--project",
    "-p",
    "projects",
    multiple=True,
    help="Project to resolve (repeatable). Defaults to all projects.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the full report as JSON.")
@click.option("--force-version", help="Use this version instead of computing one.")
@click.option(
    "--prerelease-type",
    type=click.Choice([t.value for t in PrereleaseType]),
    help="Prerelease label for main and dev branches.",
)
@click.option("--max-workers", type=click.IntRange(min=1), help="Parallel resolutions.")
@click.option("--approve-major", is_flag=True, help="Approve major version bumps.")
@click.option("--strict", is_flag=True, help="Exit non-zero when validation fails.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def resolve(
    root: Path,
    projects: tuple[str, ...],
    as_json: bool,
    force_version: str | None,
    prerelease_type: str | None,
    max_workers: int | None,
    approve_major: bool,
    strict: bool,
    verbose: bool,
) -> None:
    """Resolve the next version of each workspace project."""
    _configure_logging(verbose)

    overrides: dict[str, Any] = {}
    if force_version:
        overrides["force_version"] = force_version
    if prerelease_type:
        overrides["prerelease_type"] = prerelease_type

    report = run_versioning(
        root.resolve(),
        projects=projects or None,
        overrides=overrides or None,
        max_workers=max_workers,
        major_approved=approve_major,
    )

    if as_json:
        click.echo(report.model_dump_json(indent=2))
    else:
        _print_report(report)

    invalid = [
        name
        for name, result in report.results.items()
        if result.validation is not None and not result.validation.is_valid
    ]
    if report.failures or (strict and invalid):
        sys.exit(1)
