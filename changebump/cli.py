"""CLI entry point for changebump."""

from __future__ import annotations

from pathlib import Path

import click

from changebump.config import dump_config, load_config
from changebump.errors import ReleaseError
from changebump.pipeline import run_publish, run_status, run_version
from changebump.pre import enter_prerelease, exit_prerelease

cwd_option = click.option(
    "--cwd",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Repository root containing the .changes folder.",
)
timeout_option = click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds before the run is aborted. [default: from config, else 120]",
)


@click.group()
@click.version_option(package_name="changebump")
def cli() -> None:
    """Version, changelog and publish the packages of a monorepo from change files."""


@cli.command()
@cwd_option
def status(cwd: Path) -> None:
    """Show the pending release plan without changing anything."""
    try:
        click.echo(run_status(cwd.resolve()))
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@cwd_option
def config(cwd: Path) -> None:
    """Print the resolved configuration."""
    try:
        click.echo(dump_config(load_config(cwd.resolve())))
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@cwd_option
@timeout_option
def version(cwd: Path, timeout: float | None) -> None:
    """Bump versions and write changelogs, consuming the change files."""
    try:
        actions = run_version(cwd.resolve(), timeout)
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo()
    for action in actions:
        click.echo(f"✓ {action.package} {action.from_version} → {action.to_version}")


@cli.command()
@cwd_option
@timeout_option
def publish(cwd: Path, timeout: float | None) -> None:
    """Bump versions, write changelogs, then publish each released package."""
    try:
        records = run_publish(cwd.resolve(), timeout)
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo()
    for record in records:
        if record.skipped_as_already_published:
            click.echo(f"- {record.package}@{record.version} already published")
        elif record.succeeded:
            click.echo(f"✓ {record.package}@{record.version} published")
        else:
            click.echo(f"✗ {record.package}@{record.version}: {record.error}")

    failed = [record.package for record in records if not record.succeeded]
    if failed:
        raise click.ClickException(f"Failed to publish: {', '.join(failed)}")


@cli.group()
def pre() -> None:
    """Enter or leave prerelease mode."""


@pre.command("enter")
@click.argument("tag")
@cwd_option
def pre_enter(tag: str, cwd: Path) -> None:
    """Release every following version as a TAG prerelease."""
    try:
        enter_prerelease(cwd.resolve(), tag)
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Entered prerelease mode with tag {tag!r}")


@pre.command("exit")
@cwd_option
def pre_exit(cwd: Path) -> None:
    """Leave prerelease mode; the next version run graduates the prereleases."""
    try:
        state = exit_prerelease(cwd.resolve())
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Left prerelease mode with tag {state.tag!r}")
