"""visa-repr CLI - resolve, detect and list build inputs."""

from __future__ import annotations

import json
from pathlib import Path

import click

from visa_repr import __version__
from visa_repr.backends.exports import ExportFormat, parse_format, render
from visa_repr.detect import detection_report
from visa_repr.errors import ResolutionFailed, format_report
from visa_repr.logging import configure_logging
from visa_repr.model import FactTable
from visa_repr.resolver import resolve_from_environment, watched_inputs
from visa_repr.settings import ResolverSettings

_FORMAT_CHOICES = click.Choice([f.value for f in ExportFormat] + ["sh", "bat", "cmd", "yml"], case_sensitive=False)


def _parse_facts(target: str | None, fact_args: tuple[str, ...]) -> FactTable:
    try:
        base = dict(FactTable.from_target_triple(target)) if target else dict(FactTable.host())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--target") from e
    for item in fact_args:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--fact")
        base[key.strip()] = value.strip()
    try:
        return FactTable(base)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--fact") from e


@click.group()
@click.version_option(version=__version__, prog_name="visa-repr")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """visa-repr - resolve integer representations of VISA types for a build target."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        level = "DEBUG"
    else:
        try:
            level = ResolverSettings.from_environ().log_level
        except ResolutionFailed:
            # Commands that read settings report the invalid value themselves.
            level = "WARNING"
    configure_logging(level=level)


@cli.command("resolve")
@click.option("--target", default=None, help="Target triple, e.g. x86_64-pc-windows-msvc (default: host)")
@click.option("--fact", "fact_args", multiple=True, metavar="KEY=VALUE", help="Set or replace a target fact")
@click.option(
    "--project-root",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding visa_repr_config.yaml (default: current directory)",
)
@click.option("--format", "fmt", type=_FORMAT_CHOICES, default="json", show_default=True)
def resolve_command(target: str | None, fact_args: tuple[str, ...], project_root: Path | None, fmt: str) -> None:
    """Resolve every VISA type using the VISA_REPR_* environment.

    Exits non-zero with the full error report if any type fails.
    """
    facts = _parse_facts(target, fact_args)
    result = resolve_from_environment(facts=facts, project_root=project_root)
    if not result.ok:
        raise click.ClickException(format_report(result.errors))
    click.echo(render(result.unwrap(), parse_format(fmt)), nl=False)


@cli.command("detect")
@click.option("--format", "fmt", type=_FORMAT_CHOICES, default="shell", show_default=True)
@click.option("--unconditional", is_flag=True, help="YAML: write an entry matching every target")
def detect_command(fmt: str, unconditional: bool) -> None:
    """Print the native type representations of this machine."""
    click.echo(detection_report(parse_format(fmt), unconditional=unconditional), nl=False)


@cli.command("watch-list")
@click.option(
    "--project-root",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding visa_repr_config.yaml (default: current directory)",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def watch_list_command(project_root: Path | None, as_json: bool) -> None:
    """List environment variables and files that affect resolution."""
    try:
        settings = ResolverSettings.from_environ()
    except ResolutionFailed as failure:
        raise click.ClickException(format_report(failure.errors)) from failure
    watch = watched_inputs(settings, project_root)
    if as_json:
        click.echo(json.dumps({"env": list(watch.env_vars), "files": [str(p) for p in watch.files]}))
        return
    for name in watch.env_vars:
        click.echo(f"env {name}")
    for path in watch.files:
        click.echo(f"file {path}")


if __name__ == "__main__":
    cli()
