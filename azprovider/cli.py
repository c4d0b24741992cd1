"""
azprovider CLI entry point.
"""
import json
import logging
import os
import sys
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from azprovider import __version__
from azprovider.engine import NO_OP, Change, Engine, load_state, save_state
from azprovider.errors import ConfigValidationError, ProviderError
from azprovider.models.resource import ConfigBlock
from azprovider.models.schema import Diagnostic, DiagnosticSeverity, Resource
from azprovider.parsers import terraform
from azprovider.provider import Provider
from azprovider.reporters import json_reporter, markdown
from azprovider.resourceids import ID_TYPES, lookup

console = Console(stderr=True)

_LOG_LEVELS = {
    "TRACE": logging.DEBUG,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

_ACTION_COLORS = {
    "create": "green",
    "read": "cyan",
    "update": "yellow",
    "replace": "magenta",
    "delete": "red",
    "no-op": "dim",
}

DEFAULT_STATE_FILE = "terraform.tfstate.json"


def _configure_logging(level_name: Optional[str]) -> None:
    level = _LOG_LEVELS.get((level_name or "WARN").upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # The Azure SDK logs every HTTP request at INFO.
    logging.getLogger("azure").setLevel(max(level, logging.WARNING))


def _collect_blocks(paths: Tuple[str, ...], strict: bool = False) -> List[ConfigBlock]:
    blocks: List[ConfigBlock] = []
    for p in paths:
        if not os.path.exists(p):
            console.print(f"[yellow]Warning:[/yellow] '{p}' does not exist, skipping.")
            continue
        blocks.extend(terraform.parse_directory(p, strict=strict))
    return blocks


def _print_diagnostics(diagnostics: List[Diagnostic]) -> None:
    tbl = Table(title="Diagnostics", show_header=True, header_style="bold")
    tbl.add_column("Severity", width=9)
    tbl.add_column("Address", width=45)
    tbl.add_column("Attribute", width=30)
    tbl.add_column("Summary")
    for d in diagnostics:
        color = "red" if d.severity == DiagnosticSeverity.ERROR else "yellow"
        tbl.add_row(f"[{color}]{d.severity.value}[/{color}]", d.address, d.attribute, d.summary)
    console.print(tbl)


def _print_changes(changes: List[Change], title: str) -> None:
    tbl = Table(title=title, show_header=True, header_style="bold")
    tbl.add_column("Address", width=50)
    tbl.add_column("Action", width=9)
    tbl.add_column("ID")
    for c in changes:
        color = _ACTION_COLORS.get(c.action, "")
        tbl.add_row(c.address, f"[{color}]{c.action}[/{color}]", c.id)
    console.print(tbl)


def _print_schema_table(resource_type: str, resource: Resource) -> None:
    tbl = Table(title=resource_type, show_header=True, header_style="bold")
    tbl.add_column("Attribute", width=40)
    tbl.add_column("Type", width=7)
    tbl.add_column("Presence", width=18)
    tbl.add_column("Flags")
    for name, s in resource.schema.items():
        presence = "required" if s.required else "optional" if s.optional else "computed"
        if s.optional and s.computed:
            presence = "optional+computed"
        flags = [f for f in ("force_new", "sensitive") if getattr(s, f)]
        if s.default is not None:
            flags.append(f"default={s.default!r}")
        tbl.add_row(name, s.type.value + (" (block)" if s.is_block else ""), presence, ", ".join(flags))
    console.print(tbl)


def _select(provider: Provider, resource_type: Optional[str]):
    if resource_type is None:
        return provider.resources, provider.data_sources
    if resource_type in provider.resources:
        return {resource_type: provider.resources[resource_type]}, {}
    if resource_type in provider.data_sources:
        return {}, {resource_type: provider.data_sources[resource_type]}
    console.print(f"[red]Unknown resource or data source:[/red] {resource_type}")
    sys.exit(2)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(__version__)
@click.option(
    "--log-level",
    type=click.Choice(sorted(_LOG_LEVELS), case_sensitive=False),
    envvar="TF_LOG",
    default=None,
    help="Log verbosity (also read from TF_LOG).",
)
@click.pass_context
def cli(ctx, log_level: Optional[str]):
    """azprovider: Azure resource provider for Terraform-style configuration."""
    _configure_logging(log_level)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@click.option(
    "--format", "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
def validate(paths: Tuple[str, ...], output_format: str) -> None:
    """
    Validate .tf files against the provider's schemas.

    PATHS can be files or directories; multiple values accepted.
    """
    with console.status("[bold]Parsing configuration…"):
        blocks = _collect_blocks(paths)

    if not blocks:
        console.print("[red]No configuration blocks found.[/red]")
        sys.exit(2)

    diagnostics = Engine(Provider()).validate(blocks)
    errors = [d for d in diagnostics if d.severity == DiagnosticSeverity.ERROR]

    if output_format.lower() == "json":
        click.echo(json_reporter.build_validation_report(blocks, diagnostics, ", ".join(paths)))
    elif diagnostics:
        _print_diagnostics(diagnostics)

    if errors:
        console.print(f"[red]{len(errors)} error(s)[/red] in {len(blocks)} block(s).")
        sys.exit(2)
    console.print(f"[green]Success![/green] {len(blocks)} block(s) are valid.")


@cli.command()
@click.argument("resource_type", required=False)
@click.option(
    "--format", "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="json",
    show_default=True,
    help="Output format.",
)
def schema(resource_type: Optional[str], output_format: str) -> None:
    """Print the schema of every resource and data source, or just RESOURCE_TYPE."""
    resources, data_sources = _select(Provider(), resource_type)
    if output_format.lower() == "json":
        click.echo(json_reporter.build_schema_report(resources, data_sources))
        return
    for name, resource in {**resources, **data_sources}.items():
        _print_schema_table(name, resource)


@cli.command()
@click.argument("resource_type", required=False)
@click.option(
    "--output", "-o",
    type=click.Path(file_okay=False),
    default=None,
    help="Write one markdown file per resource into this directory (default: stdout).",
)
def docs(resource_type: Optional[str], output: Optional[str]) -> None:
    """Render markdown documentation for resources and data sources."""
    resources, data_sources = _select(Provider(), resource_type)
    pages = [("r", k, r) for k, r in resources.items()] + [("d", k, r) for k, r in data_sources.items()]

    for kind, name, resource in sorted(pages, key=lambda p: (p[0], p[1])):
        content = markdown.build_docs(name, resource)
        if output is None:
            click.echo(content)
            continue
        target_dir = os.path.join(output, kind)
        os.makedirs(target_dir, exist_ok=True)
        target = os.path.join(target_dir, f"{name[len('azurerm_'):]}.html.markdown")
        with open(target, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(content)
        console.print(f"Docs written to [bold]{target}[/bold]")


def _type_name(id_type) -> str:
    return next(name for name, cls in ID_TYPES.items() if cls is id_type)


@cli.command("parse-id")
@click.argument("kind")
@click.argument("resource_id")
@click.option("--insensitive", is_flag=True, default=False, help="Compare segment keys case-insensitively.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
def parse_id(kind: str, resource_id: str, insensitive: bool, output_format: str) -> None:
    """
    Parse RESOURCE_ID as a KIND ID (e.g. StorageAccount, Application) and print its segments.
    """
    id_type = lookup(kind)
    if id_type is None:
        console.print(f"[red]Unknown ID type:[/red] {kind}. Known types: {', '.join(sorted(ID_TYPES))}")
        sys.exit(2)
    try:
        parsed = id_type.parse(resource_id, insensitively=insensitive)
    except ProviderError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(2)

    if output_format.lower() == "json":
        click.echo(json.dumps({"id": parsed.id(), "type": _type_name(id_type), "segments": parsed.segments()}, indent=2))
        return
    tbl = Table(title=str(parsed), show_header=True, header_style="bold")
    tbl.add_column("Segment")
    tbl.add_column("Value")
    for key, value in parsed.segments().items():
        tbl.add_row(key, value)
    console.print(tbl)
    click.echo(parsed.id())


def _engine(config_file: Optional[str]) -> Engine:
    return Engine(Provider(), config_file=config_file)


_state_option = click.option(
    "--state", "state_file",
    type=click.Path(dir_okay=False),
    default=DEFAULT_STATE_FILE,
    show_default=True,
    help="Path of the JSON state file.",
)
_format_option = click.option(
    "--format", "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
_config_option = click.option(
    "--config", "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML provider settings (default: ./azprovider.yaml when present).",
)


def _run(paths: Tuple[str, ...], state_file: str, config_file: Optional[str], operation: str,
         output_format: str = "table") -> None:
    try:
        blocks = _collect_blocks(paths, strict=True)
    except ProviderError as exc:
        console.print(f"[red]Parse error:[/red] {exc}")
        sys.exit(2)
    if not blocks and operation != "destroy":
        console.print("[red]No configuration blocks found.[/red]")
        sys.exit(2)

    engine = _engine(config_file)
    try:
        state = load_state(state_file)
    except ProviderError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(2)

    try:
        if operation == "plan":
            changes = engine.plan(blocks, state)
        elif operation == "apply":
            engine.apply(blocks, state)
            changes = engine.changes
        else:
            engine.destroy(state, blocks)
            changes = engine.changes
    except ConfigValidationError as exc:
        _print_diagnostics(exc.diagnostics)
        sys.exit(2)
    except ProviderError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    finally:
        if operation != "plan":
            save_state(state_file, state)

    if output_format.lower() == "json":
        click.echo(json_reporter.build_changes_report(changes, None if operation == "plan" else state.to_dict()))
        return
    _print_changes(changes, operation.capitalize())
    pending = [c for c in changes if c.action != NO_OP]
    console.print(f"[bold]{len(pending)}[/bold] change(s); state has {len(state)} resource(s).")


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@_state_option
@_format_option
@_config_option
def plan(paths: Tuple[str, ...], state_file: str, config_file: Optional[str], output_format: str) -> None:
    """Show the changes apply would make."""
    _run(paths, state_file, config_file, "plan", output_format)


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@_state_option
@_format_option
@_config_option
def apply(paths: Tuple[str, ...], state_file: str, config_file: Optional[str], output_format: str) -> None:
    """Create, update or replace resources so Azure matches the configuration."""
    _run(paths, state_file, config_file, "apply", output_format)


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@_state_option
@_format_option
@_config_option
def destroy(paths: Tuple[str, ...], state_file: str, config_file: Optional[str], output_format: str) -> None:
    """Delete every resource recorded in the state file."""
    _run(paths, state_file, config_file, "destroy", output_format)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
