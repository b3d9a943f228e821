"""Command line interface for FlowSchema."""

import json
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from flowschema.config import settings
from flowschema.exceptions import FlowSchemaException
from flowschema.server import run_server, setup_logging

app = typer.Typer(
    name="flowschema",
    help="FlowSchema - node schemas and validation for n8n-style workflows",
    add_completion=False,
)

console = Console()


@app.callback()
def configure(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for command output"),
):
    """FlowSchema - node schemas and validation for n8n-style workflows."""
    setup_logging(level=log_level, stream=sys.stderr)


def _build_registry(plugin_paths: Optional[List[str]] = None):
    from flowschema.descriptors.provider import create_provider
    from flowschema.nodes.registry import SchemaRegistry
    from flowschema.schema.builder import SchemaBuilder

    try:
        provider = create_provider(
            plugin_paths if plugin_paths else settings.plugin_paths,
            settings.include_builtin_nodes,
        )
    except FlowSchemaException as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    registry = SchemaRegistry(provider, SchemaBuilder(package=settings.default_package))
    registry.refresh()
    return registry


@app.command("version")
def version():
    """Show version information."""
    version_info = f"""
FlowSchema v{settings.app_version}
Node schemas and validation for n8n-style workflows

Environment: {settings.environment}
Python: {sys.version}
"""
    console.print(
        Panel(
            version_info.strip(),
            title="Version Information",
            border_style="green",
        )
    )


@app.command("server")
def start_server(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Number of workers"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug mode"),
):
    """Start the FlowSchema API server."""
    if debug:
        settings.debug = True
    run_server(host=host, port=port, reload=reload or None, workers=workers)


@app.command("config")
def show_config():
    """Show current configuration."""
    config_table = Table(title="FlowSchema Configuration")

    config_table.add_column("Setting", style="cyan")
    config_table.add_column("Value", style="green")

    config_items = [
        ("App Name", settings.app_name),
        ("Version", settings.app_version),
        ("Environment", settings.environment),
        ("Debug", str(settings.debug)),
        ("Host", settings.host),
        ("Port", str(settings.port)),
        ("Plugin Paths", ", ".join(settings.plugin_paths) or "(builtin only)"),
        ("Default Package", settings.default_package),
        ("Unknown Parameters", settings.unknown_parameter_policy),
        ("Max Nesting Depth", str(settings.max_nesting_depth)),
        ("Schemas Dir", settings.schemas_dir),
        ("Metrics Enabled", str(settings.metrics_enabled)),
    ]

    for setting, value in config_items:
        config_table.add_row(setting, escape(value))

    console.print(config_table)


@app.command("nodes")
def list_nodes(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category"),
    plugin_path: Optional[List[str]] = typer.Option(None, "--plugin-path", help="Descriptor source"),
):
    """List node types."""
    registry = _build_registry(plugin_path)
    schemas = registry.list_schemas()
    if category:
        names = set(registry.get_nodes_by_category(category))
        schemas = [schema for schema in schemas if schema.name in names]

    table = Table(title=f"Node Types ({len(schemas)})")
    table.add_column("Name", style="cyan")
    table.add_column("Display Name")
    table.add_column("Versions", style="green")
    table.add_column("Categories", style="dim")
    for schema in schemas:
        table.add_row(
            schema.name,
            escape(schema.display_name),
            ", ".join(str(v) for v in schema.available_versions),
            ", ".join(schema.categories),
        )
    console.print(table)


@app.command("show")
def show_node(
    name: str = typer.Argument(..., help="Node type name"),
    type_version: Optional[float] = typer.Option(None, "--version", "-v", help="Type version"),
    validation: bool = typer.Option(False, "--validation", help="Show the validation-rule document"),
    plugin_path: Optional[List[str]] = typer.Option(None, "--plugin-path", help="Descriptor source"),
):
    """Print the schema document of a node type as JSON."""
    registry = _build_registry(plugin_path)
    schema = registry.get_schema(name, type_version)
    if schema is None:
        console.print(f"[red]Node type {escape(name)} not found[/red]")
        raise typer.Exit(code=1)
    document = schema.to_validation_artifact() if validation else schema.to_artifact()
    typer.echo(json.dumps(document, indent=2, default=str))


@app.command("extract")
def extract(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    force: bool = typer.Option(False, "--force", "-f", help="Rewrite unchanged files"),
    plugin_path: Optional[List[str]] = typer.Option(None, "--plugin-path", help="Descriptor source"),
):
    """Build every schema and write the artifact documents."""
    from flowschema.schema.artifacts import ArtifactWriter

    registry = _build_registry(plugin_path)
    writer = ArtifactWriter(output or settings.schemas_dir, force=force or settings.force_update)
    changes = writer.write(registry.result)
    stats = registry.stats

    table = Table(title="Extraction Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Nodes", str(stats.total_nodes))
    table.add_row("Versioned nodes", str(stats.versioned_nodes))
    table.add_row("Total versions", str(stats.total_versions))
    table.add_row("Credentials", str(stats.credential_types))
    table.add_row("Failed nodes", str(stats.failed_nodes))
    table.add_row("Partial failures", str(stats.partial_failures))
    table.add_row("Files created", str(changes.created))
    table.add_row("Files updated", str(changes.updated))
    table.add_row("Files unchanged", str(changes.unchanged))
    console.print(table)

    if stats.failed_names:
        console.print(f"[yellow]Failed: {escape(', '.join(stats.failed_names))}[/yellow]")


@app.command("validate")
def validate(
    path: Path = typer.Argument(..., help="Workflow (or node) JSON file"),
    node: bool = typer.Option(False, "--node", help="Validate a single node instead of a workflow"),
    fix: bool = typer.Option(False, "--fix", help="Apply experimental fixes before validating"),
    strict: bool = typer.Option(False, "--strict", help="Report unknown parameters as errors"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    plugin_path: Optional[List[str]] = typer.Option(None, "--plugin-path", help="Descriptor source"),
):
    """Validate a workflow or node document. Exits with 1 when invalid."""
    from flowschema.validation.fixer import apply_experimental_fixes
    from flowschema.validation.node import NodeValidator
    from flowschema.validation.workflow import WorkflowValidator

    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        console.print(f"[red]Cannot read {escape(str(path))}: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    fix_warnings: List[str] = []
    if fix and not node:
        document, fix_result = apply_experimental_fixes(document)
        fix_warnings = fix_result.warnings

    node_validator = NodeValidator(
        _build_registry(plugin_path),
        unknown_parameter_policy="error" if strict else settings.unknown_parameter_policy,
        valid_prefixes=settings.valid_type_prefixes,
        max_depth=settings.max_nesting_depth,
    )
    if node:
        result = node_validator.validate(document)
    else:
        result = WorkflowValidator(node_validator).validate(document)

    if as_json:
        response = result.to_response()
        if fix:
            response["fixes"] = fix_warnings
        typer.echo(json.dumps(response, indent=2, default=str))
    else:
        for warning in fix_warnings:
            console.print(f"[cyan]fix[/cyan] {escape(warning)}")
        for issue in result.issues:
            style = "red" if issue.is_error else "yellow"
            location = f" {escape(issue.path)}" if issue.path else ""
            console.print(
                f"[{style}]{issue.severity}[/{style}] {issue.code}{location}: {escape(issue.message)}"
            )
        if result.valid:
            console.print(f"[green]Valid[/green] ({len(result.warnings)} warnings)")
        else:
            console.print(f"[red]Invalid[/red] ({len(result.errors)} errors, {len(result.warnings)} warnings)")

    if not result.valid:
        raise typer.Exit(code=1)


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
