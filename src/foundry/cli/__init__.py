"""
Foundry CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging

import typer
from rich.console import Console
from rich.table import Table

from foundry import __version__
from foundry.cli import captures, config, documents, sprints, templates, workspaces
from foundry.cli.common import caller, open_service, print_json
from foundry.cli.errors import ExitCode
from foundry.core.config.loader import load_env_files

# Help panel names for command grouping
PANEL_RECORDS = "Work with Records"
PANEL_STORE = "Inspect the Store"

app = typer.Typer(
    name="foundry",
    help="Per-principal record store for captures, sprints, workspaces and documents",
    no_args_is_help=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    principal: str | None = typer.Option(
        None,
        "--as",
        envvar="FOUNDRY_PRINCIPAL",
        help="Principal to act as",
    ),
) -> None:
    """
    Foundry - structured records, one principal at a time.

    Every record belongs to exactly one principal and is invisible to
    everyone else (public templates excepted). Pick the principal with
    --as or FOUNDRY_PRINCIPAL.

    Quick Start:
        foundry --as alice capture create "Ship v1" --type project
        foundry --as alice sprint create "Week 1" --capacity 10
        foundry --as alice sprint add spr-1 cap-1
        foundry --as alice capture list --sprint spr-1
    """
    # Precedence: OS env > project .foundry.env > user foundry.env
    load_env_files()

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.obj = {"debug": debug, "principal": principal}


# =============================================================================
# Work with Records
# =============================================================================

app.add_typer(captures.app, name="capture", rich_help_panel=PANEL_RECORDS)
app.add_typer(sprints.app, name="sprint", rich_help_panel=PANEL_RECORDS)
app.add_typer(workspaces.app, name="workspace", rich_help_panel=PANEL_RECORDS)
app.add_typer(documents.app, name="document", rich_help_panel=PANEL_RECORDS)
app.add_typer(templates.app, name="template", rich_help_panel=PANEL_RECORDS)

# =============================================================================
# Inspect the Store
# =============================================================================

app.add_typer(config.app, name="config", rich_help_panel=PANEL_STORE)


@app.command(rich_help_panel=PANEL_STORE)
def health(ctx: typer.Context) -> None:
    """Liveness probe: prints 'ok' when the store loads."""
    with open_service(ctx) as service:
        typer.echo(service.health())


@app.command(rich_help_panel=PANEL_STORE)
def stats(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show record counts per table."""
    with open_service(ctx) as service:
        result = service.stats()

    if json_output:
        print_json(result)
        return

    table = Table(title="Store statistics", show_header=False)
    table.add_column("Table", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Captures", str(result.total_captures))
    table.add_row("Sprints", str(result.total_sprints))
    table.add_row("Workspaces", str(result.total_workspaces))
    table.add_row("Documents", str(result.total_documents))
    table.add_row("Templates", str(result.total_templates))
    table.add_row("Users", str(result.total_users))
    console.print(table)


@app.command(rich_help_panel=PANEL_STORE)
def audit(
    ctx: typer.Context,
    repair: bool = typer.Option(False, "--repair", help="Fix what the audit finds"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Check cross-record integrity (controllers only).

    Exits with code 1 when violations remain.
    """
    with open_service(ctx, save=repair, verify=False) as service:
        applied = service.repair(caller(ctx)) if repair else []
        findings = service.audit(caller(ctx))

    if json_output:
        print_json({"findings": findings, "repairs": applied})
    else:
        for item in applied:
            console.print(f"[yellow]Repaired[/yellow] {item}")
        if findings:
            for finding in findings:
                console.print(f"[red]{finding.code}[/red] {finding}")
        else:
            console.print("[green]No integrity violations found.[/green]")

    if findings:
        raise typer.Exit(ExitCode.GENERAL_ERROR)


@app.command(rich_help_panel=PANEL_STORE)
def version() -> None:
    """Show foundry version."""
    console.print(f"foundry version {__version__}")


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
