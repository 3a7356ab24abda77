"""
Foundry CLI - configuration commands.

Show the effective configuration and manage the runtime settings kept in
the store (auth service reference, controllers).
"""

import typer
from rich.console import Console
from rich.table import Table

from foundry.cli.common import caller, open_service, print_json

console = Console()
app = typer.Typer(help="Show and change store configuration")


@app.command("show")
def show(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the auth service, controllers and effective policies."""
    with open_service(ctx) as service:
        auth_service = service.get_auth_service()
        controllers = service.get_controllers()
        config = service.config

    if json_output:
        print_json(
            {
                "auth_service": auth_service,
                "controllers": controllers,
                "capacity_policy": config.sprint.capacity_policy.value,
                "load_field": config.sprint.load_field,
                "default_limit": config.query.default_limit,
                "checkpoint": str(config.storage.checkpoint_path),
            }
        )
        return

    table = Table(show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Auth service", auth_service or "[dim](not set)[/dim]")
    table.add_row("Controllers", ", ".join(controllers) or "[dim](none)[/dim]")
    table.add_row("Capacity policy", config.sprint.capacity_policy.value)
    table.add_row("Load field", config.sprint.load_field)
    table.add_row("Default page size", str(config.query.default_limit))
    table.add_row("Checkpoint", str(config.storage.checkpoint_path))
    console.print(table)


@app.command("set-auth-service")
def set_auth_service(
    ctx: typer.Context,
    reference: str = typer.Argument(..., help="Auth service base URL"),
) -> None:
    """Set the external auth service (controllers only)."""
    with open_service(ctx, save=True) as service:
        value = service.set_auth_service(caller(ctx), reference)
    console.print(f"[green]Auth service set to[/green] {value}")


@app.command("whoami")
def whoami(
    ctx: typer.Context,
    token: str = typer.Option(..., "--token", envvar="FOUNDRY_ACCESS_TOKEN", help="Access token"),
) -> None:
    """Resolve an access token to a principal through the auth service."""
    with open_service(ctx) as service:
        principal = service.resolve(token)
    typer.echo(principal)
