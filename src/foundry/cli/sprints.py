"""
Foundry CLI - sprint commands.

Manage sprints and their capture membership.
"""

from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from foundry.cli.common import caller, open_service, print_json
from foundry.core.query.filters import PageRequest, SprintFilter
from foundry.core.sprints.models import Sprint, SprintCreate, SprintPatch, SprintStatus

console = Console()
app = typer.Typer(help="Plan sprints and assign captures")


def _capacity(sprint: Sprint) -> str:
    return "-" if sprint.capacity is None else f"{sprint.capacity:g}"


@app.command("create")
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Sprint name"),
    goal: str | None = typer.Option(None, "--goal", "-g", help="Sprint goal"),
    capacity: float | None = typer.Option(None, "--capacity", min=0, help="Load limit"),
    start: datetime | None = typer.Option(None, "--start", help="Start date"),
    end: datetime | None = typer.Option(None, "--end", help="End date"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Create a sprint (status: planning)."""
    with open_service(ctx, save=True) as service:
        sprint = service.create_sprint(
            caller(ctx),
            SprintCreate(name=name, goal=goal, capacity=capacity, start_date=start, end_date=end),
        )

    if json_output:
        print_json(sprint)
        return
    console.print(f"[green]Created sprint[/green] {sprint.id}: {sprint.name}")


@app.command("show")
def show(
    ctx: typer.Context,
    sprint_id: str = typer.Argument(..., help="Sprint id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show a sprint, its load and its members."""
    with open_service(ctx) as service:
        sprint = service.get_sprint(caller(ctx), sprint_id)
        members = service.sprint_members(caller(ctx), sprint_id)
        load = service.sprints.load(sprint)

    if json_output:
        print_json({"sprint": sprint.model_dump(mode="json"), "load": load})
        return

    console.print(f"[bold]{sprint.id}[/bold] {sprint.name} [dim]({sprint.status.value})[/dim]")
    if sprint.goal:
        console.print(f"Goal: {sprint.goal}")
    over = sprint.capacity is not None and load > sprint.capacity
    style = "red" if over else "green"
    console.print(f"Load: [{style}]{load:g}[/{style}] / {_capacity(sprint)}")
    for capture in members:
        console.print(f"  {capture.id}  {capture.estimate:g}  {capture.title}")


@app.command("list")
def list_sprints(
    ctx: typer.Context,
    status: list[SprintStatus] | None = typer.Option(
        None, "--status", "-s", help="Filter by status (repeatable)"
    ),
    search: str | None = typer.Option(None, "--search", help="Name contains this text"),
    offset: int = typer.Option(0, "--offset", min=0, help="Skip this many results"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help="Page size"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List your sprints, oldest first."""
    spec = SprintFilter(statuses=set(status) if status else None, name_contains=search)
    with open_service(ctx) as service:
        page = service.list_sprints(caller(ctx), spec, PageRequest(offset=offset, limit=limit))

    if json_output:
        print_json(page)
        return
    if not page.items:
        console.print("[yellow]No sprints found.[/yellow]")
        raise typer.Exit(0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Members", justify="right")
    table.add_column("Capacity", justify="right")
    table.add_column("Name")
    for sprint in page.items:
        table.add_row(
            sprint.id,
            sprint.status.value,
            str(len(sprint.capture_ids)),
            _capacity(sprint),
            sprint.name,
        )
    console.print(table)


@app.command("update")
def update(
    ctx: typer.Context,
    sprint_id: str = typer.Argument(..., help="Sprint id"),
    name: str | None = typer.Option(None, "--name", help="New name"),
    goal: str | None = typer.Option(None, "--goal", "-g", help="New goal"),
    status: SprintStatus | None = typer.Option(None, "--status", "-s", help="New status"),
    capacity: float | None = typer.Option(None, "--capacity", min=0, help="New load limit"),
    no_capacity: bool = typer.Option(False, "--no-capacity", help="Remove the load limit"),
    start: datetime | None = typer.Option(None, "--start", help="New start date"),
    end: datetime | None = typer.Option(None, "--end", help="New end date"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Update a sprint. Only the given options change."""
    values: dict[str, object] = {}
    for key, value in (
        ("name", name),
        ("goal", goal),
        ("status", status),
        ("capacity", capacity),
        ("start_date", start),
        ("end_date", end),
    ):
        if value is not None:
            values[key] = value
    if no_capacity:
        values["capacity"] = None

    with open_service(ctx, save=True) as service:
        result = service.update_sprint(caller(ctx), sprint_id, SprintPatch(**values))

    if json_output:
        print_json(result)
        return
    sprint = result.sprint
    console.print(f"[green]Updated sprint[/green] {sprint.id}")
    if result.over_capacity and sprint.capacity is not None:
        console.print(
            f"[yellow]Warning: sprint is over capacity "
            f"({result.load:g} > {sprint.capacity:g})[/yellow]"
        )


@app.command("delete")
def delete(
    ctx: typer.Context,
    sprint_id: str = typer.Argument(..., help="Sprint id"),
) -> None:
    """Delete a sprint. Its captures are kept."""
    with open_service(ctx, save=True) as service:
        service.delete_sprint(caller(ctx), sprint_id)
    console.print(f"[green]Deleted sprint[/green] {sprint_id}")


@app.command("add")
def add(
    ctx: typer.Context,
    sprint_id: str = typer.Argument(..., help="Sprint id"),
    capture_id: str = typer.Argument(..., help="Capture id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Add a capture to a sprint (adding twice is harmless)."""
    with open_service(ctx, save=True) as service:
        result = service.add_capture_to_sprint(caller(ctx), sprint_id, capture_id)

    if json_output:
        print_json(result)
        return
    if result.already_assigned:
        console.print(f"[yellow]{capture_id} is already in {sprint_id}[/yellow]")
    else:
        console.print(f"[green]Added[/green] {capture_id} to {sprint_id}")
    if result.over_capacity and result.capacity is not None:
        console.print(
            f"[yellow]Warning: sprint is over capacity "
            f"({result.load:g} > {result.capacity:g})[/yellow]"
        )


@app.command("remove")
def remove(
    ctx: typer.Context,
    sprint_id: str = typer.Argument(..., help="Sprint id"),
    capture_id: str = typer.Argument(..., help="Capture id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Remove a capture from a sprint."""
    with open_service(ctx, save=True) as service:
        result = service.remove_capture_from_sprint(caller(ctx), sprint_id, capture_id)

    if json_output:
        print_json(result)
        return
    if result.was_assigned:
        console.print(f"[green]Removed[/green] {capture_id} from {sprint_id}")
    else:
        console.print(f"[yellow]{capture_id} was not in {sprint_id}[/yellow]")
