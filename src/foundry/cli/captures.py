"""
Foundry CLI - capture commands.

Create, inspect, edit, delete and list captures, and walk their
parent/child hierarchy.
"""

from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from foundry.cli.common import (
    caller,
    format_field,
    open_service,
    parse_field_options,
    print_json,
)
from foundry.core.captures.models import (
    Capture,
    CaptureCreate,
    CapturePatch,
    CaptureStatus,
    Priority,
)
from foundry.core.fields.schema import CUSTOM_PREFIX, FIELD_SCHEMAS, CaptureType
from foundry.core.query.filters import CaptureFilter, PageRequest

console = Console()
app = typer.Typer(help="Create and manage captures")


@app.command("create")
def create(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Capture title"),
    capture_type: CaptureType | None = typer.Option(
        None, "--type", "-t", help="Capture type (may come from --template)"
    ),
    description: str | None = typer.Option(None, "--description", "-d", help="Short description"),
    content: str | None = typer.Option(None, "--content", "-c", help="Body text"),
    status: CaptureStatus | None = typer.Option(None, "--status", help="Initial status"),
    priority: Priority | None = typer.Option(None, "--priority", "-p", help="Priority"),
    parent: str | None = typer.Option(None, "--parent", help="Parent capture id"),
    fields: list[str] | None = typer.Option(
        None, "--field", "-f", help="Dynamic field as name=value (repeatable)"
    ),
    template: str | None = typer.Option(None, "--template", help="Create from this template"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Create a capture.

    Examples:
        foundry capture create "Write release notes" --type task -f estimate=3
        foundry capture create "Bug in login" --template tpl-2 -f labels=auth,bug
    """
    parsed = parse_field_options(fields)
    with open_service(ctx, save=True) as service:
        capture = service.create_capture(
            caller(ctx),
            CaptureCreate(
                title=title,
                capture_type=capture_type,
                description=description,
                content=content,
                status=status,
                priority=priority,
                parent_id=parent,
                fields=parsed,
                template_id=template,
            ),
        )

    if json_output:
        print_json(capture)
        return
    console.print(f"[green]Created {capture.capture_type.value}[/green] {capture.id}: {capture.title}")


@app.command("show")
def show(
    ctx: typer.Context,
    capture_id: str = typer.Argument(..., help="Capture id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show one capture with its fields and children."""
    with open_service(ctx) as service:
        capture = service.get_capture(caller(ctx), capture_id)
        children = service.capture_children(caller(ctx), capture_id)

    if json_output:
        print_json(capture)
        return

    console.print(f"[bold]{capture.id}[/bold] {capture.title}")
    console.print(
        f"[dim]{capture.capture_type.value} · {capture.status.value} · "
        f"{capture.priority.value} priority[/dim]"
    )
    if capture.parent_id:
        console.print(f"Parent: {capture.parent_id}")
    if capture.description:
        console.print(capture.description)
    for name, value in sorted(capture.fields.items()):
        console.print(f"  {name}: {format_field(value)}")
    if capture.content:
        console.print()
        console.print(capture.content)
    if children:
        console.print()
        console.print("Children: " + ", ".join(c.id for c in children))


@app.command("update")
def update(
    ctx: typer.Context,
    capture_id: str = typer.Argument(..., help="Capture id"),
    title: str | None = typer.Option(None, "--title", help="New title"),
    capture_type: CaptureType | None = typer.Option(None, "--type", "-t", help="New type"),
    description: str | None = typer.Option(None, "--description", "-d", help="New description"),
    content: str | None = typer.Option(None, "--content", "-c", help="New body text"),
    status: CaptureStatus | None = typer.Option(None, "--status", help="New status"),
    priority: Priority | None = typer.Option(None, "--priority", "-p", help="New priority"),
    parent: str | None = typer.Option(None, "--parent", help="Move under this capture"),
    detach: bool = typer.Option(False, "--detach", help="Make the capture a root"),
    fields: list[str] | None = typer.Option(
        None, "--field", "-f", help="Set a field as name=value (repeatable)"
    ),
    unset: list[str] | None = typer.Option(
        None, "--unset", help="Remove a field (repeatable)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Update a capture. Only the given options change.

    Examples:
        foundry capture update cap-4 --status in_progress
        foundry capture update cap-4 --type project --unset location
        foundry capture update cap-7 --parent cap-2
    """
    values: dict[str, object] = {}
    for name, value in (
        ("title", title),
        ("capture_type", capture_type),
        ("description", description),
        ("content", content),
        ("status", status),
        ("priority", priority),
    ):
        if value is not None:
            values[name] = value
    if detach:
        values["parent_id"] = None
    elif parent is not None:
        values["parent_id"] = parent

    changes: dict[str, object] = dict(parse_field_options(fields))
    for name in unset or []:
        changes[name] = None
    if changes:
        values["fields"] = changes

    with open_service(ctx, save=True) as service:
        result = service.update_capture(caller(ctx), capture_id, CapturePatch(**values))

    if json_output:
        print_json(result)
        return
    console.print(f"[green]Updated[/green] {result.capture.id}")
    for sprint_id in result.over_capacity_sprints:
        console.print(f"[yellow]Warning: sprint {sprint_id} is over capacity[/yellow]")


@app.command("delete")
def delete(
    ctx: typer.Context,
    capture_id: str = typer.Argument(..., help="Capture id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Delete a capture.

    Its children move up to its parent and it is removed from every sprint.
    """
    with open_service(ctx, save=True) as service:
        result = service.delete_capture(caller(ctx), capture_id)

    if json_output:
        print_json(result)
        return
    console.print(f"[green]Deleted[/green] {capture_id}")
    if result.reparented:
        console.print(f"[dim]Re-parented: {', '.join(result.reparented)}[/dim]")
    if result.sprints:
        console.print(f"[dim]Removed from sprints: {', '.join(result.sprints)}[/dim]")


@app.command("list")
def list_captures(
    ctx: typer.Context,
    status: list[CaptureStatus] | None = typer.Option(
        None, "--status", "-s", help="Filter by status (repeatable)"
    ),
    priority: list[Priority] | None = typer.Option(
        None, "--priority", "-p", help="Filter by priority (repeatable)"
    ),
    capture_type: list[CaptureType] | None = typer.Option(
        None, "--type", "-t", help="Filter by type (repeatable)"
    ),
    parent: str | None = typer.Option(None, "--parent", help="Only children of this capture"),
    roots: bool = typer.Option(False, "--roots", help="Only captures without a parent"),
    label: list[str] | None = typer.Option(
        None, "--label", "-l", help="Require this label (repeatable)"
    ),
    sprint: str | None = typer.Option(None, "--sprint", help="Only members of this sprint"),
    search: str | None = typer.Option(None, "--search", help="Title contains this text"),
    since: datetime | None = typer.Option(None, "--since", help="Created at or after"),
    until: datetime | None = typer.Option(None, "--until", help="Created at or before"),
    offset: int = typer.Option(0, "--offset", min=0, help="Skip this many results"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help="Page size"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    List your captures, oldest first.

    Examples:
        foundry capture list --status active --status completed
        foundry capture list --type task --label backend --sprint spr-1
    """
    spec = CaptureFilter(
        statuses=set(status) if status else None,
        priorities=set(priority) if priority else None,
        types=set(capture_type) if capture_type else None,
        parent_id=parent,
        roots_only=roots,
        labels=set(label) if label else None,
        sprint_id=sprint,
        title_contains=search,
        created_from=since,
        created_to=until,
    )
    with open_service(ctx) as service:
        page = service.list_captures(caller(ctx), spec, PageRequest(offset=offset, limit=limit))

    if json_output:
        print_json(page)
        return

    if not page.items:
        console.print("[yellow]No captures found matching criteria.[/yellow]")
        raise typer.Exit(0)

    _display_capture_table(page.items)
    if page.has_more:
        console.print(
            f"[dim]Showing {len(page.items)} of {page.total}. "
            f"Use --offset {page.offset + len(page.items)} for more.[/dim]"
        )


@app.command("children")
def children(
    ctx: typer.Context,
    capture_id: str = typer.Argument(..., help="Capture id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List the direct children of a capture."""
    with open_service(ctx) as service:
        kids = service.capture_children(caller(ctx), capture_id)

    if json_output:
        print_json(kids)
        return
    if not kids:
        console.print(f"[yellow]{capture_id} has no children.[/yellow]")
        return
    _display_capture_table(kids)


@app.command("fields")
def fields_help() -> None:
    """Show which dynamic fields each capture type accepts."""
    table = Table(title="Capture fields", show_header=True, header_style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("Field")
    table.add_column("Kind")
    table.add_column("Description", style="dim")
    for capture_type, specs in FIELD_SCHEMAS.items():
        for spec in specs.values():
            table.add_row(capture_type.value, spec.name, spec.kind.value, spec.description)
    console.print(table)
    console.print(f"[dim]Every type also accepts text fields named {CUSTOM_PREFIX}<key>.[/dim]")


def _display_capture_table(captures: list[Capture]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Parent", style="dim")
    table.add_column("Title")
    for capture in captures:
        table.add_row(
            capture.id,
            capture.capture_type.value,
            capture.status.value,
            capture.priority.value,
            capture.parent_id or "",
            capture.title,
        )
    console.print(table)
