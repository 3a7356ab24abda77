"""
Foundry CLI - workspace commands.

Manage workspaces and edit their folder trees.
"""

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from foundry.cli.common import caller, open_service, print_json
from foundry.core.documents.models import Document
from foundry.core.query.filters import PageRequest, WorkspaceFilter
from foundry.core.workspaces.models import Workspace, WorkspaceCreate, WorkspacePatch

console = Console()
app = typer.Typer(help="Manage workspaces and folders")


def render_tree(workspace: Workspace, documents: list[Document]) -> Tree:
    """Build a rich tree of folders (in sibling order) and their documents."""
    root = Tree(f"[bold]{workspace.name}[/bold] [dim]{workspace.id}[/dim]")
    branches: dict[str | None, Tree] = {None: root}

    pending = list(workspace.folder_tree)
    while pending:
        progressed = False
        for node in list(pending):
            if node.parent_id in branches:
                branches[node.id] = branches[node.parent_id].add(
                    f"[cyan]{node.name}[/cyan] [dim]{node.id}[/dim]"
                )
                pending.remove(node)
                progressed = True
        if not progressed:
            break

    for document in documents:
        branch = branches.get(document.folder_node_id, root)
        branch.add(f"{document.title} [dim]{document.id}[/dim]")
    return root


@app.command("create")
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workspace name"),
    description: str | None = typer.Option(None, "--description", "-d", help="Description"),
    icon: str | None = typer.Option(None, "--icon", help="Icon (emoji or name)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Create an empty workspace."""
    with open_service(ctx, save=True) as service:
        workspace = service.create_workspace(
            caller(ctx), WorkspaceCreate(name=name, description=description, icon=icon)
        )

    if json_output:
        print_json(workspace)
        return
    console.print(f"[green]Created workspace[/green] {workspace.id}: {workspace.name}")


@app.command("show")
def show(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show a workspace's folder tree and documents."""
    with open_service(ctx) as service:
        workspace = service.get_workspace(caller(ctx), workspace_id)
        limit = service.config.query.max_limit
        documents = service.list_documents(
            caller(ctx), workspace_id, page=PageRequest(limit=limit)
        ).items

    if json_output:
        print_json(workspace)
        return
    console.print(render_tree(workspace, documents))


@app.command("list")
def list_workspaces(
    ctx: typer.Context,
    archived: bool = typer.Option(
        True, "--archived/--no-archived", help="Include archived workspaces"
    ),
    offset: int = typer.Option(0, "--offset", min=0, help="Skip this many results"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help="Page size"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List your workspaces, oldest first."""
    with open_service(ctx) as service:
        page = service.list_workspaces(
            caller(ctx),
            WorkspaceFilter(include_archived=archived),
            PageRequest(offset=offset, limit=limit),
        )

    if json_output:
        print_json(page)
        return
    if not page.items:
        console.print("[yellow]No workspaces found.[/yellow]")
        raise typer.Exit(0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Folders", justify="right")
    table.add_column("Archived")
    table.add_column("Name")
    for workspace in page.items:
        table.add_row(
            workspace.id,
            str(len(workspace.folder_tree)),
            "yes" if workspace.is_archived else "",
            f"{workspace.icon} {workspace.name}" if workspace.icon else workspace.name,
        )
    console.print(table)


@app.command("update")
def update(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    name: str | None = typer.Option(None, "--name", help="New name"),
    description: str | None = typer.Option(None, "--description", "-d", help="New description"),
    icon: str | None = typer.Option(None, "--icon", help="New icon"),
    archive: bool | None = typer.Option(None, "--archive/--unarchive", help="Archive state"),
) -> None:
    """Update a workspace. Only the given options change."""
    values: dict[str, object] = {}
    for key, value in (
        ("name", name),
        ("description", description),
        ("icon", icon),
        ("is_archived", archive),
    ):
        if value is not None:
            values[key] = value

    with open_service(ctx, save=True) as service:
        service.update_workspace(caller(ctx), workspace_id, WorkspacePatch(**values))
    console.print(f"[green]Updated workspace[/green] {workspace_id}")


@app.command("delete")
def delete(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a workspace and all of its documents."""
    if not yes:
        typer.confirm(f"Delete {workspace_id} and all its documents?", abort=True)
    with open_service(ctx, save=True) as service:
        result = service.delete_workspace(caller(ctx), workspace_id)
    console.print(
        f"[green]Deleted workspace[/green] {workspace_id} "
        f"[dim]({len(result.documents)} documents)[/dim]"
    )


@app.command("folder-add")
def folder_add(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    name: str = typer.Argument(..., help="Folder name"),
    parent: str | None = typer.Option(None, "--parent", help="Parent folder id"),
) -> None:
    """Add a folder to a workspace."""
    with open_service(ctx, save=True) as service:
        node = service.add_folder(caller(ctx), workspace_id, name, parent)
    console.print(f"[green]Added folder[/green] {node.id}: {node.name}")


@app.command("folder-rename")
def folder_rename(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    node_id: str = typer.Argument(..., help="Folder id"),
    name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a folder."""
    with open_service(ctx, save=True) as service:
        service.rename_folder(caller(ctx), workspace_id, node_id, name)
    console.print(f"[green]Renamed folder[/green] {node_id}")


@app.command("folder-move")
def folder_move(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    node_id: str = typer.Argument(..., help="Folder id"),
    parent: str | None = typer.Option(None, "--parent", help="New parent (omit for top level)"),
) -> None:
    """Move a folder (with its subtree) under another folder."""
    with open_service(ctx, save=True) as service:
        service.move_folder(caller(ctx), workspace_id, node_id, parent)
    console.print(f"[green]Moved folder[/green] {node_id}")


@app.command("folder-remove")
def folder_remove(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    node_id: str = typer.Argument(..., help="Folder id"),
) -> None:
    """Remove a folder. Its subfolders and documents move up one level."""
    with open_service(ctx, save=True) as service:
        service.remove_folder(caller(ctx), workspace_id, node_id)
    console.print(f"[green]Removed folder[/green] {node_id}")
