"""
Foundry CLI - document commands.

Create and edit markdown documents, and move them between folders.
Documents can be exported to and imported from Markdown files with YAML
frontmatter.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from foundry.cli.common import caller, open_service, print_json
from foundry.cli.errors import ExitCode, print_error
from foundry.core.documents.markdown import export_document
from foundry.core.documents.models import DocumentCreate, DocumentUpdate
from foundry.core.query.filters import DocumentFilter, PageRequest

console = Console()
app = typer.Typer(help="Write and organize documents")


def _read(path: Path | None) -> str | None:
    if path is None:
        return None
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        print_error(f"Could not read {path}", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR) from e


@app.command("create")
def create(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    title: str = typer.Argument(..., help="Document title"),
    content: str | None = typer.Option(None, "--content", "-c", help="Markdown body"),
    file: Path | None = typer.Option(None, "--file", help="Read the body from a file"),
    folder: str | None = typer.Option(None, "--folder", help="Folder id"),
    template: str | None = typer.Option(None, "--template", help="Start from this template"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Create a document in one of your workspaces."""
    body = _read(file) if file is not None else content
    with open_service(ctx, save=True) as service:
        document = service.create_document(
            caller(ctx),
            DocumentCreate(
                workspace_id=workspace_id,
                title=title,
                content=body,
                folder_node_id=folder,
                template_id=template,
            ),
        )

    if json_output:
        print_json(document)
        return
    console.print(f"[green]Created document[/green] {document.id}: {document.title}")


@app.command("show")
def show(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document id"),
    raw: bool = typer.Option(False, "--raw", help="Print markdown source"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show a document."""
    with open_service(ctx) as service:
        document = service.get_document(caller(ctx), document_id)

    if json_output:
        print_json(document)
        return
    console.print(f"[bold]{document.title}[/bold] [dim]{document.id} in {document.workspace_id}[/dim]")
    if raw:
        typer.echo(document.content)
    else:
        console.print(Markdown(document.content))


@app.command("list")
def list_documents(
    ctx: typer.Context,
    workspace_id: str = typer.Argument(..., help="Workspace id"),
    folder: str | None = typer.Option(None, "--folder", help="Only documents in this folder"),
    search: str | None = typer.Option(None, "--search", help="Title contains this text"),
    offset: int = typer.Option(0, "--offset", min=0, help="Skip this many results"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help="Page size"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List the documents of a workspace, oldest first."""
    with open_service(ctx) as service:
        page = service.list_documents(
            caller(ctx),
            workspace_id,
            DocumentFilter(folder_node_id=folder, title_contains=search),
            PageRequest(offset=offset, limit=limit),
        )

    if json_output:
        print_json(page)
        return
    if not page.items:
        console.print(f"[yellow]No documents in {workspace_id}.[/yellow]")
        raise typer.Exit(0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Folder", style="dim")
    table.add_column("Updated")
    table.add_column("Title")
    for document in page.items:
        table.add_row(
            document.id,
            document.folder_node_id or "",
            document.updated_at.strftime("%Y-%m-%d %H:%M"),
            document.title,
        )
    console.print(table)


@app.command("update")
def update(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document id"),
    title: str | None = typer.Option(None, "--title", help="New title"),
    content: str | None = typer.Option(None, "--content", "-c", help="New markdown body"),
    file: Path | None = typer.Option(None, "--file", help="Read the new body from a file"),
) -> None:
    """Replace a document's title and/or its whole content."""
    body = _read(file) if file is not None else content
    with open_service(ctx, save=True) as service:
        service.update_document(
            caller(ctx), document_id, DocumentUpdate(title=title, content=body)
        )
    console.print(f"[green]Updated document[/green] {document_id}")


@app.command("move")
def move(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document id"),
    folder: str | None = typer.Option(None, "--folder", help="Target folder (omit for root)"),
) -> None:
    """Move a document to another folder of its workspace."""
    with open_service(ctx, save=True) as service:
        service.move_document(caller(ctx), document_id, folder)
    console.print(f"[green]Moved document[/green] {document_id}")


@app.command("delete")
def delete(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document id"),
) -> None:
    """Delete a document."""
    with open_service(ctx, save=True) as service:
        service.delete_document(caller(ctx), document_id)
    console.print(f"[green]Deleted document[/green] {document_id}")


@app.command("export")
def export(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document id"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="File or directory to write (default: stdout)"
    ),
) -> None:
    """Export a document as Markdown with YAML frontmatter."""
    with open_service(ctx) as service:
        if output is None:
            typer.echo(service.export_document(caller(ctx), document_id), nl=False)
            return
        document = service.get_document(caller(ctx), document_id)

    path = export_document(document, output)
    console.print(f"[green]Exported[/green] {document_id} to {path}")


@app.command("import")
def import_document(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Markdown file to import"),
    workspace_id: str | None = typer.Option(
        None, "--workspace", "-w", help="Target workspace (overrides the file's)"
    ),
) -> None:
    """Create a document from a Markdown file."""
    text = _read(file) or ""
    with open_service(ctx, save=True) as service:
        document = service.import_document(caller(ctx), text, workspace_id)
    console.print(f"[green]Imported[/green] {file} as {document.id}")
