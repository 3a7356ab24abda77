"""
Foundry CLI - template commands.

Templates pre-populate new captures (fields, type, content) or documents
(content). Public templates are visible to everyone; only the owner can
change them.
"""

import typer
from rich.console import Console
from rich.table import Table

from foundry.cli.common import caller, format_field, open_service, parse_field_options, print_json
from foundry.core.fields.schema import CaptureType
from foundry.core.query.filters import PageRequest, TemplateFilter
from foundry.core.templates.models import (
    Template,
    TemplateCreate,
    TemplateKind,
    TemplatePatch,
    Visibility,
)

console = Console()
app = typer.Typer(help="Manage capture and document templates")


def _display_template_table(templates: list[Template]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Visibility")
    table.add_column("Owner", style="dim")
    table.add_column("Name")
    for template in templates:
        table.add_row(
            template.id,
            template.kind.value,
            template.visibility.value,
            template.owner,
            template.name,
        )
    console.print(table)


@app.command("create")
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Template name"),
    kind: TemplateKind = typer.Option(TemplateKind.CAPTURE, "--kind", "-k", help="What it creates"),
    public: bool = typer.Option(False, "--public", help="Make it readable by everyone"),
    description: str | None = typer.Option(None, "--description", "-d", help="Description"),
    content: str = typer.Option("", "--content", "-c", help="Default content"),
    capture_type: CaptureType | None = typer.Option(
        None, "--type", "-t", help="Capture type for capture templates"
    ),
    fields: list[str] | None = typer.Option(
        None, "--field", "-f", help="Default field as name=value (repeatable)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Create a template (private unless --public).

    Examples:
        foundry template create "Bug report" --type task -f labels=bug -f estimate=1
        foundry template create "Meeting notes" --kind document --content "## Attendees"
    """
    with open_service(ctx, save=True) as service:
        template = service.create_template(
            caller(ctx),
            TemplateCreate(
                kind=kind,
                name=name,
                description=description,
                content=content,
                capture_type=capture_type,
                default_fields=parse_field_options(fields),
                visibility=Visibility.PUBLIC if public else Visibility.PRIVATE,
            ),
        )

    if json_output:
        print_json(template)
        return
    console.print(f"[green]Created {template.kind.value} template[/green] {template.id}: {template.name}")


@app.command("show")
def show(
    ctx: typer.Context,
    template_id: str = typer.Argument(..., help="Template id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show one of your templates, or any public template."""
    with open_service(ctx) as service:
        template = service.get_template(caller(ctx), template_id)

    if json_output:
        print_json(template)
        return
    console.print(
        f"[bold]{template.id}[/bold] {template.name} "
        f"[dim]({template.kind.value}, {template.visibility.value}, by {template.owner})[/dim]"
    )
    if template.description:
        console.print(template.description)
    if template.capture_type:
        console.print(f"Type: {template.capture_type.value}")
    for name, value in sorted(template.default_fields.items()):
        console.print(f"  {name}: {format_field(value)}")
    if template.content:
        console.print()
        console.print(template.content)


@app.command("list")
def list_templates(
    ctx: typer.Context,
    public: bool = typer.Option(False, "--public", help="List public templates from everyone"),
    kind: TemplateKind | None = typer.Option(None, "--kind", "-k", help="Filter by kind"),
    offset: int = typer.Option(0, "--offset", min=0, help="Skip this many results"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help="Page size"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List your templates (or all public templates with --public)."""
    spec = TemplateFilter(kind=kind)
    page_request = PageRequest(offset=offset, limit=limit)
    with open_service(ctx) as service:
        if public:
            page = service.list_public_templates(spec, page_request)
        else:
            page = service.list_my_templates(caller(ctx), spec, page_request)

    if json_output:
        print_json(page)
        return
    if not page.items:
        console.print("[yellow]No templates found.[/yellow]")
        raise typer.Exit(0)
    _display_template_table(page.items)


@app.command("update")
def update(
    ctx: typer.Context,
    template_id: str = typer.Argument(..., help="Template id"),
    name: str | None = typer.Option(None, "--name", help="New name"),
    description: str | None = typer.Option(None, "--description", "-d", help="New description"),
    content: str | None = typer.Option(None, "--content", "-c", help="New default content"),
    public: bool | None = typer.Option(None, "--public/--private", help="Visibility"),
    fields: list[str] | None = typer.Option(
        None, "--field", "-f", help="Replace default fields with these name=value pairs"
    ),
) -> None:
    """Update one of your templates. Records already created are not affected."""
    values: dict[str, object] = {}
    for key, value in (("name", name), ("description", description), ("content", content)):
        if value is not None:
            values[key] = value
    if public is not None:
        values["visibility"] = Visibility.PUBLIC if public else Visibility.PRIVATE
    if fields:
        values["default_fields"] = parse_field_options(fields)

    with open_service(ctx, save=True) as service:
        service.update_template(caller(ctx), template_id, TemplatePatch(**values))
    console.print(f"[green]Updated template[/green] {template_id}")


@app.command("delete")
def delete(
    ctx: typer.Context,
    template_id: str = typer.Argument(..., help="Template id"),
) -> None:
    """Delete one of your templates."""
    with open_service(ctx, save=True) as service:
        service.delete_template(caller(ctx), template_id)
    console.print(f"[green]Deleted template[/green] {template_id}")
