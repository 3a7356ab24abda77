"""
Shared plumbing for foundry CLI commands.

Each invocation restores the checkpoint, runs one operation against a
FoundryService, and (for mutations) writes the checkpoint back. Store
errors become a printed message and a non-zero exit code.
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from foundry.cli.errors import ExitCode, print_error, print_foundry_error
from foundry.core.errors import FoundryError
from foundry.core.fields.models import FieldKind, FieldValue, make_value
from foundry.core.fields.schema import CUSTOM_PREFIX, FIELD_SCHEMAS
from foundry.core.services.foundry import FoundryService


def caller(ctx: typer.Context) -> str:
    """The principal given with ``--as`` or FOUNDRY_PRINCIPAL ("" if none)."""
    obj = ctx.obj or {}
    return obj.get("principal") or ""


@contextmanager
def open_service(
    ctx: typer.Context, *, save: bool = False, verify: bool = True
) -> Iterator[FoundryService]:
    """
    Restore the store, yield the service, and save it back when ``save``.

    Example:
        with open_service(ctx, save=True) as service:
            service.create_sprint(caller(ctx), SprintCreate(name="Week 1"))
    """
    try:
        service = FoundryService.from_config(installer=caller(ctx) or None, verify=verify)
        yield service
        if save:
            service.save()
    except FoundryError as e:
        raise typer.Exit(print_foundry_error(e)) from e
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
            for err in e.errors()
        )
        print_error("Invalid input", reason=details)
        raise typer.Exit(ExitCode.USER_ERROR) from e
    except OSError as e:
        print_error("Could not read or write the checkpoint", reason=str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def print_json(value: Any) -> None:
    typer.echo(json.dumps(to_jsonable(value), indent=2))


def _field_kinds() -> dict[str, FieldKind]:
    kinds: dict[str, FieldKind] = {}
    for table in FIELD_SCHEMAS.values():
        for spec in table.values():
            kinds[spec.name] = spec.kind
    return kinds


FIELD_KINDS = _field_kinds()


def parse_field_options(options: list[str] | None) -> dict[str, FieldValue]:
    """
    Parse repeated ``--field name=value`` options.

    The value kind comes from the field name (``estimate`` is a number,
    ``due_date`` a date, ``labels`` a comma-separated list). Names no
    schema declares are passed as text and left to validation to reject.
    """
    fields: dict[str, FieldValue] = {}
    for option in options or []:
        name, sep, raw = option.partition("=")
        name = name.strip()
        if not sep or not name:
            print_error(f"Invalid field option: {option}", solution="--field name=value")
            raise typer.Exit(ExitCode.USER_ERROR)
        kind = FIELD_KINDS.get(name, FieldKind.TEXT)
        if name.startswith(CUSTOM_PREFIX):
            kind = FieldKind.TEXT
        try:
            fields[name] = make_value(kind, raw.strip())
        except ValueError as e:
            print_error(f"Invalid value for field '{name}'", reason=str(e))
            raise typer.Exit(ExitCode.USER_ERROR) from e
    return fields


def format_field(value: FieldValue) -> str:
    raw = value.value
    if isinstance(raw, list):
        return ", ".join(raw)
    if hasattr(raw, "isoformat"):
        return raw.isoformat()
    return str(raw)
