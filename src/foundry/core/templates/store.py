"""
Template storage.

Templates are owned like every other record, with one exception to the
visibility rule: a public template is readable by any authenticated
principal. Mutation stays owner-only; a non-owner who can see a public
template gets NotOwnerError, while a private template of another principal
is simply not found.
"""

from __future__ import annotations

import logging

from foundry.core.clock import TEMPLATE_PREFIX
from foundry.core.errors import NotFoundError, ValidationError
from foundry.core.fields.models import Fields
from foundry.core.fields.schema import CaptureType, validate_fields
from foundry.core.identity import require_mutable, require_principal
from foundry.core.query.engine import QueryEngine
from foundry.core.query.filters import Page, PageRequest, TemplateFilter
from foundry.core.state import RecordState
from foundry.core.templates.models import (
    Template,
    TemplateCreate,
    TemplateKind,
    TemplatePatch,
)

logger = logging.getLogger(__name__)

KIND = "template"


def copy_fields(fields: Fields) -> Fields:
    """Deep copy a field mapping so the copy shares no lists with the source."""
    return {name: value.model_copy(deep=True) for name, value in fields.items()}


def _check_shape(
    kind: TemplateKind, capture_type: CaptureType | None, default_fields: Fields
) -> Fields:
    if kind == TemplateKind.DOCUMENT:
        if capture_type is not None or default_fields:
            raise ValidationError(
                "Document templates carry content only, not a capture type or fields"
            )
        return {}
    if capture_type is not None:
        return validate_fields(capture_type, default_fields)
    return copy_fields(default_fields)


class TemplateStore:
    """
    Template table operations.

    Example:
        >>> store = TemplateStore(state)
        >>> tpl = store.create("alice", TemplateCreate(kind="capture", name="Bug"))
        >>> tpl.visibility
        <Visibility.PRIVATE: 'private'>
    """

    def __init__(self, state: RecordState, query: QueryEngine | None = None) -> None:
        self._state = state
        self._query = query or QueryEngine(state)

    def create(self, caller: str, request: TemplateCreate) -> Template:
        owner = require_principal(caller)
        defaults = _check_shape(request.kind, request.capture_type, request.default_fields)

        with self._state.transaction() as state:
            now = state.now()
            template = Template(
                id=state.next_id(TEMPLATE_PREFIX),
                owner=owner,
                kind=request.kind,
                visibility=request.visibility,
                name=request.name,
                description=request.description,
                content=request.content,
                capture_type=request.capture_type,
                default_fields=defaults,
                created_at=now,
                updated_at=now,
            )
            state.templates[template.id] = template

        logger.info(f"Created {template.kind.value} template {template.id} for {owner}")
        return template

    def readable(self, caller: str, template_id: str) -> Template:
        """
        Return a template the caller may read: their own, or any public one.

        Raises:
            NotFoundError: If the template is missing or private to someone else
        """
        principal = require_principal(caller)
        with self._state.reading() as state:
            template = state.templates.get(template_id)
            if template is None or (template.owner != principal and not template.is_public):
                raise NotFoundError(KIND, template_id)
            logger.debug(f"Read template {template_id}")
            return template

    def get(self, caller: str, template_id: str) -> Template:
        return self.readable(caller, template_id)

    def update(self, caller: str, template_id: str, patch: TemplatePatch) -> Template:
        principal = require_principal(caller)

        with self._state.transaction() as state:
            existing = state.templates.get(template_id)
            template = require_mutable(
                existing,
                principal,
                KIND,
                template_id,
                visible=existing is not None and existing.is_public,
            )

            updates: dict[str, object] = {}
            for name in ("name", "content", "visibility"):
                value = getattr(patch, name)
                if patch.sets(name) and value is not None:
                    updates[name] = value
            for name in ("description", "capture_type"):
                if patch.sets(name):
                    updates[name] = getattr(patch, name)

            default_fields = (
                patch.default_fields
                if patch.sets("default_fields") and patch.default_fields is not None
                else template.default_fields
            )
            capture_type = updates.get("capture_type", template.capture_type)
            updates["default_fields"] = _check_shape(template.kind, capture_type, default_fields)
            updates["updated_at"] = state.now()

            updated = template.model_copy(update=updates)
            state.templates[template_id] = updated

        logger.info(f"Updated template {template_id}")
        return updated

    def delete(self, caller: str, template_id: str) -> Template:
        """
        Delete a template.

        Records created from it keep their copied values; ``template_id`` on
        them is provenance only.
        """
        principal = require_principal(caller)
        with self._state.transaction() as state:
            existing = state.templates.get(template_id)
            template = require_mutable(
                existing,
                principal,
                KIND,
                template_id,
                visible=existing is not None and existing.is_public,
            )
            del state.templates[template_id]

        logger.info(f"Deleted template {template_id}")
        return template

    def list_mine(
        self,
        caller: str,
        spec: TemplateFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Template]:
        """Templates owned by the caller, regardless of visibility."""
        return self._query.templates(require_principal(caller), spec, page)

    def list_public(
        self,
        spec: TemplateFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[Template]:
        """Public templates from every owner."""
        return self._query.public_templates(spec, page)

    def for_instantiation(self, caller: str, template_id: str, kind: TemplateKind) -> Template:
        """
        Resolve a template for creating a record of ``kind``.

        Raises:
            NotFoundError: If the template is not readable by the caller
            ValidationError: If the template instantiates a different kind
        """
        template = self.readable(caller, template_id)
        if template.kind != kind:
            raise ValidationError(
                f"Template {template_id} is a {template.kind.value} template, "
                f"not a {kind.value} template",
                id=template_id,
            )
        return template
