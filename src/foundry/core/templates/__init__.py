"""
Templates: reusable capture and document blueprints.

The store lives in ``foundry.core.templates.store``; it depends on the
record state, which in turn imports these models.
"""

from foundry.core.templates.models import (
    Template,
    TemplateCreate,
    TemplateKind,
    TemplatePatch,
    Visibility,
)

__all__ = [
    "Template",
    "TemplateCreate",
    "TemplateKind",
    "TemplatePatch",
    "Visibility",
]
