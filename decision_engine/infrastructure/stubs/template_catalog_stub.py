"""In-memory template catalog stub."""

from __future__ import annotations

from collections.abc import Iterable

from decision_engine.application.ports.template_catalog import (
    TemplateCatalogProtocol,
)
from decision_engine.domain.errors.not_found import TemplateNotFoundError
from decision_engine.domain.models.template import ProcessTemplate


class TemplateCatalogStub(TemplateCatalogProtocol):
    """Template catalog backed by a dictionary."""

    def __init__(self, templates: Iterable[ProcessTemplate] = ()) -> None:
        self._templates: dict[str, ProcessTemplate] = {t.id: t for t in templates}

    def add(self, template: ProcessTemplate) -> None:
        """Register a template (for testing)."""
        self._templates[template.id] = template

    async def get_template(self, template_id: str) -> ProcessTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def list_templates(self) -> list[ProcessTemplate]:
        return [self._templates[k] for k in sorted(self._templates)]
