"""Template catalog port.

Templates are deployed as configuration and are read-only to the engine.
"""

from __future__ import annotations

from typing import Protocol

from decision_engine.domain.models.template import ProcessTemplate


class TemplateCatalogProtocol(Protocol):
    """Read-only lookup of process templates by id."""

    async def get_template(self, template_id: str) -> ProcessTemplate:
        """Return the template with the given id.

        Raises:
            TemplateNotFoundError: If no template has this id.
        """
        ...

    async def list_templates(self) -> list[ProcessTemplate]:
        """Return every deployed template, ordered by id."""
        ...
