"""YAML-backed template catalog.

Loads every `*.yaml` / `*.yml` file in a directory once, at construction.
Each file holds one template definition. Selection pipelines are compiled
during loading, so a malformed template fails process startup instead of
a scheduler tick.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from structlog import get_logger

from decision_engine.application.ports.template_catalog import (
    TemplateCatalogProtocol,
)
from decision_engine.domain.errors.not_found import TemplateNotFoundError
from decision_engine.domain.errors.validation import InvalidTemplateError
from decision_engine.domain.models.template import ProcessTemplate

logger = get_logger(__name__)


def load_template_file(path: Path) -> ProcessTemplate:
    """Parse one template file.

    Raises:
        InvalidTemplateError: If the file is not valid YAML or not a template.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidTemplateError(path.stem, f"invalid YAML in {path.name}: {e}") from None
    if not isinstance(data, dict):
        raise InvalidTemplateError(path.stem, f"{path.name} must contain a mapping")
    return ProcessTemplate.from_dict(data)


class YamlTemplateCatalog(TemplateCatalogProtocol):
    """Read-only catalog of templates loaded from YAML files."""

    def __init__(self, templates: dict[str, ProcessTemplate]) -> None:
        self._templates = dict(templates)

    @classmethod
    def from_directory(cls, directory: Path) -> YamlTemplateCatalog:
        """Load every template file in `directory`.

        Raises:
            FileNotFoundError: If the directory does not exist.
            InvalidTemplateError: If any file is malformed or two files share an id.
        """
        if not directory.is_dir():
            raise FileNotFoundError(f"Template directory not found: {directory}")

        templates: dict[str, ProcessTemplate] = {}
        paths = sorted([*directory.glob("*.yaml"), *directory.glob("*.yml")])
        for path in paths:
            template = load_template_file(path)
            if template.id in templates:
                raise InvalidTemplateError(
                    template.id, f"defined twice (second definition in {path.name})"
                )
            templates[template.id] = template

        logger.info(
            "templates_loaded",
            directory=str(directory),
            template_ids=sorted(templates),
        )
        return cls(templates)

    async def get_template(self, template_id: str) -> ProcessTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def list_templates(self) -> list[ProcessTemplate]:
        return [self._templates[k] for k in sorted(self._templates)]
