"""Template catalog adapters."""

from decision_engine.infrastructure.adapters.templates.yaml_template_catalog import (
    YamlTemplateCatalog,
)

__all__ = ["YamlTemplateCatalog"]
