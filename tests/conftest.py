"""
Pytest configuration and shared fixtures for decision engine tests.

Testing Standards:
- All async tests use pytest.mark.asyncio (auto mode enabled in pyproject.toml)
- Use AsyncMock for async function mocking
- Time-dependent tests use FakeTimeAuthority, never sleeps
- Unit tests go in tests/unit/
- Integration tests go in tests/integration/
"""

import pytest

from decision_engine.bootstrap.container import EngineContainer
from decision_engine.domain.models.template import ProcessTemplate
from decision_engine.infrastructure.stubs import TemplateCatalogStub
from tests.helpers.decision_builders import make_template
from tests.helpers.fake_time_authority import FakeTimeAuthority


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def project_version() -> str:
    """Provide the current project version for tests."""
    from decision_engine import __version__

    return __version__


@pytest.fixture
def fake_time_authority() -> FakeTimeAuthority:
    """Clock frozen at 2026-01-01T00:00:00Z."""
    return FakeTimeAuthority()


@pytest.fixture
def propose_vote_template() -> ProcessTemplate:
    """Two-phase template: propose, then vote with a funding pipeline."""
    return make_template()


@pytest.fixture
def template_catalog(propose_vote_template: ProcessTemplate) -> TemplateCatalogStub:
    return TemplateCatalogStub([propose_vote_template])


@pytest.fixture
def container(
    template_catalog: TemplateCatalogStub, fake_time_authority: FakeTimeAuthority
) -> EngineContainer:
    """In-memory engine container wired to the fake clock."""
    return EngineContainer.in_memory(
        template_catalog=template_catalog, time_authority=fake_time_authority
    )
