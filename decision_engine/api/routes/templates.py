"""Process template catalog endpoints (read-only)."""

from fastapi import APIRouter, Depends, Request

from decision_engine.api.dependencies.engine import get_template_catalog
from decision_engine.api.errors import problem_from_error
from decision_engine.api.models.decision import ErrorResponse, TemplateResponse
from decision_engine.application.ports.template_catalog import (
    TemplateCatalogProtocol,
)
from decision_engine.domain.exceptions import DecisionEngineError

router = APIRouter(prefix="/v1/templates", tags=["templates"])


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    catalog: TemplateCatalogProtocol = Depends(get_template_catalog),
) -> list[TemplateResponse]:
    return [TemplateResponse.from_domain(t) for t in await catalog.list_templates()]


@router.get(
    "/{template_id}",
    response_model=TemplateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_template(
    template_id: str,
    request: Request,
    catalog: TemplateCatalogProtocol = Depends(get_template_catalog),
) -> TemplateResponse:
    try:
        template = await catalog.get_template(template_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return TemplateResponse.from_domain(template)
