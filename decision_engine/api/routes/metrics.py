"""Prometheus scrape endpoint for the container-owned registry."""

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST

from decision_engine.api.dependencies.engine import get_metrics
from decision_engine.infrastructure.monitoring.decision_metrics import (
    DecisionMetricsCollector,
)

router = APIRouter(prefix="/v1", tags=["metrics"])


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    response_class=Response,
    responses={200: {"content": {"text/plain": {}}}},
)
async def get_metrics_endpoint(
    metrics: DecisionMetricsCollector = Depends(get_metrics),
) -> Response:
    return Response(content=metrics.render(), media_type=CONTENT_TYPE_LATEST)
