from fastapi import APIRouter

from app.core.config import settings
from app.schemas.observability import GenerationMetricsRead, ObservabilityMetricsResponse
from app.services.observability import observability_tracker

router = APIRouter(prefix="/observability", tags=["observability"])


@router.get("/metrics", response_model=ObservabilityMetricsResponse)
def get_metrics() -> ObservabilityMetricsResponse:
    return ObservabilityMetricsResponse(engine_version=settings.engine_version, **observability_tracker.snapshot())


@router.get("/metrics/generations", response_model=GenerationMetricsRead)
def get_generation_metrics() -> GenerationMetricsRead:
    return GenerationMetricsRead(**observability_tracker.generation_summary())
