from datetime import datetime

from pydantic import BaseModel, Field


class RouteMetricsRead(BaseModel):
    method: str
    path: str
    count: int
    avg_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    client_errors: int
    server_errors: int


class GenerationMetricsRead(BaseModel):
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    success_rate: float = 0.0
    # keyed by "success" or a generation error code
    by_outcome: dict[str, int] = Field(default_factory=dict)


class ObservabilityMetricsResponse(BaseModel):
    generated_at: datetime
    uptime_seconds: int
    engine_version: str
    total_requests: int
    total_client_errors: int
    total_server_errors: int
    generations: GenerationMetricsRead
    routes: list[RouteMetricsRead]
