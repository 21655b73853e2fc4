import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app import models  # noqa: F401
from app.api.health import router as health_router
from app.api.observability import router as observability_router
from app.api.recipes import router as recipe_router
from app.api.water import router as water_router
from app.core.config import settings
from app.core.database import Base, engine
from app.core.observability_middleware import ObservabilityMiddleware
from app.schemas.generation import GenerationFailureResponse


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    detail = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "invalid request")
    failure = GenerationFailureResponse(message="Invalid request", error=detail)
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=failure.model_dump(by_alias=True))


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level)
    app = FastAPI(title=settings.app_name)

    if settings.auto_create_tables:
        Base.metadata.create_all(bind=engine)

    app.add_middleware(ObservabilityMiddleware)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(health_router, prefix=settings.api_prefix)
    app.include_router(recipe_router, prefix=settings.api_prefix)
    app.include_router(water_router, prefix=settings.api_prefix)
    app.include_router(observability_router, prefix=settings.api_prefix)
    return app


app = create_app()
