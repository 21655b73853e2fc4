import re

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, Response

from app.core.database import SessionLocal
from app.models.recipe_document import RecipeDocument
from app.schemas.generation import (
    GenerateRecipePayload,
    GenerateRecipeResponse,
    GenerationFailureResponse,
    RecipeDocumentRead,
    RecipeRequest,
)
from app.schemas.recipe import SanitizedRecipe
from app.services.beerxml import recipe_to_beerxml
from app.services.billing import SubscriptionGate
from app.services.completion_gateway import CompletionGateway
from app.services.recipe_engine import RecipeEngine
from app.services.recipe_store import SqlRecipeStore

router = APIRouter(prefix="/recipes", tags=["recipes"])

_FILENAME_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]+")

_STATUS_BY_CODE = {
    "validation_error": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "configuration_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "authentication_error": status.HTTP_502_BAD_GATEWAY,
    "provider_error": status.HTTP_502_BAD_GATEWAY,
    "malformed_output_error": status.HTTP_502_BAD_GATEWAY,
    "rate_limit_error": status.HTTP_429_TOO_MANY_REQUESTS,
    "timeout_error": status.HTTP_504_GATEWAY_TIMEOUT,
}

_MESSAGE_BY_CODE = {
    "validation_error": "Invalid recipe request",
    "configuration_error": "Recipe service is not configured",
    "authentication_error": "Recipe service credentials were rejected",
    "provider_error": "Recipe service is currently unavailable",
    "malformed_output_error": "Recipe service returned an unreadable recipe",
    "rate_limit_error": "Recipe service is busy, please retry shortly",
    "timeout_error": "Recipe generation timed out",
}


def get_recipe_store() -> SqlRecipeStore:
    return SqlRecipeStore(SessionLocal)


def get_completion_gateway() -> CompletionGateway:
    return CompletionGateway.from_settings()


def get_recipe_engine(
    store: SqlRecipeStore = Depends(get_recipe_store),
    gateway: CompletionGateway = Depends(get_completion_gateway),
) -> RecipeEngine:
    billing = SubscriptionGate(store.session_factory, store)
    return RecipeEngine(gateway=gateway, store=store, billing=billing)


def _to_read(document: RecipeDocument) -> RecipeDocumentRead:
    return RecipeDocumentRead(
        id=document.id,
        owner_id=document.owner_id,
        beer_style=document.beer_style,
        name=document.name,
        engine_version=document.engine_version,
        request=document.request_json,
        recipe=document.recipe_json,
    )


@router.post(
    "/generate",
    response_model=GenerateRecipeResponse,
    responses={
        422: {"model": GenerationFailureResponse},
        429: {"model": GenerationFailureResponse},
        500: {"model": GenerationFailureResponse},
        502: {"model": GenerationFailureResponse},
        504: {"model": GenerationFailureResponse},
    },
)
async def generate_recipe(
    payload: GenerateRecipePayload,
    engine: RecipeEngine = Depends(get_recipe_engine),
) -> GenerateRecipeResponse | JSONResponse:
    outcome = await engine.generate(payload.request, payload.owner_id)

    if not outcome.succeeded or outcome.recipe is None:
        code = outcome.error.code if outcome.error else "engine_error"
        failure = GenerationFailureResponse(
            message=_MESSAGE_BY_CODE.get(code, "Recipe generation failed"),
            error=str(outcome.error) if outcome.error else code,
        )
        return JSONResponse(
            status_code=_STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
            content=failure.model_dump(by_alias=True),
            headers={"X-Error-Code": code},
        )

    return GenerateRecipeResponse(
        recipe=outcome.recipe,
        recipe_id=outcome.recipe_id,
        saved=outcome.saved,
        limit_reached=outcome.limit_reached,
    )


@router.get("/{owner_id}", response_model=list[RecipeDocumentRead])
def list_recipes(owner_id: str, store: SqlRecipeStore = Depends(get_recipe_store)) -> list[RecipeDocumentRead]:
    return [_to_read(document) for document in store.list_for_owner(owner_id)]


@router.get("/{owner_id}/{recipe_id}", response_model=RecipeDocumentRead)
def get_recipe(
    owner_id: str,
    recipe_id: int,
    store: SqlRecipeStore = Depends(get_recipe_store),
) -> RecipeDocumentRead:
    document = store.load(owner_id, recipe_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    return _to_read(document)


@router.get(
    "/{owner_id}/{recipe_id}/beerxml",
    response_class=Response,
    responses={200: {"content": {"application/xml": {}}}},
)
def export_recipe_beerxml(
    owner_id: str,
    recipe_id: int,
    store: SqlRecipeStore = Depends(get_recipe_store),
) -> Response:
    document = store.load(owner_id, recipe_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")

    recipe = SanitizedRecipe.model_validate(document.recipe_json)
    request = RecipeRequest.model_validate(document.request_json)
    filename = _FILENAME_UNSAFE_RE.sub("_", recipe.name).strip("_") or "recipe"
    return Response(
        content=recipe_to_beerxml(recipe, request),
        media_type="application/xml",
        headers={"Content-Disposition": f'attachment; filename="{filename}.xml"'},
    )
