from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from app.core.config import settings
from app.core.errors import (
    CompletionTimeoutError,
    LimitReachedError,
    MalformedOutputError,
    RecipeEngineError,
    ValidationError,
)
from app.schemas.generation import RecipeRequest
from app.schemas.recipe import SanitizedRecipe
from app.services.completion_gateway import parse_draft
from app.services.observability import observability_tracker
from app.services.prompt_composer import compose_prompt
from app.services.recipe_sanitizer import sanitize
from app.services.rules import derive_constraints

logger = logging.getLogger("brewwizard.engine")

_RAW_LOG_LIMIT = 2000


class Completer(Protocol):
    async def complete(self, system_text: str, user_text: str) -> str: ...


class RecipeStore(Protocol):
    def save(self, owner_id: str, document: dict[str, Any]) -> int: ...


class BillingGate(Protocol):
    def can_create_more(self, owner_id: str) -> bool: ...


class GenerationStage(str, Enum):
    REQUESTED = "requested"
    CONSTRAINTS_DERIVED = "constraints_derived"
    PROMPT_COMPOSED = "prompt_composed"
    COMPLETION_PENDING = "completion_pending"
    DRAFT_RECEIVED = "draft_received"
    SANITIZED = "sanitized"
    DONE = "done"
    FAILED = "failed"


@dataclass
class GenerationOutcome:
    stage: GenerationStage
    recipe: SanitizedRecipe | None = None
    error: RecipeEngineError | None = None
    recipe_id: int | None = None
    saved: bool = False
    limit_reached: bool = False

    @property
    def succeeded(self) -> bool:
        return self.stage is GenerationStage.DONE


class RecipeEngine:
    """Runs one generation request from constraints to a sanitized, stored recipe.

    Failures never raise out of ``generate``; they come back as a ``FAILED``
    outcome carrying the typed error. Persistence is best-effort and never
    turns a generated recipe into a failure.
    """

    def __init__(
        self,
        gateway: Completer,
        store: RecipeStore | None = None,
        billing: BillingGate | None = None,
        timeout_seconds: float | None = None,
        engine_version: str | None = None,
    ):
        self.gateway = gateway
        self.store = store
        self.billing = billing
        self.timeout_seconds = settings.ai_llm_timeout_seconds if timeout_seconds is None else timeout_seconds
        self.engine_version = engine_version or settings.engine_version

    def _log_stage(self, stage: GenerationStage, request: RecipeRequest, **extra: Any) -> None:
        payload = {"event": "generation_stage", "stage": stage.value, "beer_style": request.beer_style, **extra}
        logger.info(json.dumps(payload))

    def _fail(self, stage: GenerationStage, request: RecipeRequest, error: RecipeEngineError) -> GenerationOutcome:
        payload = {
            "event": "generation_failed",
            "failed_at": stage.value,
            "beer_style": request.beer_style,
            "error": error.code,
            "message": str(error),
        }
        if isinstance(error, MalformedOutputError) and error.raw_content is not None:
            payload["raw_content"] = error.raw_content[:_RAW_LOG_LIMIT]
        logger.warning(json.dumps(payload))
        observability_tracker.record_generation(error.code)
        return GenerationOutcome(stage=GenerationStage.FAILED, error=error)

    async def _complete(self, system_text: str, user_text: str) -> str:
        try:
            return await asyncio.wait_for(
                self.gateway.complete(system_text, user_text),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise CompletionTimeoutError(
                f"Completion did not finish within {self.timeout_seconds:g} seconds"
            ) from exc

    async def generate(self, request: RecipeRequest, owner_id: str | None) -> GenerationOutcome:
        stage = GenerationStage.REQUESTED
        self._log_stage(stage, request)

        if not owner_id or not owner_id.strip():
            return self._fail(stage, request, ValidationError("An owner id is required to generate a recipe"))
        if not request.beer_style.strip():
            return self._fail(stage, request, ValidationError("A beer style is required to generate a recipe"))

        constraints = derive_constraints(request)
        stage = GenerationStage.CONSTRAINTS_DERIVED
        self._log_stage(stage, request, category=constraints.style.category.value)

        prompt = compose_prompt(request, constraints)
        stage = GenerationStage.PROMPT_COMPOSED
        self._log_stage(stage, request)

        stage = GenerationStage.COMPLETION_PENDING
        self._log_stage(stage, request)
        try:
            raw = await self._complete(prompt.system_text, prompt.user_text)
        except RecipeEngineError as exc:
            return self._fail(stage, request, exc)

        stage = GenerationStage.DRAFT_RECEIVED
        try:
            draft = parse_draft(raw)
        except MalformedOutputError as exc:
            return self._fail(stage, request, exc)
        self._log_stage(stage, request)

        recipe = sanitize(draft, request, constraints)
        stage = GenerationStage.SANITIZED
        self._log_stage(stage, request, hops=len(recipe.hops), extras=len(recipe.extras))

        outcome = GenerationOutcome(stage=GenerationStage.DONE, recipe=recipe)
        self._persist(owner_id, request, recipe, outcome)

        self._log_stage(
            GenerationStage.DONE,
            request,
            saved=outcome.saved,
            recipe_id=outcome.recipe_id,
            limit_reached=outcome.limit_reached,
        )
        observability_tracker.record_generation("success")
        return outcome

    def _persist(
        self,
        owner_id: str,
        request: RecipeRequest,
        recipe: SanitizedRecipe,
        outcome: GenerationOutcome,
    ) -> None:
        if self.store is None:
            return

        document = {
            "beerStyle": request.beer_style,
            "engineVersion": self.engine_version,
            "request": request.model_dump(mode="json", by_alias=True),
            "recipe": recipe.model_dump(mode="json", by_alias=True),
        }
        try:
            if self.billing is not None and not self.billing.can_create_more(owner_id):
                raise LimitReachedError(f"Recipe limit reached for owner {owner_id}")
            outcome.recipe_id = self.store.save(owner_id, document)
            outcome.saved = True
        except LimitReachedError as exc:
            outcome.limit_reached = True
            logger.info(json.dumps({"event": "recipe_limit_reached", "owner_id": owner_id, "message": str(exc)}))
        except Exception:
            logger.exception(json.dumps({"event": "recipe_save_failed", "owner_id": owner_id}))
