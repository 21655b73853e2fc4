from collections.abc import Callable
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.recipe_document import RecipeDocument


class SqlRecipeStore:
    """Document-style recipe persistence, one row per generated recipe."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def save(self, owner_id: str, document: dict[str, Any]) -> int:
        recipe = document.get("recipe") or {}
        row = RecipeDocument(
            owner_id=owner_id,
            beer_style=str(document.get("beerStyle", ""))[:120],
            name=str(recipe.get("name") or "Untitled Recipe")[:200],
            engine_version=str(document.get("engineVersion", "")),
            request_json=document.get("request") or {},
            recipe_json=recipe,
        )
        with self.session_factory() as db:
            db.add(row)
            db.commit()
            db.refresh(row)
            return row.id

    def load(self, owner_id: str, recipe_id: int) -> RecipeDocument | None:
        with self.session_factory() as db:
            return (
                db.query(RecipeDocument)
                .filter(
                    RecipeDocument.id == recipe_id,
                    RecipeDocument.owner_id == owner_id,
                )
                .first()
            )

    def list_for_owner(self, owner_id: str) -> list[RecipeDocument]:
        with self.session_factory() as db:
            return (
                db.query(RecipeDocument)
                .filter(RecipeDocument.owner_id == owner_id)
                .order_by(RecipeDocument.created_at.desc(), RecipeDocument.id.desc())
                .all()
            )

    def count_for_owner(self, owner_id: str) -> int:
        with self.session_factory() as db:
            count = db.query(func.count(RecipeDocument.id)).filter(RecipeDocument.owner_id == owner_id).scalar()
            return int(count or 0)
