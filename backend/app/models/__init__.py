from app.models.recipe_document import RecipeDocument
from app.models.subscription import Subscription

__all__ = [
    "RecipeDocument",
    "Subscription",
]
