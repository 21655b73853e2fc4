from collections.abc import Callable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.subscription import Subscription
from app.services.recipe_store import SqlRecipeStore


class SubscriptionGate:
    """Free-tier owners may keep up to ``free_limit`` recipes; pro owners are unlimited."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        store: SqlRecipeStore,
        free_limit: int | None = None,
    ):
        self._session_factory = session_factory
        self._store = store
        self.free_limit = settings.free_recipe_limit if free_limit is None else free_limit

    def is_pro(self, owner_id: str) -> bool:
        with self._session_factory() as db:
            subscription = db.query(Subscription).filter(Subscription.owner_id == owner_id).first()
            return bool(subscription and subscription.is_pro)

    def can_create_more(self, owner_id: str) -> bool:
        if self.is_pro(owner_id):
            return True
        return self._store.count_for_owner(owner_id) < self.free_limit

