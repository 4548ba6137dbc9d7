"""The user's garden — favorites kept in the profile document ``users/{uid}``.

Writes go to the document store first; the local list only mirrors an array
after the store confirmed it, so a failed write leaves it untouched.
"""

from __future__ import annotations

import logging

from app.documents import DocumentStore
from core.errors import BloomlyError, NotFoundError
from core.models import FavoritePlant, NotificationKind, Plant, User
from core.notifications import NotificationService

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
FAVORITES_FIELD = "favorites"


class GardenService:
    """Favorites of one signed-in user (or of nobody)."""

    def __init__(self, store: DocumentStore, user: User | None, notifier: NotificationService):
        self.store = store
        self.user = user
        self.notifier = notifier
        self.favorites: list[FavoritePlant] = []

    async def add_favorite(self, plant: Plant) -> bool:
        """Append *plant* to the user's favorites, creating the profile if needed."""
        if self.user is None:
            self.notifier.show("Please log in to add plants to your garden.", NotificationKind.ERROR)
            return False

        favorite = FavoritePlant.from_plant(plant)
        try:
            await self.store.upsert_append(
                USERS_COLLECTION, self.user.uid, FAVORITES_FIELD, favorite.to_document()
            )
        except BloomlyError as exc:
            logger.error("Saving plant %s for %s failed: %s", plant.id, self.user.uid, exc)
            self.notifier.show("Could not add the plant to your garden.", NotificationKind.ERROR)
            return False

        self.notifier.show(f"{plant.label} added to your garden!", NotificationKind.SUCCESS)
        return True

    async def load(self) -> list[FavoritePlant]:
        if self.user is None:
            self.favorites = []
            return self.favorites

        try:
            data = await self.store.read_document(USERS_COLLECTION, self.user.uid)
        except BloomlyError as exc:
            logger.error("Loading garden for %s failed: %s", self.user.uid, exc)
            self.notifier.show("Unable to load your garden.", NotificationKind.ERROR)
            return self.favorites

        favorites: list[FavoritePlant] = []
        for item in (data or {}).get(FAVORITES_FIELD) or []:
            try:
                favorites.append(FavoritePlant.model_validate(item))
            except ValueError:
                logger.warning("Skipping malformed favorite for %s: %r", self.user.uid, item)
        self.favorites = favorites
        return self.favorites

    def _require_favorite(self, plant_id: int) -> None:
        if not any(fav.id == plant_id for fav in self.favorites):
            raise NotFoundError(f"plant {plant_id} is not in the garden")

    async def rename(self, plant_id: int, new_name: str) -> bool:
        """Raises NotFoundError when no favorite has *plant_id*."""
        self._require_favorite(plant_id)
        updated = [
            fav.model_copy(update={"custom_name": new_name}) if fav.id == plant_id else fav
            for fav in self.favorites
        ]
        return await self._write(updated, "Plant name updated!", "Failed to update plant name.")

    async def remove(self, plant_id: int) -> bool:
        self._require_favorite(plant_id)
        updated = [fav for fav in self.favorites if fav.id != plant_id]
        return await self._write(updated, "Plant removed from your garden!", "Failed to remove the plant.")

    async def _write(self, updated: list[FavoritePlant], success: str, failure: str) -> bool:
        if self.user is None:
            return False
        try:
            await self.store.update_document(
                USERS_COLLECTION,
                self.user.uid,
                {FAVORITES_FIELD: [fav.to_document() for fav in updated]},
            )
        except BloomlyError as exc:
            logger.error("Writing garden for %s failed: %s", self.user.uid, exc)
            self.notifier.show(failure, NotificationKind.ERROR)
            return False

        self.favorites = updated
        self.notifier.show(success, NotificationKind.SUCCESS)
        return True
