"""Plant search — query validation, catalog call, result capping."""

from __future__ import annotations

import logging
from typing import List

from pydantic import BaseModel, Field

from app import catalog
from app.config import get_settings
from core.errors import NetworkError, ValidationError
from core.models import NotificationKind, Plant
from core.notifications import NotificationService

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No plants found for this search."
LOAD_FAILED_MESSAGE = "Could not load plants. Try again later."


class SearchResult(BaseModel):
    """What the home page renders for one submitted query."""

    query: str
    plants: List[Plant] = Field(default_factory=list)
    failed: bool = False

    @property
    def no_results(self) -> bool:
        return not self.failed and not self.plants


def validate_query(raw: str | None) -> str:
    """Return the trimmed query; an empty one never reaches the catalog."""
    query = (raw or "").strip()
    if not query:
        raise ValidationError("Enter a plant name to search.")
    return query


async def run_search(raw: str | None, notifier: NotificationService) -> SearchResult:
    """Fetch a fresh result list for *raw*, replacing any earlier one.

    Raises ``ValidationError`` for an empty query.  Catalog failures are
    reported through *notifier* and yield an empty, ``failed`` result.
    """
    query = validate_query(raw)
    limit = get_settings().search_result_limit

    try:
        plants = await catalog.search_plants(query)
    except NetworkError as exc:
        logger.error("Plant search for %r failed: %s", query, exc)
        notifier.show(LOAD_FAILED_MESSAGE, NotificationKind.ERROR)
        return SearchResult(query=query, failed=True)

    if not plants:
        notifier.show(NO_RESULTS_MESSAGE, NotificationKind.WARNING)

    return SearchResult(query=query, plants=plants[:limit])
