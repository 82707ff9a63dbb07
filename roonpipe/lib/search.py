# RoonPipe
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SearchSession: free-text query to typed, actionable results.

One search mints its own browse session, walks the category list the core
returns for the query, takes the first few items of each category and asks
ActionDiscoverer what can be done with every one of them.  Results keep the
core's category order and item order; nothing is re-ranked.

Each result carries its position inside its category.  That index, not the
item key, is what ActionExecutor uses later to find the item again.
"""

import asyncio
import logging
import time

from .actions import ActionDiscoverer
from .browse import DEFAULT_LOAD_COUNT
from .config import cfg
from .models import BrowseContext, SearchResult

logger = logging.getLogger(__name__)

MAX_RESULTS_PER_CATEGORY = 5

# Ordered (substring, type) rules applied to lower-cased category titles.
# These mirror the category names the core uses in English; a renamed or
# localised category falls through to FALLBACK_TYPE.
CATEGORY_TYPE_RULES = (
    ("artist", "artist"),
    ("album", "album"),
    ("composer", "composer"),
    ("playlist", "playlist"),
    ("track", "track"),
    ("work", "work"),
)
FALLBACK_TYPE = "track"


def infer_type(category_title: str) -> str:
    """Map a category title such as "Albums" to a result type."""
    lowered = category_title.lower()
    for needle, result_type in CATEGORY_TYPE_RULES:
        if needle in lowered:
            return result_type
    return FALLBACK_TYPE


def new_session_key() -> str:
    return f"search_{int(time.time() * 1000)}"


class SearchSession:
    """Runs searches against the zone currently tracked in *state*."""

    def __init__(self, state, image_cache=None, max_results_per_category: int | None = None):
        self._state = state
        self._image_cache = image_cache
        if max_results_per_category is None:
            max_results_per_category = cfg(
                "search", "max_results_per_category", default=MAX_RESULTS_PER_CATEGORY)
        try:
            limit = int(max_results_per_category)
        except (TypeError, ValueError):
            limit = 0
        if limit < 1:
            logger.warning("Ignoring max_results_per_category=%r, using %d",
                           max_results_per_category, MAX_RESULTS_PER_CATEGORY)
            limit = MAX_RESULTS_PER_CATEGORY
        self.max_results_per_category = limit

    async def search(self, query: str) -> list[SearchResult]:
        client, zone = self._state.require()
        discoverer = ActionDiscoverer(client)
        ctx = BrowseContext(session_key=new_session_key(), zone_id=zone.zone_id)
        logger.info("Searching for '%s' in zone %s", query, zone.display_name or zone.zone_id)

        listing = await client.browse(ctx, input=query)
        ctx = ctx.rotated(listing.session_key)
        categories = await client.load(ctx, input=query, offset=0,
                                       count=listing.count or DEFAULT_LOAD_COUNT)

        results: list[SearchResult] = []
        image_keys: dict[int, str] = {}

        for category in categories:
            if not category.title:
                continue
            result_type = infer_type(category.title)

            cat_listing = await client.browse(ctx, input=query, item_key=category.item_key)
            cat_ctx = ctx.rotated(cat_listing.session_key)
            items = await client.load(
                cat_ctx, input=query, item_key=category.item_key, offset=0,
                count=min(cat_listing.count or DEFAULT_LOAD_COUNT, self.max_results_per_category))
            logger.debug("Category '%s' (%s): %d of %d items",
                         category.title, result_type, len(items), cat_listing.count)

            for index, item in enumerate(items):
                actions = await discoverer.discover(
                    item.item_key, cat_ctx.session_key, zone.zone_id)
                if item.image_key:
                    image_keys[len(results)] = item.image_key
                results.append(SearchResult(
                    title=item.title or f"Unknown {result_type.capitalize()}",
                    subtitle=item.subtitle.split(", ")[0] if item.subtitle else "",
                    item_key=item.item_key,
                    category_key=category.item_key,
                    index=index,
                    type=result_type,
                    actions=actions,
                    hint=item.hint,
                    session_key=cat_ctx.session_key,
                ))

        if image_keys and self._image_cache is not None:
            paths = await self._resolve_images(set(image_keys.values()))
            for position, key in image_keys.items():
                results[position].image = paths.get(key)

        logger.info("Search '%s' returned %d results", query, len(results))
        return results

    async def _resolve_images(self, keys: set[str]) -> dict[str, str | None]:
        """Resolve each distinct image key once, concurrently."""
        ordered = sorted(keys)
        resolved = await asyncio.gather(
            *(self._image_cache.resolve(key) for key in ordered),
            return_exceptions=True)
        paths = {}
        for key, path in zip(ordered, resolved):
            if isinstance(path, BaseException):
                logger.debug("Image %s unavailable: %s", key, path)
                path = None
            paths[key] = path
        return paths
