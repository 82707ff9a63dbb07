# RoonPipe
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Action discovery and execution over the browse tree.

The core never marks a node as "the action menu"; it only hints at shape.
Both the discoverer and the executor walk a result's subtree with the same
rules, so whatever the discoverer offered is exactly what the executor can
reach:

  action                 → an invocable leaf, reported by title
  action_list / header   → descend one level
  list (depth 0, alone)  → descend; some items wrap their menu in one list
  anything else          → ignored

At depth 1, once an action_list has produced actions, remaining siblings are
skipped.  For an album that is the difference between reading the album's
own Play/Queue menu and expanding every track underneath it.

Depth is bounded at MAX_DEPTH regardless of what the tree looks like.
"""

import logging
from contextlib import aclosing

from .browse import DEFAULT_LOAD_COUNT, BrowseLoadClient
from .errors import NotFound, RemoteError
from .models import (
    HINT_ACTION,
    HINT_ACTION_LIST,
    HINT_HEADER,
    HINT_LIST,
    Action,
    BrowseContext,
    MenuNode,
)

logger = logging.getLogger(__name__)

MAX_DEPTH = 5


async def walk_actions(client: BrowseLoadClient, item_key: str, ctx: BrowseContext,
                       depth: int = 0):
    """Yield ``(node, ctx)`` for every action node reachable from *item_key*.

    ``ctx`` is the context the action was listed under (its session key may
    have been rotated on the way down) and is the one to browse it with.
    """
    if depth > MAX_DEPTH:
        logger.debug("Depth limit reached below %s", item_key)
        return

    listing = await client.browse(ctx, item_key=item_key)
    ctx = ctx.rotated(listing.session_key)
    children = await client.load(
        ctx, item_key=item_key, offset=0,
        count=listing.count or DEFAULT_LOAD_COUNT)
    logger.debug("walk depth=%d key=%s session=%s children=%d",
                 depth, item_key, ctx.session_key, len(children))

    found = 0
    for child in children:
        if child.hint == HINT_ACTION:
            found += 1
            yield child, ctx
        elif child.hint in (HINT_ACTION_LIST, HINT_HEADER):
            async for hit in walk_actions(client, child.item_key, ctx, depth + 1):
                found += 1
                yield hit
            if depth == 1 and child.hint == HINT_ACTION_LIST and found:
                break
        elif child.hint == HINT_LIST and depth == 0 and len(children) == 1:
            async for hit in walk_actions(client, child.item_key, ctx, depth + 1):
                found += 1
                yield hit


class ActionDiscoverer:
    """Collects the action titles offered beneath one browse node."""

    def __init__(self, client: BrowseLoadClient):
        self._client = client

    async def discover(self, item_key: str, session_key: str, zone_id: str,
                       depth: int = 0) -> list[Action]:
        ctx = BrowseContext(session_key=session_key, zone_id=zone_id)
        try:
            return [Action(node.title)
                    async for node, _ in walk_actions(self._client, item_key, ctx, depth)]
        except RemoteError as e:
            logger.debug("Action discovery failed for %s: %s", item_key, e)
            return []


class ActionExecutor:
    """Re-locates a search result by position and activates one of its actions."""

    def __init__(self, state):
        self._state = state

    async def execute(self, item_key: str | None, session_key: str, category_key: str,
                      item_index: int, action_title: str) -> None:
        client, zone = self._state.require()
        ctx = BrowseContext(session_key=session_key, zone_id=zone.zone_id)
        logger.info("Executing '%s' on item %d of category %s",
                    action_title, item_index, category_key)

        # Keys handed out at search time are not trusted; re-read the slot.
        listing = await client.browse(ctx, item_key=category_key)
        ctx = ctx.rotated(listing.session_key)
        items = await client.load(ctx, item_key=category_key, offset=item_index, count=1)
        if not items or not items[0].item_key:
            raise NotFound(f"Item not found at index {item_index}")
        fresh_key = items[0].item_key
        if fresh_key != item_key:
            logger.debug("Item key refreshed: %s -> %s", item_key, fresh_key)

        actions = await ActionDiscoverer(client).discover(
            fresh_key, ctx.session_key, zone.zone_id)
        logger.debug("Live actions: %s", ", ".join(a.title for a in actions))
        if not any(a.title == action_title for a in actions):
            raise NotFound(f"Action '{action_title}' not available")

        target = await self._locate(client, fresh_key, ctx, action_title)
        if target is None:
            raise NotFound(f"Could not find action '{action_title}' to execute")

        node, node_ctx = target
        logger.info("Activating '%s' (%s)", node.title, node.item_key)
        await client.browse(node_ctx, item_key=node.item_key)

    @staticmethod
    async def _locate(client: BrowseLoadClient, item_key: str, ctx: BrowseContext,
                      action_title: str) -> tuple[MenuNode, BrowseContext] | None:
        async with aclosing(walk_actions(client, item_key, ctx)) as walk:
            async for node, node_ctx in walk:
                if node.title == action_title:
                    return node, node_ctx
        return None
