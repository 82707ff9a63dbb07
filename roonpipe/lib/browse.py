# RoonPipe
# SPDX-License-Identifier: GPL-3.0-or-later

"""
BrowseLoadClient: awaitable wrapper around the core's browse service.

The Roon browse protocol is two calls: ``browse`` enters a node (and, for an
action node, activates it), ``load`` pages through the children of the node
last browsed.  The service object handed in (``roonapi.RoonApi`` in
production, an in-memory tree in tests) is blocking, so every call is pushed
onto a small thread pool to keep the event loop free.

The client keeps no state of its own.  Session-key rotation is surfaced to
the caller, who decides which key the next call uses.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from .errors import RemoteError
from .models import BrowseContext, MenuNode

logger = logging.getLogger(__name__)

# Thread pool for blocking browse service calls
executor = ThreadPoolExecutor(max_workers=2)

# Used when the core omits (or zeroes) the list count
DEFAULT_LOAD_COUNT = 50


class BrowseList:
    """The ``list`` block of a browse response."""

    def __init__(self, count: int, session_key: str | None = None, title: str = ""):
        self.count = count
        self.session_key = session_key  # set only when the core rotated it
        self.title = title

    def __repr__(self):
        return f"BrowseList(count={self.count}, session_key={self.session_key!r})"


class BrowseLoadClient:
    """Turns blocking browse/load calls into coroutines raising RemoteError."""

    def __init__(self, service):
        self._service = service

    async def _call(self, name: str, opts: dict) -> dict:
        method = getattr(self._service, name)
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(executor, method, opts)
        except Exception as e:
            raise RemoteError(f"{name} failed: {e}", cause=e) from e
        if result is None:
            raise RemoteError(f"{name} returned no response")
        if result.get("is_error"):
            raise RemoteError(f"{name} rejected: {result.get('message', 'unknown error')}", cause=result)
        return result

    async def browse(self, ctx: BrowseContext, **extra) -> BrowseList:
        """Enter a node.  ``extra`` carries ``item_key`` and/or ``input``."""
        opts = ctx.to_opts()
        opts.update({k: v for k, v in extra.items() if v is not None})
        logger.debug("browse %s", opts)
        result = await self._call("browse_browse", opts)
        lst = result.get("list") or {}
        rotated = lst.get("multi_session_key")
        return BrowseList(
            count=int(lst.get("count") or 0),
            session_key=rotated if rotated and rotated != ctx.session_key else None,
            title=lst.get("title", ""),
        )

    async def load(self, ctx: BrowseContext, offset: int = 0, count: int = DEFAULT_LOAD_COUNT,
                   **extra) -> list[MenuNode]:
        """Fetch ``count`` children of the node last browsed, from ``offset``."""
        opts = ctx.to_opts()
        opts.update({k: v for k, v in extra.items() if v is not None})
        opts["offset"] = offset
        opts["count"] = count
        logger.debug("load %s", opts)
        result = await self._call("browse_load", opts)
        return [MenuNode.from_dict(item) for item in result.get("items") or []]
