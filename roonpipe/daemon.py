#!/usr/bin/env python3
# RoonPipe
# SPDX-License-Identifier: GPL-3.0-or-later

"""
RoonPipe daemon (roonpipe)

Pairs with a Roon Core, follows the active zone, shows a desktop
notification when a new track starts, and answers search/play requests from
local clients on a Unix socket.

Only one daemon may run per socket path; a second one exits with status 1.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

from roonpipe.core import CoreLink
from roonpipe.lib.actions import ActionExecutor
from roonpipe.lib.config import cfg
from roonpipe.lib.image_cache import ImageCache
from roonpipe.lib.ipc import IPCServer, is_instance_running, socket_path
from roonpipe.lib.now_playing import TrackNotifier
from roonpipe.lib.search import SearchSession
from roonpipe.lib.zones import State, ZoneStateSynchronizer

logger = logging.getLogger("roonpipe")


class RoonPipeDaemon:
    """Wires the browse engine, zone tracking and IPC around one core connection."""

    def __init__(self, link_factory=CoreLink, socket: str | None = None):
        self.state = State()
        self.synchronizer = ZoneStateSynchronizer(self.state)
        self.link = link_factory(self.state, self.synchronizer)
        self.image_cache = ImageCache(self._image_url)
        self.searcher = SearchSession(self.state, self.image_cache)
        self.executor = ActionExecutor(self.state)
        self.ipc = IPCServer(self.search, self.play, path=socket)
        # One browse session on the core at a time; traversals must not interleave.
        self._remote_lock = asyncio.Lock()

    def _image_url(self, image_key: str, size: int):
        return self.link.image_url(image_key, size)

    async def search(self, query: str):
        async with self._remote_lock:
            return await self.searcher.search(query)

    async def play(self, item_key, session_key, category_key, item_index, action_title):
        async with self._remote_lock:
            await self.executor.execute(
                item_key, session_key, category_key, item_index, action_title)

    async def start(self):
        self.image_cache.clear_old()
        if cfg("notifications", "enabled", default=True):
            self.synchronizer.subscribe(on_zone_changed=TrackNotifier(self.image_cache))
        self.synchronizer.subscribe(on_zone_changed=self._log_zone)

        await self.link.connect()
        await self.ipc.start()
        logger.info("RoonPipe daemon ready")

    async def run(self):
        """Start, wait for SIGTERM/SIGINT, shut down.

        A signal that arrives while start() is still waiting on the core
        (discovery, or the user authorising the extension) abandons startup.
        """
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        start_task = asyncio.ensure_future(self.start())
        stop_task = asyncio.ensure_future(stop_event.wait())
        try:
            done, _ = await asyncio.wait(
                {start_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            if start_task in done:
                start_task.result()
                await stop_task
            else:
                logger.info("Stopped while waiting for the Roon Core")
        finally:
            for task in (start_task, stop_task):
                task.cancel()
            await asyncio.gather(start_task, stop_task, return_exceptions=True)
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
            await self.shutdown()

    async def shutdown(self):
        await self.ipc.stop()
        await self.link.close()
        await self.image_cache.close()

    @staticmethod
    def _log_zone(zone):
        if zone is None:
            return
        logger.debug("Zone %s is %s", zone.display_name or zone.zone_id, zone.state)


def _configure_logging(verbose: bool):
    level = "DEBUG" if verbose else str(cfg("logging", "level", default="INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main(argv=None):
    parser = argparse.ArgumentParser(prog="roonpipe", description=__doc__.strip().splitlines()[0])
    parser.add_argument("-v", "--verbose", action="store_true", help="log browse traffic")
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if hasattr(os, "getuid") and os.getuid() == 0:
        logger.error("Running as root. Please run the daemon as a regular user.")
        sys.exit(1)

    if asyncio.run(is_instance_running(socket_path())):
        logger.error("Another instance of RoonPipe is already running.")
        logger.error("Stop the existing instance first, or use roonpipe-cli to talk to it.")
        sys.exit(1)

    logger.info("Starting RoonPipe daemon")
    asyncio.run(RoonPipeDaemon().run())


if __name__ == "__main__":
    main()
