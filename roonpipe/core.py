# RoonPipe
# SPDX-License-Identifier: GPL-3.0-or-later

"""
CoreLink: the connection to a Roon Core.

Wraps ``roonapi.RoonApi``: discovery, pairing (the user enables the extension
once in Roon → Settings → Extensions; the token is kept for next time), the
blocking browse calls used by BrowseLoadClient, and the image endpoint.

roonapi delivers zone events on its own websocket thread.  CoreLink hops
them onto the event loop before they reach ZoneStateSynchronizer, so the
tracked zone is only ever written from the loop thread.
"""

import asyncio
import json
import logging
import os
import threading

from roonapi import RoonApi, RoonDiscovery

from . import __version__
from .lib.config import CONFIG_DIR, cfg

logger = logging.getLogger(__name__)

APPINFO = {
    "extension_id": "com.bluemancz.roonpipe",
    "display_name": "RoonPipe",
    "display_version": __version__,
    "publisher": "BlueManCZ",
    "email": "roonpipe@users.noreply.github.com",
    "website": "https://github.com/bluemancz/roonpipe",
}

DEFAULT_CORE_PORT = 9330
TOKEN_FILE = os.path.join(CONFIG_DIR, "token")


def _load_pairing() -> dict:
    try:
        with open(TOKEN_FILE) as f:
            return json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Ignoring unreadable pairing file %s: %s", TOKEN_FILE, e)
        return {}


def _save_pairing(token: str, core_id: str | None):
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(TOKEN_FILE, "w") as f:
        json.dump({"token": token, "core_id": core_id}, f)
    os.chmod(TOKEN_FILE, 0o600)


class CoreLink:
    """Owns the RoonApi instance and feeds zone events to the synchronizer."""

    def __init__(self, state, synchronizer):
        self._state = state
        self._sync = synchronizer
        self._api: RoonApi | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    # ── Lifecycle ──

    async def connect(self):
        """Discover and pair with the core.  Blocks until the extension is authorised."""
        self._loop = asyncio.get_running_loop()
        # Pairing may never finish; a daemon thread lets the process exit anyway.
        paired = self._loop.create_future()
        threading.Thread(target=self._pair_in_thread, args=(paired,),
                         name="roon-pairing", daemon=True).start()
        self._api = await paired
        logger.info("Core paired: %s", self._api.core_id)

        self._state.link = self
        self._sync.on_subscribed(list(self._api.zones.values()))
        self._api.register_state_callback(self._on_state_event)

    def _pair_in_thread(self, paired: asyncio.Future):
        try:
            api, error = self._connect_blocking(), None
        except Exception as e:
            api, error = None, e
        try:
            self._loop.call_soon_threadsafe(self._settle_pairing, paired, api, error)
        except RuntimeError:
            logger.debug("Event loop closed before pairing finished")

    @staticmethod
    def _settle_pairing(paired: asyncio.Future, api, error):
        if paired.done():
            logger.info("Pairing finished after startup was abandoned")
            return
        if error is not None:
            paired.set_exception(error)
        else:
            paired.set_result(api)

    def _connect_blocking(self) -> RoonApi:
        pairing = _load_pairing()
        host = cfg("core", "host")
        port = cfg("core", "port", default=DEFAULT_CORE_PORT)
        if not host:
            core_id = cfg("core", "id") or pairing.get("core_id")
            logger.info("Discovering Roon Core...")
            discovery = RoonDiscovery(core_id)
            try:
                host, port = discovery.first()
            finally:
                discovery.stop()
        logger.info("Connecting to Roon Core at %s:%s", host, port)
        if not pairing.get("token"):
            logger.info("Waiting for authorisation: enable RoonPipe in Roon → Settings → Extensions")

        api = RoonApi(APPINFO, pairing.get("token"), host, port, blocking_init=True)
        if api.token and api.token != pairing.get("token"):
            _save_pairing(api.token, api.core_id)
        return api

    async def close(self):
        if self._api is None:
            return
        api, self._api = self._api, None
        self._state.link = None
        self._sync.on_unpaired()
        await asyncio.get_running_loop().run_in_executor(None, api.stop)
        logger.info("Core connection closed")

    # ── Browse service (called from BrowseLoadClient's thread pool) ──

    def browse_browse(self, opts: dict) -> dict | None:
        return self._api.browse_browse(opts)

    def browse_load(self, opts: dict) -> dict | None:
        return self._api.browse_load(opts)

    def image_url(self, image_key: str, size: int) -> str | None:
        if self._api is None:
            return None
        return self._api.get_image(image_key, scale="fit", width=size, height=size)

    # ── Zone events (roonapi thread) ──

    def _on_state_event(self, event: str, changed_ids):
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._apply_event, event, list(changed_ids or []))

    def _apply_event(self, event: str, changed_ids: list):
        if self._api is None:
            return
        zones = self._api.zones
        if event in ("zones_changed", "zones_added"):
            changed = [zones[zid] for zid in changed_ids if zid in zones]
            self._sync.on_changed(zones_changed=changed)
        elif event == "zones_seek_changed":
            seeks = []
            for zid in changed_ids:
                zone = zones.get(zid)
                if zone is None:
                    continue
                position = zone.get("seek_position")
                if position is None:
                    position = (zone.get("now_playing") or {}).get("seek_position")
                seeks.append({"zone_id": zid, "seek_position": position})
            self._sync.on_changed(zones_seek_changed=seeks)
        elif event == "zones_removed":
            tracked = self._state.zone
            if tracked is not None and tracked.zone_id in changed_ids:
                logger.info("Tracked zone removed, re-selecting")
                self._sync.on_subscribed(list(zones.values()))
        else:
            logger.debug("Ignoring core event %s", event)
