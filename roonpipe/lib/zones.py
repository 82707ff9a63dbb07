# RoonPipe
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Zone tracking.

The core pushes zone state as deltas: one ``Subscribed`` snapshot, then
``Changed`` messages carrying only the zones (or seek positions) that moved.
RoonPipe only ever cares about one zone at a time: whichever is playing, or
failing that, the one it was already following. Everything that needs
a playback target reads it from the shared State.

State is created once by the daemon and handed to every component.  Only
ZoneStateSynchronizer assigns ``state.zone``; everything else reads it.
"""

import asyncio
import inspect
import logging

from .browse import BrowseLoadClient
from .errors import PreconditionFailed
from .models import SeekUpdate, Zone

logger = logging.getLogger(__name__)

# Core reports seek in seconds; desktop consumers (MPRIS) want microseconds.
SEEK_SCALE = 1_000_000


class State:
    """The remote connection handle plus the zone currently being followed."""

    def __init__(self, link=None):
        self.link = link              # browse service (CoreLink) once paired
        self.zone: Zone | None = None

    @property
    def paired(self) -> bool:
        return self.link is not None

    def require(self) -> tuple[BrowseLoadClient, Zone]:
        """Return a browse client and the target zone, or raise PreconditionFailed."""
        if self.link is None:
            raise PreconditionFailed("Roon Core not connected")
        zone = self.zone
        if zone is None:
            raise PreconditionFailed("No active zone")
        return BrowseLoadClient(self.link), zone


class ZoneStateSynchronizer:
    """Folds the zone push stream into ``state.zone`` and notifies listeners."""

    def __init__(self, state: State):
        self._state = state
        self._zone_listeners = []
        self._seek_listeners = []

    def subscribe(self, on_zone_changed=None, on_seek_changed=None):
        """Register callbacks.

        on_zone_changed(zone: Zone | None) and on_seek_changed(position_us)
        may be plain functions or coroutine functions.
        """
        if on_zone_changed:
            self._zone_listeners.append(on_zone_changed)
        if on_seek_changed:
            self._seek_listeners.append(on_seek_changed)

    # ── Push events ──

    def handle(self, cmd: str, data: dict):
        """Dispatch a raw subscription message by command name."""
        if cmd == "Subscribed":
            self.on_subscribed(data.get("zones") or [])
        elif cmd == "Changed":
            self.on_changed(
                zones_changed=data.get("zones_changed"),
                zones_seek_changed=data.get("zones_seek_changed"))
        else:
            logger.debug("Ignoring zone message %s", cmd)

    def on_subscribed(self, zones: list[dict]):
        parsed = [Zone.from_dict(z) for z in zones]
        tracked = next((z for z in parsed if z.is_playing), None)
        if tracked is None and parsed:
            tracked = parsed[0]
        self._set_zone(tracked)
        logger.info("Subscribed to %d zones, tracking %s", len(parsed), self._describe(tracked))
        self._notify(self._zone_listeners, tracked)

    def on_changed(self, zones_changed: list[dict] | None = None,
                   zones_seek_changed: list[dict] | None = None):
        if zones_changed is not None:
            changed = [Zone.from_dict(z) for z in zones_changed]
            current = self._state.zone
            playing = next((z for z in changed if z.is_playing), None)
            if playing is not None:
                tracked = playing
            elif current is not None:
                tracked = next((z for z in changed if z.zone_id == current.zone_id), current)
            else:
                tracked = current
            if tracked is not current:
                if current is None or tracked.zone_id != current.zone_id:
                    logger.info("Tracking zone %s", self._describe(tracked))
                self._set_zone(tracked)
            self._notify(self._zone_listeners, tracked)

        if zones_seek_changed is not None:
            current = self._state.zone
            if current is None:
                return
            update = next(
                (SeekUpdate.from_dict(s) for s in zones_seek_changed
                 if s.get("zone_id") == current.zone_id),
                None)
            if update is not None and current.now_playing:
                current.now_playing["seek_position"] = update.seek_position
                self._notify(self._seek_listeners, update.seek_position * SEEK_SCALE)

    def on_unpaired(self):
        logger.info("Core unpaired, dropping tracked zone")
        self._set_zone(None)
        self._notify(self._zone_listeners, None)

    # ── Helpers ──

    def _set_zone(self, zone: Zone | None):
        self._state.zone = zone

    @staticmethod
    def _describe(zone: Zone | None) -> str:
        if zone is None:
            return "none"
        return f"{zone.display_name or zone.zone_id} ({zone.state})"

    @staticmethod
    def _notify(listeners, value):
        for listener in listeners:
            try:
                result = listener(value)
                if inspect.isawaitable(result):
                    asyncio.ensure_future(result)
            except Exception as e:
                logger.error("Zone listener %r failed: %s", listener, e)
