"""
Now-playing parsing and desktop notifications.

The core describes the current track in a three-line block:
line1 = title, line2 = artists joined with " / ", line3 = album.
"""

import logging
import subprocess

log = logging.getLogger(__name__)

NOTIFY_EXPIRE_MS = 5000


def parse_now_playing(now_playing: dict) -> dict:
    """Return ``{"title", "artists", "album"}`` from a zone's now_playing block.

    Only the first artist is kept; the core packs every credited artist into
    one string.
    """
    three_line = now_playing.get("three_line") or {}
    title = three_line.get("line1") or "Unknown Track"
    line2 = three_line.get("line2")
    artists = [line2.split(" / ")[0].strip()] if line2 else ["Unknown Artist"]
    album = three_line.get("line3") or ""
    return {"title": title, "artists": artists, "album": album}


class TrackNotifier:
    """Zone listener that pops a notification when playback starts or the track changes.

    The first zone seen after startup is recorded but not announced, so a
    daemon restart in the middle of a song stays quiet.
    """

    def __init__(self, image_cache=None, app_name: str = "Roon"):
        self._image_cache = image_cache
        self.app_name = app_name
        self.enabled = True
        self._first_update = True
        self._last_track: str | None = None
        self._last_state: str | None = None

    async def __call__(self, zone):
        if not self.enabled or zone is None or not zone.now_playing:
            return

        now_playing = zone.now_playing
        track_id = now_playing.get("image_key") or ""
        is_playing = zone.state == "playing"

        if self._first_update:
            self._first_update = False
            self._last_track = track_id
            self._last_state = zone.state
            return

        playback_started = is_playing and self._last_state != "playing"
        track_changed = track_id != self._last_track
        if not (playback_started or (track_changed and is_playing)):
            self._last_state = zone.state
            return

        # Recorded before the artwork await: an overlapping update for the
        # same track must see it as already announced.
        self._last_track = track_id
        self._last_state = zone.state

        data = parse_now_playing(now_playing)
        artwork_path = None
        if track_id and self._image_cache is not None:
            try:
                artwork_path = await self._image_cache.resolve(track_id)
            except Exception as e:
                log.debug("No artwork for notification: %s", e)

        self.send(data, artwork_path)

    def send(self, data: dict, artwork_path: str | None = None):
        body = ", ".join(data["artists"])
        if data["album"]:
            body = f"{body} • {data['album']}"
        cmd = [
            "notify-send",
            f"--app-name={self.app_name}",
            "--icon=audio-x-generic",
            "--replace-id=1",
            "--hint=int:transient:1",
        ]
        if artwork_path:
            cmd.append(f"--hint=string:image-path:{artwork_path}")
        cmd += [f"--expire-time={NOTIFY_EXPIRE_MS}", data["title"], body]

        log.info("Showing notification for track: %s", data["title"])
        try:
            subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except FileNotFoundError:
            log.warning("notify-send not found, desktop notifications disabled")
            self.enabled = False
        except OSError as e:
            log.error("Failed to show notification: %s", e)
