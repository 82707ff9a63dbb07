"""
On-disk artwork cache keyed by the core's image keys.

resolve(key) returns a local JPEG path for a key, fetching it from the core
on first use.  Files are named after the key, so a cached file is reused
without asking the core again; clear_old() prunes files nobody has fetched
for a while.
"""

import asyncio
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO

import aiohttp
from PIL import Image

from .config import cfg

log = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".cache", "roonpipe", "images")
DEFAULT_SIZE = 300
FETCH_TIMEOUT = 10

# Shared thread pool for CPU-bound image processing
_image_executor = ThreadPoolExecutor(max_workers=2)


def _process_image(image_bytes: bytes, size: int) -> bytes | None:
    """Fit raw image bytes inside size×size and re-encode as JPEG."""
    try:
        image = Image.open(BytesIO(image_bytes))
        if image.mode in ("RGBA", "LA", "P"):
            image = image.convert("RGB")
        image.thumbnail((size, size))
        buf = BytesIO()
        image.save(buf, "JPEG", quality=85)
        return buf.getvalue()
    except Exception as e:
        log.warning("Error processing image: %s", e)
        return None


class ImageCache:
    """Resolves image keys to local file paths.

    *url_for* maps an image key to a fetchable URL (CoreLink.image_url in the
    daemon).
    """

    def __init__(self, url_for, cache_dir: str | None = None, size: int | None = None):
        self._url_for = url_for
        self.cache_dir = cache_dir or cfg("images", "cache_dir", default=None) or DEFAULT_CACHE_DIR
        self.size = size or cfg("images", "size", default=DEFAULT_SIZE)
        self._session: aiohttp.ClientSession | None = None

    def path_for(self, image_key: str) -> str:
        return os.path.join(self.cache_dir, f"{image_key}.jpg")

    def is_cached(self, image_key: str) -> bool:
        return os.path.exists(self.path_for(image_key))

    async def resolve(self, image_key: str | None) -> str | None:
        """Return the cached path for *image_key*, fetching it if needed."""
        if not image_key:
            return None
        path = self.path_for(image_key)
        if os.path.exists(path):
            return path

        url = self._url_for(image_key, self.size)
        if not url:
            return None
        try:
            if self._session is None:
                self._session = aiohttp.ClientSession()
            async with self._session.get(
                url, timeout=aiohttp.ClientTimeout(total=FETCH_TIMEOUT)
            ) as resp:
                resp.raise_for_status()
                image_bytes = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning("Error fetching image %s: %s", image_key, e)
            return None

        if not image_bytes:
            log.warning("Image %s returned 0 bytes", image_key)
            return None

        loop = asyncio.get_running_loop()
        jpeg = await loop.run_in_executor(_image_executor, _process_image, image_bytes, self.size)
        if jpeg is None:
            return None

        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            with open(path, "wb") as f:
                f.write(jpeg)
        except OSError as e:
            log.warning("Could not write %s: %s", path, e)
            return None
        log.debug("Cached image %s", image_key)
        return path

    def clear_old(self, max_age_days: int | None = None) -> int:
        """Delete cached files older than *max_age_days*.  Returns count removed."""
        if max_age_days is None:
            max_age_days = cfg("images", "max_age_days", default=30)
        cutoff = time.time() - max_age_days * 24 * 60 * 60
        removed = 0
        try:
            entries = os.listdir(self.cache_dir)
        except FileNotFoundError:
            return 0
        for name in entries:
            file_path = os.path.join(self.cache_dir, name)
            try:
                if os.path.getmtime(file_path) < cutoff:
                    os.unlink(file_path)
                    removed += 1
            except OSError as e:
                log.debug("Could not prune %s: %s", file_path, e)
        if removed:
            log.info("Pruned %d cached images", removed)
        return removed

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None
