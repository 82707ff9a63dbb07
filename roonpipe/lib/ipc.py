# RoonPipe
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Local IPC between the daemon and detached clients (CLI, launchers).

Framing is one JSON object per line over a Unix stream socket.  A connection
carries exactly one request and one reply; the server closes it after
replying.

  {"command": "search", "query": "..."}
      → {"error": null, "results": [...]}
  {"command": "play", "item_key", "session_key", "category_key",
   "item_index", "action_title"}
      → {"error": null, "success": true}
  anything else        → {"error": "Unknown command"}
  not a JSON object    → {"error": "Invalid request format"}

The socket file doubles as the single-instance lock: if something answers on
it, another daemon is running.
"""

import asyncio
import json
import logging
import os

from .config import cfg
from .errors import IPCError, RoonPipeError
from .models import SearchResult

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "/tmp/roonpipe.sock"
PROBE_TIMEOUT = 1.0
# Longest request line the server accepts
MAX_REQUEST_BYTES = 1024 * 1024


def socket_path() -> str:
    return cfg("ipc", "socket_path", default=DEFAULT_SOCKET_PATH)


async def is_instance_running(path: str | None = None, timeout: float = PROBE_TIMEOUT) -> bool:
    """True if a live listener accepts a connection on *path* within *timeout*."""
    path = path or socket_path()
    if not os.path.exists(path):
        return False
    try:
        _, writer = await asyncio.wait_for(asyncio.open_unix_connection(path), timeout)
    except (OSError, asyncio.TimeoutError) as e:
        logger.debug("Stale socket at %s: %s", path, e)
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


class IPCServer:
    """Serves search/play requests from local clients.

    ``search(query)`` must return a list of SearchResult; ``play(item_key,
    session_key, category_key, item_index, action_title)`` returns nothing and
    raises on failure.
    """

    def __init__(self, search, play, path: str | None = None):
        self._search = search
        self._play = play
        self.path = path or socket_path()
        self._server: asyncio.AbstractServer | None = None

    async def start(self):
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        self._server = await asyncio.start_unix_server(
            self._handle_client, path=self.path, limit=MAX_REQUEST_BYTES)
        os.chmod(self.path, 0o666)
        logger.info("Unix socket server listening on %s", self.path)

    async def stop(self):
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        logger.info("Socket server stopped")

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        logger.debug("Client connected to socket")
        try:
            try:
                line = await reader.readline()
            except ValueError as e:
                logger.warning("Request larger than %d bytes rejected: %s", MAX_REQUEST_BYTES, e)
                response = {"error": "Invalid request format"}
            else:
                if not line:
                    # connection opened by is_instance_running()
                    return
                response = await self.dispatch(line)
            writer.write(json.dumps(response).encode() + b"\n")
            await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError) as e:
            logger.warning("Client connection error: %s", e)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def dispatch(self, raw: bytes) -> dict:
        """Turn one raw request into one response dict.  Never raises."""
        try:
            request = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Invalid request on socket: %r", raw[:200])
            return {"error": "Invalid request format"}
        if not isinstance(request, dict):
            return {"error": "Invalid request format"}

        command = request.get("command")
        logger.info("Received request: %s", command)

        if command == "search":
            try:
                results = await self._search(request.get("query") or "")
                return {"error": None, "results": [r.to_dict() for r in results]}
            except Exception as e:
                self._log_failure("search", e)
                return {"error": str(e), "results": None}

        if command == "play":
            try:
                await self._play(
                    request.get("item_key"),
                    request.get("session_key") or "",
                    request["category_key"],
                    int(request["item_index"]),
                    request["action_title"],
                )
                return {"error": None, "success": True}
            except KeyError as e:
                logger.warning("play request missing %s", e)
                return {"error": f"Missing field: {e.args[0]}", "success": False}
            except Exception as e:
                self._log_failure("play", e)
                return {"error": str(e), "success": False}

        return {"error": "Unknown command"}

    @staticmethod
    def _log_failure(command: str, error: Exception):
        if isinstance(error, RoonPipeError):
            logger.warning("%s failed: %s", command, error)
        else:
            logger.error("%s failed unexpectedly: %r", command, error)


class IPCClient:
    """Talks to a running daemon.  Every call opens its own connection."""

    def __init__(self, path: str | None = None):
        self.path = path or socket_path()

    async def request(self, payload: dict) -> dict:
        try:
            reader, writer = await asyncio.open_unix_connection(self.path)
        except OSError as e:
            raise IPCError(f"Cannot connect to RoonPipe daemon. Is it running?\n{e}") from e
        try:
            writer.write(json.dumps(payload).encode() + b"\n")
            await writer.drain()
            data = await reader.read()
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

        try:
            response = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise IPCError("Failed to parse response") from e
        if not isinstance(response, dict):
            raise IPCError("Failed to parse response")
        if response.get("error"):
            raise IPCError(response["error"])
        return response

    async def search(self, query: str) -> list[SearchResult]:
        response = await self.request({"command": "search", "query": query})
        return [SearchResult.from_dict(r) for r in response.get("results") or []]

    async def play(self, result: SearchResult, action_title: str) -> bool:
        response = await self.request({
            "command": "play",
            "item_key": result.item_key,
            "session_key": result.session_key,
            "category_key": result.category_key,
            "item_index": result.index,
            "action_title": action_title,
        })
        return bool(response.get("success"))
