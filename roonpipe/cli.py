#!/usr/bin/env python3
# RoonPipe
# SPDX-License-Identifier: GPL-3.0-or-later

"""
RoonPipe client (roonpipe-cli)

Talks to a running daemon over its Unix socket.

Usage:
    roonpipe-cli                        # interactive search → pick → play
    roonpipe-cli search "abbey road"    # print results
    roonpipe-cli search "abbey road" --json
    roonpipe-cli play --category-key K --index 0 --action "Play Now"
"""

import argparse
import asyncio
import json
import logging
import sys

from roonpipe.lib.errors import IPCError
from roonpipe.lib.ipc import IPCClient
from roonpipe.lib.models import SearchResult

TYPE_ICONS = {
    "track": "🎵",
    "album": "💿",
    "artist": "🎤",
    "playlist": "📋",
    "work": "🎼",
    "composer": "👤",
}

ACTION_ICONS = {
    "Play Now": "▶️",
    "Play": "▶️",
    "Shuffle": "🔀",
    "Queue": "📋",
    "Add to Queue": "📋",
    "Add Next": "⏭️",
    "Play From Here": "⏭️",
    "Start Radio": "📻",
}


def format_result(result: SearchResult) -> str:
    line = f"{TYPE_ICONS.get(result.type, '•')} {result.title}"
    if result.subtitle:
        line += f" · {result.subtitle}"
    return line


def _choose(prompt: str, count: int) -> int | None:
    """Read a 1-based choice.  None means back/quit."""
    while True:
        try:
            answer = input(prompt).strip()
        except EOFError:
            return None
        if not answer or answer.lower() in ("q", "b"):
            return None
        if answer.isdigit() and 1 <= int(answer) <= count:
            return int(answer) - 1
        print(f"Enter a number between 1 and {count}, or q.")


async def interactive(client: IPCClient):
    print("\n🎵 RoonPipe Interactive Search")
    print("==============================\n")
    while True:
        try:
            query = input("🔍 Search (empty to quit): ").strip()
        except EOFError:
            query = ""
        if not query:
            print("\nGoodbye! 👋\n")
            return

        print(f"\nSearching for \"{query}\"...\n")
        try:
            results = await client.search(query)
        except IPCError as e:
            print(f"❌ Error: {e}\n")
            continue
        if not results:
            print("❌ No results found.\n")
            continue

        print(f"Found {len(results)} result(s):\n")
        for i, result in enumerate(results, 1):
            print(f"{i:3d}. {format_result(result)}")
        picked = _choose("\nSelect an item (q = new search): ", len(results))
        if picked is None:
            continue
        selected = results[picked]
        if not selected.actions:
            print("No actions available for this item.\n")
            continue

        for i, action in enumerate(selected.actions, 1):
            print(f"{i:3d}. {ACTION_ICONS.get(action.title, '•')} {action.title}")
        choice = _choose("What do you want to do? (b = back): ", len(selected.actions))
        if choice is None:
            continue
        action = selected.actions[choice]

        print(f"\n{action.title}: {format_result(selected)}\n")
        try:
            await client.play(selected, action.title)
            print("✅  Success!\n")
        except IPCError as e:
            print(f"❌  Failed: {e}\n")


async def run_search(client: IPCClient, query: str, as_json: bool) -> int:
    try:
        results = await client.search(query)
    except IPCError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    if as_json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return 0
    for result in results:
        actions = ", ".join(a.title for a in result.actions) or "-"
        print(f"[{result.category_key} #{result.index}] {format_result(result)}  ({actions})")
    return 0


async def run_play(client: IPCClient, args) -> int:
    result = SearchResult(
        title="", subtitle="", item_key=args.item_key, category_key=args.category_key,
        index=args.index, type="track", session_key=args.session_key or "")
    try:
        await client.play(result, args.action)
    except IPCError as e:
        print(f"❌ Failed: {e}", file=sys.stderr)
        return 1
    print("✅ Success!")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="roonpipe-cli", description="Search and play via a running RoonPipe daemon")
    parser.add_argument("--socket", help="daemon socket path (default from config)")
    sub = parser.add_subparsers(dest="command")

    search = sub.add_parser("search", help="search the library")
    search.add_argument("query", nargs="+")
    search.add_argument("--json", action="store_true", help="print raw results as JSON")

    play = sub.add_parser("play", help="run an action on a search result")
    play.add_argument("--category-key", required=True)
    play.add_argument("--index", type=int, required=True)
    play.add_argument("--action", required=True, help='action title, e.g. "Play Now"')
    play.add_argument("--item-key")
    play.add_argument("--session-key")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(message)s")
    client = IPCClient(args.socket)

    if args.command == "search":
        sys.exit(asyncio.run(run_search(client, " ".join(args.query), args.json)))
    if args.command == "play":
        sys.exit(asyncio.run(run_play(client, args)))
    try:
        asyncio.run(interactive(client))
    except KeyboardInterrupt:
        print("\nGoodbye! 👋\n")


if __name__ == "__main__":
    main()
