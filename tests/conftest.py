"""
Shared fixtures.

FakeBrowseService stands in for the core's browse service: an in-memory tree
of nodes keyed by item_key, answering browse/load the way the core does and
recording every call so tests can assert on traversal order.
"""

import shutil
import tempfile

import pytest

from roonpipe.lib import config
from roonpipe.lib.models import Zone
from roonpipe.lib.zones import State

ROOT = "__root__"


def node(key, title="", hint="item", image_key=None, subtitle=None):
    data = {"item_key": key, "title": title, "hint": hint}
    if image_key:
        data["image_key"] = image_key
    if subtitle:
        data["subtitle"] = subtitle
    return data


class FakeBrowseService:
    """Blocking browse/load over ``tree`` (item_key → list of child node dicts)."""

    def __init__(self, tree, rotate=None, fail=None):
        self.tree = tree
        self.rotate = rotate or {}   # item_key → session key returned on browse
        self.fail = set(fail or ())  # item_keys whose browse/load raise
        self.calls = []

    def _key(self, opts):
        return opts.get("item_key") or ROOT

    def browse_browse(self, opts):
        self.calls.append(("browse", dict(opts)))
        key = self._key(opts)
        if key in self.fail:
            raise RuntimeError(f"InvalidItemKey: {key}")
        lst = {"count": len(self.tree.get(key, []))}
        if key in self.rotate:
            lst["multi_session_key"] = self.rotate[key]
        return {"action": "list", "list": lst}

    def browse_load(self, opts):
        self.calls.append(("load", dict(opts)))
        key = self._key(opts)
        if key in self.fail:
            raise RuntimeError(f"InvalidItemKey: {key}")
        children = self.tree.get(key, [])
        offset = opts.get("offset", 0)
        count = opts.get("count", 100)
        return {"items": children[offset:offset + count], "offset": offset,
                "list": {"count": len(children)}}

    # helpers for assertions

    def browsed(self):
        return [opts.get("item_key") for name, opts in self.calls if name == "browse"]

    def loads(self):
        return [opts for name, opts in self.calls if name == "load"]


@pytest.fixture(autouse=True)
def empty_config(monkeypatch):
    """Keep tests independent of any config.json on the machine."""
    monkeypatch.setattr(config, "_config", {})


@pytest.fixture
def zone():
    return Zone(zone_id="zone-1", display_name="Living Room", state="playing")


@pytest.fixture
def make_state(zone):
    def _make(tree, **kwargs):
        service = FakeBrowseService(tree, **kwargs)
        state = State(link=service)
        state.zone = zone
        return state, service
    return _make


@pytest.fixture
def sock_path():
    """A short socket path (AF_UNIX paths are limited to ~100 bytes)."""
    directory = tempfile.mkdtemp(prefix="rp")
    yield f"{directory}/s.sock"
    shutil.rmtree(directory, ignore_errors=True)
