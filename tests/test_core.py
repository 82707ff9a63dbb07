"""Tests for CoreLink with roonapi replaced by an in-process stand-in."""

import asyncio
import json
import os

import pytest

from roonpipe import core
from roonpipe.core import CoreLink
from roonpipe.lib.zones import State, ZoneStateSynchronizer


class FakeRoonApi:
    instances = []

    def __init__(self, appinfo, token, host, port, blocking_init=True):
        self.appinfo = appinfo
        self.host = host
        self.port = port
        self.token = token or "fresh-token"
        self.core_id = "core-1"
        self.zones = {
            "A": {"zone_id": "A", "display_name": "Kitchen", "state": "paused",
                  "now_playing": {"seek_position": 0, "image_key": "i1"}},
        }
        self.callback = None
        self.stopped = False
        FakeRoonApi.instances.append(self)

    def register_state_callback(self, callback):
        self.callback = callback

    def get_image(self, image_key, scale="fit", width=None, height=None):
        return f"http://core/image/{image_key}?w={width}"

    def stop(self):
        self.stopped = True


class FakeDiscovery:
    def __init__(self, core_id):
        self.core_id = core_id

    def first(self):
        return ("10.0.0.5", 9330)

    def stop(self):
        pass


@pytest.fixture
def link(monkeypatch, tmp_path):
    FakeRoonApi.instances.clear()
    monkeypatch.setattr(core, "RoonApi", FakeRoonApi)
    monkeypatch.setattr(core, "RoonDiscovery", FakeDiscovery)
    monkeypatch.setattr(core, "CONFIG_DIR", str(tmp_path))
    monkeypatch.setattr(core, "TOKEN_FILE", str(tmp_path / "token"))
    state = State()
    sync = ZoneStateSynchronizer(state)
    return CoreLink(state, sync)


@pytest.mark.asyncio
async def test_connect_pairs_and_saves_token(link, tmp_path):
    await link.connect()
    api = FakeRoonApi.instances[0]
    assert (api.host, api.port) == ("10.0.0.5", 9330)
    assert link._state.link is link
    assert link._state.zone.zone_id == "A"

    token_file = tmp_path / "token"
    assert json.loads(token_file.read_text()) == {"token": "fresh-token", "core_id": "core-1"}
    assert os.stat(token_file).st_mode & 0o777 == 0o600
    await link.close()


@pytest.mark.asyncio
async def test_configured_host_skips_discovery(link, monkeypatch):
    from roonpipe.lib import config

    monkeypatch.setattr(config, "_config", {"core": {"host": "192.168.1.9", "port": 9100}})
    monkeypatch.setattr(core, "RoonDiscovery", None)
    await link.connect()
    api = FakeRoonApi.instances[0]
    assert (api.host, api.port) == ("192.168.1.9", 9100)
    await link.close()


@pytest.mark.asyncio
async def test_events_reach_synchronizer_on_loop(link):
    await link.connect()
    api = FakeRoonApi.instances[0]
    seeks = []
    link._sync.subscribe(on_seek_changed=seeks.append)

    api.zones["B"] = {"zone_id": "B", "state": "playing", "now_playing": {"seek_position": 4}}
    api.callback("zones_changed", ["B"])
    api.zones["B"]["seek_position"] = 9
    api.callback("zones_seek_changed", ["B"])
    await asyncio.sleep(0)

    assert link._state.zone.zone_id == "B"
    assert seeks == [9_000_000]
    await link.close()


@pytest.mark.asyncio
async def test_close_unpairs(link):
    await link.connect()
    api = FakeRoonApi.instances[0]
    await link.close()
    assert api.stopped
    assert link._state.link is None
    assert link._state.zone is None
    assert link.image_url("i1", 300) is None
