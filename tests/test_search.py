"""Tests for SearchSession."""

import asyncio

import pytest

from conftest import ROOT, node
from roonpipe.lib import config
from roonpipe.lib.errors import PreconditionFailed, RemoteError
from roonpipe.lib.models import Action
from roonpipe.lib.search import SearchSession, infer_type
from roonpipe.lib.zones import State


def catalog():
    """Search root with three titled categories and one untitled one."""
    tree = {
        ROOT: [
            node("cat-artists", "Artists", "list"),
            node("cat-albums", "Albums", "list"),
            node("cat-blank", "", "list"),
            node("cat-tracks", "Tracks", "list"),
        ],
        "cat-blank": [node("blank-0", "Mystery", "list")],
    }
    sizes = {"cat-artists": 2, "cat-albums": 7, "cat-tracks": 12}
    for cat, size in sizes.items():
        items = []
        for i in range(size):
            key = f"{cat}-{i}"
            if cat == "cat-artists":
                image = "img-shared"
            elif cat == "cat-albums":
                image = f"img-{i}"
            else:
                image = None
            items.append(node(key, f"{cat} {i}", "list", image_key=image,
                              subtitle="The Beatles, 1969"))
            tree[key] = [node(f"{key}-menu", "Play", "action_list")]
            tree[f"{key}-menu"] = [node(f"{key}-play", "Play Now", "action")]
        tree[cat] = items
    return tree


class FakeImageCache:
    def __init__(self, broken=()):
        self.broken = set(broken)
        self.requested = []

    async def resolve(self, key):
        self.requested.append(key)
        if key in self.broken:
            raise OSError("core unreachable")
        return f"/cache/{key}.jpg"


class TestInferType:
    @pytest.mark.parametrize("title,expected", [
        ("Artists", "artist"),
        ("Albums", "album"),
        ("Composers", "composer"),
        ("Playlists", "playlist"),
        ("Tracks", "track"),
        ("Works", "work"),
        ("Top Results", "track"),
        ("ALBUMS", "album"),
    ])
    def test_category_titles(self, title, expected):
        assert infer_type(title) == expected


class TestSearchSession:
    @pytest.mark.asyncio
    async def test_grouped_and_capped(self, make_state):
        state, service = make_state(catalog())
        results = await SearchSession(state, FakeImageCache()).search("abbey road")

        assert len(results) == 2 + 5 + 5
        assert [r.type for r in results] == ["artist"] * 2 + ["album"] * 5 + ["track"] * 5
        assert [r.category_key for r in results] == (
            ["cat-artists"] * 2 + ["cat-albums"] * 5 + ["cat-tracks"] * 5)
        assert [r.index for r in results] == [0, 1, 0, 1, 2, 3, 4, 0, 1, 2, 3, 4]
        assert all(r.actions == [Action("Play Now")] for r in results)
        assert results[2].item_key == "cat-albums-0"

    @pytest.mark.asyncio
    async def test_query_and_limits_sent_to_core(self, make_state):
        state, service = make_state(catalog())
        await SearchSession(state).search("abbey road")

        root_browse = service.calls[0][1]
        assert root_browse["input"] == "abbey road"
        assert "item_key" not in root_browse
        assert root_browse["multi_session_key"].startswith("search_")

        album_load = next(o for o in service.loads() if o.get("item_key") == "cat-albums")
        assert album_load["count"] == 5
        assert album_load["offset"] == 0
        assert "cat-blank" not in service.browsed()

    @pytest.mark.asyncio
    async def test_results_carry_session_and_subtitle(self, make_state):
        state, _ = make_state(catalog())
        results = await SearchSession(state).search("abbey road")
        assert results[0].session_key.startswith("search_")
        assert results[0].subtitle == "The Beatles"
        assert results[0].image is None

    @pytest.mark.asyncio
    async def test_images_resolved_once_per_key(self, make_state):
        state, _ = make_state(catalog())
        images = FakeImageCache()
        results = await SearchSession(state, images).search("abbey road")

        assert images.requested.count("img-shared") == 1
        assert len(images.requested) == 1 + 5
        assert results[0].image == "/cache/img-shared.jpg"
        assert results[1].image == "/cache/img-shared.jpg"
        assert results[3].image == "/cache/img-1.jpg"
        assert results[-1].image is None

    @pytest.mark.asyncio
    async def test_image_failure_does_not_fail_search(self, make_state):
        state, _ = make_state(catalog())
        results = await SearchSession(state, FakeImageCache(broken={"img-shared"})).search("x")
        assert results[0].image is None
        assert results[2].image == "/cache/img-0.jpg"

    @pytest.mark.asyncio
    async def test_missing_title_gets_placeholder(self, make_state):
        tree = catalog()
        tree["cat-albums"][0]["title"] = ""
        state, _ = make_state(tree)
        results = await SearchSession(state).search("x")
        assert results[2].title == "Unknown Album"

    @pytest.mark.asyncio
    async def test_category_error_propagates(self, make_state):
        state, _ = make_state(catalog(), fail={"cat-albums"})
        with pytest.raises(RemoteError):
            await SearchSession(state).search("abbey road")

    @pytest.mark.asyncio
    async def test_item_discovery_error_is_contained(self, make_state):
        state, _ = make_state(catalog(), fail={"cat-albums-0"})
        results = await SearchSession(state).search("abbey road")
        assert len(results) == 12
        assert results[2].actions == []
        assert results[3].actions == [Action("Play Now")]

    @pytest.mark.asyncio
    async def test_custom_category_limit(self, make_state):
        state, _ = make_state(catalog())
        results = await SearchSession(state, max_results_per_category=1).search("x")
        assert [r.type for r in results] == ["artist", "album", "track"]

    @pytest.mark.asyncio
    async def test_requires_connection(self, zone):
        state = State()
        state.zone = zone
        with pytest.raises(PreconditionFailed):
            await SearchSession(state).search("abbey road")

    @pytest.mark.asyncio
    async def test_requires_zone(self, make_state):
        state, service = make_state(catalog())
        state.zone = None
        with pytest.raises(PreconditionFailed, match="No active zone"):
            await SearchSession(state).search("abbey road")
        assert service.calls == []

    @pytest.mark.asyncio
    async def test_rotated_session_keys_flow_down(self, make_state):
        state, service = make_state(catalog(), rotate={ROOT: "s2", "cat-albums": "s3"})
        results = await SearchSession(state).search("abbey road")

        def keys_for(item_key):
            return [opts["multi_session_key"] for _, opts in service.calls
                    if opts.get("item_key") == item_key]

        assert service.calls[0][1]["multi_session_key"].startswith("search_")
        root_load = service.loads()[0]
        assert "item_key" not in root_load
        assert root_load["multi_session_key"] == "s2"

        assert keys_for("cat-artists") == ["s2", "s2"]
        assert keys_for("cat-albums") == ["s2", "s3"]
        assert keys_for("cat-tracks") == ["s2", "s2"]
        assert set(keys_for("cat-albums-0")) == {"s3"}
        assert set(keys_for("cat-albums-4-menu")) == {"s3"}
        assert set(keys_for("cat-tracks-0")) == {"s2"}
        assert [r.session_key for r in results] == ["s2"] * 2 + ["s3"] * 5 + ["s2"] * 5

    @pytest.mark.asyncio
    async def test_cancelled_image_lookup_is_dropped(self, make_state):
        class CancellingCache(FakeImageCache):
            async def resolve(self, key):
                if key == "img-shared":
                    raise asyncio.CancelledError()
                return await super().resolve(key)

        state, _ = make_state(catalog())
        results = await SearchSession(state, CancellingCache()).search("x")
        assert results[0].image is None
        assert results[2].image == "/cache/img-0.jpg"

    @pytest.mark.asyncio
    async def test_numeric_string_limit_from_config(self, make_state, monkeypatch):
        monkeypatch.setattr(config, "_config", {"search": {"max_results_per_category": "2"}})
        state, _ = make_state(catalog())
        results = await SearchSession(state).search("x")
        assert [r.type for r in results] == ["artist"] * 2 + ["album"] * 2 + ["track"] * 2

    @pytest.mark.parametrize("value", ["lots", 0, -3, None])
    def test_unusable_limit_falls_back(self, value, monkeypatch):
        monkeypatch.setattr(config, "_config", {"search": {"max_results_per_category": value}})
        assert SearchSession(State()).max_results_per_category == 5
