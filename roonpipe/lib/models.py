"""
Plain data types passed between the browse engine, the zone tracker and IPC.

Wire payloads from the core are dicts; these types are the parsed form.  Only
the fields RoonPipe reads are lifted out; everything else is dropped.
"""

from dataclasses import asdict, dataclass, field, replace

# Node hints as the core reports them
HINT_ITEM = "item"
HINT_LIST = "list"
HINT_HEADER = "header"
HINT_ACTION = "action"
HINT_ACTION_LIST = "action_list"


@dataclass
class MenuNode:
    item_key: str | None
    title: str = ""
    subtitle: str = ""
    hint: str | None = None
    image_key: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "MenuNode":
        return cls(
            item_key=data.get("item_key"),
            title=data.get("title") or "",
            subtitle=data.get("subtitle") or "",
            hint=data.get("hint"),
            image_key=data.get("image_key"),
        )


@dataclass(frozen=True)
class BrowseContext:
    """Where a browse/load pair is aimed.

    Frozen so a rotated session key always produces a new context instead of
    leaking into a sibling branch of the walk.
    """

    session_key: str
    zone_id: str
    hierarchy: str = "search"

    def rotated(self, session_key: str | None) -> "BrowseContext":
        if not session_key or session_key == self.session_key:
            return self
        return replace(self, session_key=session_key)

    def to_opts(self) -> dict:
        return {
            "hierarchy": self.hierarchy,
            "multi_session_key": self.session_key,
            "zone_or_output_id": self.zone_id,
        }


@dataclass(frozen=True)
class Action:
    title: str

    def to_dict(self) -> dict:
        return {"title": self.title}


@dataclass
class SearchResult:
    title: str
    subtitle: str
    item_key: str | None
    category_key: str | None
    index: int
    type: str
    actions: list[Action] = field(default_factory=list)
    image: str | None = None
    hint: str | None = None
    session_key: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SearchResult":
        return cls(
            title=data.get("title", ""),
            subtitle=data.get("subtitle", ""),
            item_key=data.get("item_key"),
            category_key=data.get("category_key"),
            index=int(data.get("index", 0)),
            type=data.get("type", "track"),
            actions=[Action(a["title"]) for a in data.get("actions") or []],
            image=data.get("image"),
            hint=data.get("hint"),
            session_key=data.get("session_key", ""),
        )


@dataclass
class Zone:
    zone_id: str
    display_name: str = ""
    state: str = "stopped"
    now_playing: dict | None = None
    outputs: list = field(default_factory=list)
    settings: dict = field(default_factory=dict)
    is_play_allowed: bool = False
    is_pause_allowed: bool = False
    is_next_allowed: bool = False
    is_previous_allowed: bool = False
    is_seek_allowed: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Zone":
        return cls(
            zone_id=data["zone_id"],
            display_name=data.get("display_name", ""),
            state=data.get("state", "stopped"),
            now_playing=dict(data["now_playing"]) if data.get("now_playing") else None,
            outputs=list(data.get("outputs") or []),
            settings=dict(data.get("settings") or {}),
            is_play_allowed=bool(data.get("is_play_allowed")),
            is_pause_allowed=bool(data.get("is_pause_allowed")),
            is_next_allowed=bool(data.get("is_next_allowed")),
            is_previous_allowed=bool(data.get("is_previous_allowed")),
            is_seek_allowed=bool(data.get("is_seek_allowed")),
        )

    @property
    def is_playing(self) -> bool:
        return self.state == "playing"


@dataclass(frozen=True)
class SeekUpdate:
    zone_id: str
    seek_position: float

    @classmethod
    def from_dict(cls, data: dict) -> "SeekUpdate":
        return cls(zone_id=data["zone_id"], seek_position=data.get("seek_position") or 0)
