"""
CMCD (Common Media Client Data) payload and request models.
Key names and token values follow CTA-5004 section 3.3.
"""
import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Iterator, List, Mapping, Optional


# Version of CTA-5004 used to interpret keys. Version 1 is never sent.
CMCD_VERSION = 1


class ObjectType(Enum):
    """Media type of the object being requested (ot)."""

    MANIFEST = "m"
    AUDIO = "a"
    VIDEO = "v"
    MUXED = "av"
    INIT = "i"
    CAPTION = "c"
    TIMED_TEXT = "tt"
    KEY = "k"
    OTHER = "o"


class StreamType(Enum):
    """Stream type (st): all segments available (VOD) or appearing over time (LIVE)."""

    VOD = "v"
    LIVE = "l"


class StreamingFormat(Enum):
    """Streaming format (sf) of the current request."""

    DASH = "d"
    HLS = "h"
    SMOOTH = "s"
    OTHER = "o"


_ENUM_KEYS: dict[str, type[Enum]] = {
    "ot": ObjectType,
    "sf": StreamingFormat,
    "st": StreamType,
}


def _to_token(key: str, value: str) -> Any:
    try:
        return _ENUM_KEYS[key](value)
    except ValueError:
        return value


@dataclass
class CmcdData:
    """
    One request's CMCD payload. None means absent; NaN means "not meaningful".
    Both are omitted when serialized. dl, nor, nrr and rtp are carried for
    formatting but nothing in the manager fills them in.
    """

    br: Optional[float] = None    # encoded bitrate (kbps)
    d: Optional[float] = None     # object duration (ms)
    ot: Optional[ObjectType] = None
    tb: Optional[float] = None    # top bitrate (kbps)
    bl: Optional[float] = None    # buffer length (ms)
    dl: Optional[float] = None    # deadline (ms)
    mtp: Optional[float] = None   # measured throughput (kbps)
    nor: Optional[str] = None     # next object request (relative path)
    nrr: Optional[str] = None     # next range request
    su: Optional[bool] = None     # startup / seek / recovery
    cid: Optional[str] = None     # content id
    pr: Optional[float] = None    # playback rate
    sf: Optional[StreamingFormat] = None
    sid: Optional[str] = None     # session id
    st: Optional[StreamType] = None
    v: Optional[int] = None       # CMCD version
    bs: Optional[bool] = None     # buffer starvation
    rtp: Optional[float] = None   # requested max throughput (kbps)
    custom: dict[str, Any] = field(default_factory=dict)

    def items(self) -> Iterator[tuple[str, Any]]:
        """Yield (key, value) for every field that is set, custom keys last."""
        for f in fields(self):
            if f.name == "custom":
                continue
            value = getattr(self, f.name)
            if value is not None:
                yield f.name, value
        yield from self.custom.items()

    def update(self, other: "CmcdData") -> "CmcdData":
        """Overwrite this payload with every field set on other. Returns self."""
        for key, value in other.items():
            if key in _KNOWN_KEYS:
                setattr(self, key, value)
            else:
                self.custom[key] = value
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CmcdData":
        """
        Build a payload from a plain key/value mapping.
        Token keys (ot, sf, st) accept either the enum or its wire value; token
        strings outside the enum are kept as-is and written through unquoted.
        Keys outside CTA-5004 are kept as custom keys.
        """
        out = cls()
        for key, value in (data or {}).items():
            if key in _ENUM_KEYS and isinstance(value, str):
                value = _to_token(key, value)
            if key in _KNOWN_KEYS:
                setattr(out, key, value)
            else:
                out.custom[key] = value
        return out


_KNOWN_KEYS = frozenset(f.name for f in fields(CmcdData) if f.name != "custom")


def is_meaningful(value: Any) -> bool:
    """A value is serialized only if it is not None, NaN, infinite, the empty string or False."""
    if value is None or value is False or value == "":
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return True


@dataclass
class SegmentInfo:
    """Context of a single segment request."""

    type: str                 # "video", "audio", "text"
    init: bool
    duration: float           # seconds
    mime_type: str
    codecs: str
    bandwidth: Optional[float] = None  # bits per second of the variant


@dataclass
class ManifestInfo:
    """Context of a manifest request."""

    format: StreamingFormat


@dataclass
class Request:
    """An outbound request: equivalent URIs (e.g. mirrors) and its headers."""

    uris: List[str]
    headers: dict[str, str] = field(default_factory=dict)
