"""
Serialize CMCD data per CTA-5004 section 3.2, as grouped headers (section 2.1)
or as a single query parameter (section 2.2).
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Union
from urllib.parse import quote

from .models import CmcdData, is_meaningful


# encodeURIComponent leaves these unescaped in addition to letters, digits and "_.-~".
_URI_COMPONENT_SAFE = "!*'()"

QUERY_PARAM = "CMCD"

# URIs in the offline store never reach a server.
OFFLINE_SCHEME = "offline:"


# Tagged values: each key's formatter picks how its value is rendered on the wire.
@dataclass(frozen=True)
class Integer:
    value: int

    def render(self, key: str) -> str:
        return f"{key}={self.value}"


@dataclass(frozen=True)
class Number:
    value: float

    def render(self, key: str) -> str:
        return f"{key}={_format_number(self.value)}"


@dataclass(frozen=True)
class UrlSafeString:
    """String that is URL-encoded before quoting (nor)."""
    value: str

    def render(self, key: str) -> str:
        return f'{key}="{encode_uri_component(self.value)}"'


@dataclass(frozen=True)
class QuotedString:
    value: str

    def render(self, key: str) -> str:
        escaped = self.value.replace("\\", "\\\\").replace('"', '\\"')
        return f'{key}="{escaped}"'


@dataclass(frozen=True)
class Token:
    """Unquoted token (ot, sf, st)."""
    value: str

    def render(self, key: str) -> str:
        return f"{key}={self.value}"


@dataclass(frozen=True)
class Flag:
    """True boolean: the key alone, no value."""

    def render(self, key: str) -> str:
        return key


CmcdValue = Union[Integer, Number, UrlSafeString, QuotedString, Token, Flag]


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def _round(value: float) -> int:
    # Half up, like Math.round; Python's round() is half-to-even.
    return math.floor(value + 0.5)


def _round_hundred(value: float) -> int:
    return _round(value / 100) * 100


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _token(value: Any) -> Token:
    return Token(value.value if isinstance(value, Enum) else str(value))


def _format_custom(value: Any) -> CmcdValue:
    """Custom keys have no declared type, so fall back on the Python type."""
    if isinstance(value, bool):
        return Flag()
    if isinstance(value, (int, float)):
        return Number(value)
    if isinstance(value, Enum):
        return _token(value)
    return QuotedString(str(value))


_FORMATTERS: dict[str, Callable[[Any], CmcdValue]] = {
    "br": lambda v: Integer(_round(v)),
    "d": lambda v: Integer(_round(v)),
    "tb": lambda v: Integer(_round(v)),
    "bl": lambda v: Integer(_round_hundred(v)),
    "dl": lambda v: Integer(_round_hundred(v)),
    "mtp": lambda v: Integer(_round_hundred(v)),
    "rtp": lambda v: Integer(_round_hundred(v)),
    "nor": lambda v: UrlSafeString(str(v)),
    "nrr": lambda v: QuotedString(str(v)),
    "cid": lambda v: QuotedString(str(v)),
    "sid": lambda v: QuotedString(str(v)),
    "ot": _token,
    "sf": _token,
    "st": _token,
    "su": lambda v: Flag(),
    "bs": lambda v: Flag(),
    "pr": Number,
    "v": Number,
}


# Header groups per CTA-5004 section 2.1. Keys not listed here go to CMCD-Request.
HEADER_GROUPS = ("Object", "Request", "Session", "Status")
_REQUEST_GROUP = 1
_HEADER_MAP = {
    "br": 0, "d": 0, "ot": 0, "tb": 0,
    "bl": 1, "dl": 1, "mtp": 1, "nor": 1, "nrr": 1, "su": 1,
    "cid": 2, "pr": 2, "sf": 2, "sid": 2, "st": 2, "v": 2,
    "bs": 3, "rtp": 3,
}


def _as_data(data: Union[CmcdData, Mapping[str, Any], None]) -> CmcdData:
    if isinstance(data, CmcdData):
        return data
    return CmcdData.from_dict(data or {})


def _serialize_items(items: Iterable[tuple[str, Any]]) -> str:
    results: list[str] = []
    for key, value in sorted(items, key=lambda kv: kv[0]):
        if not is_meaningful(value):
            continue
        # Version 1 and real-time playback are the defaults and are not sent.
        if key in ("v", "pr") and value == 1:
            continue
        formatter = _FORMATTERS.get(key, _format_custom)
        results.append(formatter(value).render(key))
    return ",".join(results)


def serialize(data: Union[CmcdData, Mapping[str, Any], None]) -> str:
    """
    Serialize CMCD data to its CTA-5004 string form: keys sorted, invalid values dropped.
    e.g. CmcdData(br=500, ot=ObjectType.VIDEO, su=True) -> 'br=500,ot=v,su'
    """
    return _serialize_items(_as_data(data).items())


def to_headers(data: Union[CmcdData, Mapping[str, Any], None]) -> dict[str, str]:
    """Split CMCD data into the four CMCD-* headers. Groups with nothing to send are left out."""
    groups: list[list[tuple[str, Any]]] = [[] for _ in HEADER_GROUPS]
    for key, value in _as_data(data).items():
        groups[_HEADER_MAP.get(key, _REQUEST_GROUP)].append((key, value))
    headers: dict[str, str] = {}
    for name, items in zip(HEADER_GROUPS, groups):
        value = _serialize_items(items)
        if value:
            headers[f"CMCD-{name}"] = value
    return headers


def to_query(data: Union[CmcdData, Mapping[str, Any], None]) -> str:
    """CMCD data as a query argument: CMCD=<url-encoded serialization>."""
    return f"{QUERY_PARAM}={encode_uri_component(serialize(data))}"


def is_offline_uri(uri: str) -> bool:
    return uri.lower().startswith(OFFLINE_SCHEME)


def append_query_to_uri(uri: str, query: str) -> str:
    """Append query to uri with ? or &. Offline URIs and empty queries leave uri unchanged."""
    if not query:
        return uri
    if is_offline_uri(uri):
        return uri
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}{query}"
