"""
Parse CMCD (Common Media Client Data) back out of requests.
CTA-5004: metrics arrive as one query param (CMCD=key=val,...), as prefixed
params (cmcd.key=val), or split across the CMCD-Object/Request/Session/Status headers.
"""
import re
from typing import Any, Mapping, Union
from urllib.parse import parse_qs, urlsplit


_NUMBER = re.compile(r"-?\d+(\.\d+)?")

HEADER_NAMES = ("cmcd-object", "cmcd-request", "cmcd-session", "cmcd-status")


def _split_pairs(value: str) -> list[str]:
    """Split a CMCD string on commas, ignoring commas inside double-quoted values."""
    pairs: list[str] = []
    i = 0
    n = len(value)
    start = 0
    while i < n:
        c = value[i]
        if c == '"':
            i += 1
            while i < n and value[i] != '"':
                if value[i] == "\\":
                    i += 1  # skip escaped char
                i += 1
        elif c == ",":
            pairs.append(value[start:i])
            start = i + 1
        i += 1
    pairs.append(value[start:])
    return [p.strip() for p in pairs if p.strip()]


def _add_pairs(out: dict[str, str], raw: str) -> None:
    for pair in _split_pairs(raw):
        if "=" in pair:
            k, v = pair.split("=", 1)
            k, v = k.strip(), v.strip()
        else:
            # Boolean true is sent as the bare key
            k, v = pair, ""
        if k:
            out[k] = v


def parse_cmcd_value(raw: str) -> dict[str, str]:
    """
    Parse a decoded CMCD string (e.g. 'br=3200,ot=v,su') into raw key/value strings.
    Bare keys map to the empty string; quoted values keep their quotes (see decode_value).
    """
    out: dict[str, str] = {}
    if raw:
        _add_pairs(out, raw)
    return out


def parse_cmcd_from_query_string(query_string: str) -> dict[str, str]:
    """
    Extract CMCD key-value pairs from a URL query string.
    Supports:
      - Single parameter: CMCD=br%3D3200%2Cbl%3D12500%2Cot%3Dv or cmcd=br=3200,...
      - Separate parameters: cmcd.br=3200&cmcd.bl=12500&cmcd.ot=v
    Returns raw string values keyed by CMCD key (br, sid, ...).
    """
    if not query_string or not query_string.strip():
        return {}
    out: dict[str, str] = {}
    params = parse_qs(query_string, keep_blank_values=True)
    for key, values in params.items():
        if key.lower() == "cmcd":
            for raw in values:
                _add_pairs(out, raw)
        elif key.startswith("cmcd.") and values:
            cmcd_key = key[5:]
            if cmcd_key:
                out[cmcd_key] = values[0] or ""
    return out


def parse_cmcd_from_path(path_with_query: str) -> dict[str, str]:
    """
    Extract CMCD from a path or full URL carrying a query.
    Example: /vod/segment.m4s?CMCD=ot%3Dv%2Cbr%3D3200 or https://cdn/a.m4s?cmcd.br=3200
    """
    if not path_with_query or "?" not in path_with_query:
        return {}
    return parse_cmcd_from_query_string(urlsplit(path_with_query).query)


def parse_cmcd_from_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Merge the four CMCD-* request headers (header names are case-insensitive)."""
    out: dict[str, str] = {}
    for name, value in (headers or {}).items():
        if name.lower() in HEADER_NAMES and value:
            _add_pairs(out, value)
    return out


def decode_value(raw: str) -> Union[bool, int, float, str]:
    """
    Type a raw CMCD value: '' (bare key) -> True, '"x"' -> 'x' unescaped,
    '3200' -> 3200, '1.5' -> 1.5, anything else is a token string.
    """
    v = (raw or "").strip()
    if not v:
        return True
    if len(v) >= 2 and v[0] == '"' and v[-1] == '"':
        return re.sub(r"\\(.)", r"\1", v[1:-1])
    if _NUMBER.fullmatch(v):
        return float(v) if "." in v else int(v)
    return v


def decode_cmcd(pairs: Mapping[str, str]) -> dict[str, Any]:
    return {k: decode_value(v) for k, v in pairs.items()}
