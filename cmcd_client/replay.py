"""
Replay a recorded player session through a CmcdManager and collect the resulting requests.

A session file (YAML or JSON) looks like:

    config: {enabled: true, use_headers: false, content_id: movie-42}
    player:
      bandwidth_estimate: 5000000
      buffered: {video: [{start: 0, end: 5}]}
      manifest: {variants: [{bandwidth: 5500000, video: {bandwidth: 5000000}}]}
    events:
      - {type: manifest, uri: "https://cdn/a.mpd", format: d}
      - {type: buffering, buffering: false}
      - {type: player, player: {current_time: 3}}
      - type: segment
        uris: ["https://cdn/v1.m4s", "https://mirror/v1.m4s"]
        segment: {type: video, init: false, duration: 4, mime_type: video/mp4, codecs: avc1.64001f}
"""
import json
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Iterator, List, Optional

import yaml
from dacite import Config, from_dict

from .config import CmcdConfig
from .manager import ApplyResult, CmcdManager
from .models import ManifestInfo, Request, SegmentInfo, StreamingFormat
from .otel_exporter import WarnOnceReporter
from .player import PlayerSnapshot


# YAML/JSON numbers may be ints where the models declare floats.
DACITE_CONFIG = Config(type_hooks={float: float}, cast=[Enum])

REQUEST_EVENTS = ("manifest", "segment", "text")
URI_EVENTS = ("src", "text_track")


@dataclass
class SessionEvent:
    type: str
    uri: Optional[str] = None
    uris: Optional[List[str]] = None
    format: Optional[StreamingFormat] = None
    segment: Optional[SegmentInfo] = None
    mime_type: Optional[str] = None
    buffering: Optional[bool] = None
    player: Optional[dict[str, Any]] = None

    def request_uris(self) -> List[str]:
        if self.uris:
            return list(self.uris)
        return [self.uri] if self.uri else []


@dataclass
class SessionFile:
    config: CmcdConfig = field(default_factory=CmcdConfig)
    player: PlayerSnapshot = field(default_factory=PlayerSnapshot)
    events: List[SessionEvent] = field(default_factory=list)


@dataclass
class ReplayStep:
    """One outbound request after CMCD was applied."""
    index: int
    event_type: str
    uris: List[str]
    headers: dict[str, str]
    result: Optional[ApplyResult] = None


def load_session(data: dict[str, Any]) -> SessionFile:
    return from_dict(data_class=SessionFile, data=data or {}, config=DACITE_CONFIG)


def read_session_by_file(path: str) -> SessionFile:
    with open(path, "r") as file:
        text = file.read()

    if path.endswith(".json"):
        d = json.loads(text)
    else:
        d = yaml.safe_load(text)
    if not isinstance(d, dict):
        raise ValueError(f"Session file {path} must contain a mapping")
    return load_session(d)


def update_player(snapshot: PlayerSnapshot, updates: dict[str, Any]) -> None:
    """Overwrite snapshot fields in place; the manager keeps a reference to the snapshot."""
    merged = from_dict(
        data_class=PlayerSnapshot,
        data={**asdict(snapshot), **updates},
        config=DACITE_CONFIG,
    )
    for f in fields(merged):
        setattr(snapshot, f.name, getattr(merged, f.name))


def replay(
    session: SessionFile,
    config: Optional[CmcdConfig] = None,
    reporter: Optional[WarnOnceReporter] = None,
) -> Iterator[ReplayStep]:
    """
    Feed each event to a fresh CmcdManager and yield a step per outbound request.
    config overrides the session file's own config when given.
    """
    manager = CmcdManager(session.player, config or session.config, reporter=reporter)
    for index, event in enumerate(session.events):
        if event.type == "buffering":
            if event.buffering is None:
                raise ValueError(f"event {index}: buffering event needs 'buffering'")
            manager.set_buffering(event.buffering)
        elif event.type == "player":
            update_player(session.player, event.player or {})
        elif event.type in REQUEST_EVENTS:
            request = Request(uris=event.request_uris())
            if event.type == "manifest":
                if event.format is None:
                    raise ValueError(f"event {index}: manifest event needs 'format'")
                result = manager.apply_manifest_data(request, ManifestInfo(format=event.format))
            elif event.type == "segment":
                if event.segment is None:
                    raise ValueError(f"event {index}: segment event needs 'segment'")
                result = manager.apply_segment_data(request, event.segment)
            else:
                result = manager.apply_text_data(request)
            yield ReplayStep(index, event.type, request.uris, request.headers, result)
        elif event.type in URI_EVENTS:
            if not event.uri:
                raise ValueError(f"event {index}: {event.type} event needs 'uri'")
            if event.type == "src":
                uri = manager.append_src_data(event.uri, event.mime_type or "")
            else:
                uri = manager.append_text_track_data(event.uri)
            yield ReplayStep(index, event.type, [uri], {})
        else:
            raise ValueError(f"event {index}: unknown event type {event.type!r}")
