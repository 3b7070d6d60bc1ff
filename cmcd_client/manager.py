"""
Derive CMCD data for outbound player requests and attach it as headers or a query argument.

CMCD is best effort: no apply call ever raises. A failure is reported once per
error code and leaves the request (or URI) exactly as it was.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .config import CmcdConfig
from .models import (
    CMCD_VERSION,
    CmcdData,
    ManifestInfo,
    ObjectType,
    Request,
    SegmentInfo,
    StreamType,
)
from .otel_exporter import WarnOnceReporter
from .player import PlayerInterface
from .serializer import append_query_to_uri, to_headers, to_query
from .state import SessionState, random_session_id


# Object types that carry a buffer length.
_MEDIA_OBJECT_TYPES = frozenset({
    ObjectType.VIDEO,
    ObjectType.AUDIO,
    ObjectType.MUXED,
    ObjectType.TIMED_TEXT,
})

# Object types whose requests report (and consume) buffer starvation.
_VIDEO_OBJECT_TYPES = frozenset({ObjectType.VIDEO, ObjectType.MUXED})

_MIME_OBJECT_TYPES = {
    "video/webm": ObjectType.MUXED,
    "video/mp4": ObjectType.MUXED,
    "application/x-mpegurl": ObjectType.MANIFEST,
}


class ApplyStatus(Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"    # CMCD disabled
    DEGRADED = "degraded"  # failed; request left untouched


@dataclass(frozen=True)
class ApplyResult:
    status: ApplyStatus
    error_code: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def applied(self) -> bool:
        return self.status is ApplyStatus.APPLIED


APPLIED = ApplyResult(ApplyStatus.APPLIED)
SKIPPED = ApplyResult(ApplyStatus.SKIPPED)


class CmcdManager:
    """
    Holds CMCD session state for one player and applies CMCD data to its requests.
    Call set_buffering on every buffering change, and the matching apply_* or
    append_* method right before a request goes out.
    """

    def __init__(
        self,
        player: PlayerInterface,
        config: CmcdConfig,
        reporter: Optional[WarnOnceReporter] = None,
        id_provider: Callable[[], str] = random_session_id,
    ) -> None:
        self._player = player
        self._config = config
        self._reporter = reporter or WarnOnceReporter()
        self.state = SessionState.create(
            session_id=config.session_id,
            content_id=config.content_id,
            id_provider=id_provider,
        )

    @property
    def session_id(self) -> str:
        return self.state.session_id

    def set_buffering(self, buffering: bool) -> None:
        self.state.set_buffering(buffering)

    def _guard(self, code: str, message: str, apply: Callable[[], None]) -> ApplyResult:
        if not self._config.enabled:
            return SKIPPED
        try:
            apply()
        except Exception as error:
            self._reporter.warn_once(code, message, error)
            return ApplyResult(ApplyStatus.DEGRADED, error_code=code, error=error)
        return APPLIED

    # Request pipeline entry points

    def apply_manifest_data(self, request: Request, manifest_info: ManifestInfo) -> ApplyResult:
        def apply() -> None:
            self.state.streaming_format = manifest_info.format
            self._apply(request, CmcdData(
                ot=ObjectType.MANIFEST,
                su=not self.state.playback_started,
            ))

        return self._guard("CMCD_MANIFEST_ERROR", "Could not generate manifest CMCD data.", apply)

    def apply_segment_data(self, request: Request, segment_info: SegmentInfo) -> ApplyResult:
        def apply() -> None:
            data = CmcdData(
                d=segment_info.duration * 1000,
                st=self._stream_type(),
            )
            data.ot = self._object_type(segment_info)
            if data.ot in _MEDIA_OBJECT_TYPES:
                data.bl = self._buffer_length(segment_info.type)
            if segment_info.bandwidth:
                data.br = segment_info.bandwidth / 1000
            data.tb = self._top_bandwidth(segment_info.type) / 1000
            self._apply(request, data)

        return self._guard("CMCD_SEGMENT_ERROR", "Could not generate segment CMCD data.", apply)

    def apply_text_data(self, request: Request) -> ApplyResult:
        def apply() -> None:
            self._apply(request, CmcdData(ot=ObjectType.CAPTION, su=True))

        return self._guard("CMCD_TEXT_ERROR", "Could not generate text CMCD data.", apply)

    # URI-only entry points: there is no request object, so always a query argument

    def append_src_data(self, uri: str, mime_type: str) -> str:
        """CMCD for a stream loaded directly via src= (one combined request)."""
        return self._append_to_uri(
            uri,
            lambda: self._object_type_from_mime_type(mime_type),
            "CMCD_SRC_ERROR",
            "Could not generate src CMCD data.",
        )

    def append_text_track_data(self, uri: str) -> str:
        """CMCD for a side-car text track."""
        return self._append_to_uri(
            uri,
            lambda: ObjectType.CAPTION,
            "CMCD_TEXT_TRACK_ERROR",
            "Could not generate text track CMCD data.",
        )

    def _append_to_uri(
        self,
        uri: str,
        object_type: Callable[[], Optional[ObjectType]],
        code: str,
        message: str,
    ) -> str:
        result = uri

        def apply() -> None:
            nonlocal result
            data = self.create_data()
            data.ot = object_type()
            data.su = True
            result = append_query_to_uri(uri, to_query(data))

        self._guard(code, message, apply)
        return result

    # Data derivation

    def create_data(self) -> CmcdData:
        """Baseline fields sent with every request."""
        return CmcdData(
            v=CMCD_VERSION,
            sf=self.state.streaming_format,
            sid=self.state.session_id,
            cid=self.state.content_id,
            mtp=self._player.get_bandwidth_estimate() / 1000,
        )

    def _apply(self, request: Request, data: CmcdData) -> None:
        """Finish the payload and attach it. request is only mutated once encoding succeeded."""
        data.update(self.create_data())
        data.pr = self._player.get_playback_rate()

        consume_starved = self.state.starved and data.ot in _VIDEO_OBJECT_TYPES
        if consume_starved:
            data.bs = True
            data.su = True
        if data.su is None:
            data.su = self.state.buffering

        # TODO: derive rtp, nrr, nor and dl once the player exposes the inputs they need.

        if self._config.use_headers:
            headers = to_headers(data)
            if consume_starved:
                self.state.consume_starved()
            request.headers.update(headers)
        else:
            query = to_query(data)
            uris = [append_query_to_uri(uri, query) for uri in request.uris]
            if consume_starved:
                self.state.consume_starved()
            request.uris = uris

    def _object_type(self, segment_info: SegmentInfo) -> Optional[ObjectType]:
        media_type = segment_info.type
        if segment_info.init:
            return ObjectType.INIT
        if media_type == "video":
            if "," in (segment_info.codecs or ""):
                return ObjectType.MUXED
            return ObjectType.VIDEO
        if media_type == "audio":
            return ObjectType.AUDIO
        if media_type == "text":
            if segment_info.mime_type == "application/mp4":
                return ObjectType.TIMED_TEXT
            return ObjectType.CAPTION
        return None

    def _object_type_from_mime_type(self, mime_type: str) -> Optional[ObjectType]:
        return _MIME_OBJECT_TYPES.get((mime_type or "").lower())

    def _buffer_length(self, media_type: str) -> float:
        """Milliseconds buffered ahead of the playhead for media_type, NaN if the playhead is unbuffered."""
        ranges = self._player.get_buffered_info().get(media_type) or []
        if not ranges:
            return math.nan
        current_time = self._player.get_current_time()
        for r in ranges:
            if r.start <= current_time <= r.end:
                return (r.end - current_time) * 1000
        return math.nan

    def _stream_type(self) -> StreamType:
        return StreamType.LIVE if self._player.is_live() else StreamType.VOD

    def _top_bandwidth(self, media_type: str) -> float:
        """Highest bandwidth (bits/s) among the manifest's streams of media_type, NaN without a manifest."""
        manifest = self._player.get_manifest()
        if manifest is None:
            return math.nan
        if media_type == "text":
            streams = list(manifest.text_streams)
        else:
            streams = [
                (getattr(variant, media_type) if media_type in ("audio", "video") else None) or variant
                for variant in manifest.variants
            ]
        if not streams:
            return math.nan
        return max(stream.bandwidth for stream in streams)
