"""
Read-only view of the host player consumed by the CMCD manager.
The player owns buffering, bandwidth estimation and the manifest; CMCD only reads them.
"""
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Protocol, Sequence


@dataclass
class BufferedRange:
    """A buffered time range in seconds."""
    start: float
    end: float


@dataclass
class Stream:
    bandwidth: float = 0


@dataclass
class Variant:
    """A playable combination of streams; bandwidth is the combined bitrate."""
    bandwidth: float = 0
    audio: Optional[Stream] = None
    video: Optional[Stream] = None


@dataclass
class Manifest:
    variants: List[Variant] = field(default_factory=list)
    text_streams: List[Stream] = field(default_factory=list)


class PlayerInterface(Protocol):
    def get_bandwidth_estimate(self) -> float:
        """Estimated bandwidth in bits per second."""
        ...

    def get_buffered_info(self) -> Mapping[str, Sequence[BufferedRange]]:
        """Buffered ranges keyed by media type ("audio", "video", "text", "total")."""
        ...

    def get_current_time(self) -> float:
        ...

    def get_manifest(self) -> Optional[Manifest]:
        ...

    def get_playback_rate(self) -> float:
        ...

    def is_live(self) -> bool:
        ...


@dataclass
class PlayerSnapshot:
    """
    Static PlayerInterface implementation: a plain record of player state.
    Used by session replay and handy for tests; mutate the fields between calls.
    """
    bandwidth_estimate: float = 0
    buffered: dict[str, List[BufferedRange]] = field(default_factory=dict)
    current_time: float = 0
    manifest: Optional[Manifest] = None
    playback_rate: float = 1
    live: bool = False

    def get_bandwidth_estimate(self) -> float:
        return self.bandwidth_estimate

    def get_buffered_info(self) -> Mapping[str, Sequence[BufferedRange]]:
        return self.buffered

    def get_current_time(self) -> float:
        return self.current_time

    def get_manifest(self) -> Optional[Manifest]:
        return self.manifest

    def get_playback_rate(self) -> float:
        return self.playback_rate

    def is_live(self) -> bool:
        return self.live
