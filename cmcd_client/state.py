"""
Long-lived CMCD session state: one per player instance.
"""
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from .models import StreamingFormat


def random_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class SessionState:
    session_id: str
    content_id: Optional[str] = None
    streaming_format: Optional[StreamingFormat] = None
    playback_started: bool = False
    # A player starts out buffering.
    buffering: bool = True
    starved: bool = False

    @classmethod
    def create(
        cls,
        session_id: Optional[str] = None,
        content_id: Optional[str] = None,
        id_provider: Callable[[], str] = random_session_id,
    ) -> "SessionState":
        """New session; id_provider is only called when no session_id is supplied."""
        return cls(session_id=session_id or id_provider(), content_id=content_id or None)

    def set_buffering(self, buffering: bool) -> None:
        """
        Record a buffering transition.
        The first not-buffering signal marks playback as started; after that,
        entering buffering again (an edge, not a repeat) marks the buffer as starved.
        """
        if not buffering and not self.playback_started:
            self.playback_started = True
        if self.playback_started and buffering and not self.buffering:
            self.starved = True
        self.buffering = buffering

    def consume_starved(self) -> bool:
        """Return whether the buffer starved since the last call, and clear the flag."""
        starved = self.starved
        self.starved = False
        return starved
