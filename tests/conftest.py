import pytest

from cmcd_client.config import CmcdConfig
from cmcd_client.manager import CmcdManager
from cmcd_client.otel_exporter import WarnOnceReporter
from cmcd_client.player import BufferedRange, Manifest, PlayerSnapshot, Stream, Variant


SESSION_ID = "6e2fb550-c457-11e9-bb97-0800200c9a66"


class RecordingLogger:
    """Stands in for an OpenTelemetry logger; keeps every emitted record."""

    def __init__(self) -> None:
        self.records: list[dict] = []

    def emit(self, **kwargs) -> None:
        self.records.append(kwargs)


@pytest.fixture
def otel_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def reporter(otel_logger) -> WarnOnceReporter:
    return WarnOnceReporter(otel_logger)


@pytest.fixture
def player() -> PlayerSnapshot:
    return PlayerSnapshot(
        bandwidth_estimate=5_234_000,
        buffered={
            "video": [BufferedRange(start=0, end=5)],
            "audio": [BufferedRange(start=0, end=10)],
        },
        current_time=3,
        manifest=Manifest(
            variants=[
                Variant(bandwidth=1_200_000, audio=Stream(128_000), video=Stream(1_000_000)),
                Variant(bandwidth=3_300_000, audio=Stream(256_000), video=Stream(3_000_000)),
            ],
            text_streams=[Stream(16_000)],
        ),
        playback_rate=1,
        live=False,
    )


@pytest.fixture
def make_manager(player, reporter):
    def _make(target=None, **config) -> CmcdManager:
        config.setdefault("enabled", True)
        return CmcdManager(
            target if target is not None else player,
            CmcdConfig(**config),
            reporter=reporter,
            id_provider=lambda: SESSION_ID,
        )

    return _make
