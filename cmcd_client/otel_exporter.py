"""
Report CMCD generation failures as OpenTelemetry log records, optionally shipped
to an OTLP endpoint (e.g. Grafana Alloy).
"""
import time
from typing import Any, Optional

from opentelemetry._logs import SeverityNumber, get_logger, set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource


LOGGER_NAME = "cmcd"


def create_logger_provider(
    service_name: str = "cmcd-client",
    endpoint: Optional[str] = None,
    insecure: bool = True,
    resource_attributes: Optional[dict[str, str]] = None,
) -> tuple[LoggerProvider, Any]:
    """
    Install a LoggerProvider exporting over OTLP gRPC and return (provider, logger).
    endpoint: e.g. "localhost:4317". If None, the exporter reads OTEL_EXPORTER_OTLP_ENDPOINT.
    Call provider.shutdown() to flush pending records.
    """
    resource = Resource.create(
        {"service.name": service_name, **(resource_attributes or {})}
    )
    provider = LoggerProvider(resource=resource)
    exporter = OTLPLogExporter(endpoint=endpoint, insecure=insecure)
    provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    set_logger_provider(provider)
    return provider, provider.get_logger(LOGGER_NAME)


class WarnOnceReporter:
    """
    Emits one WARN log record per distinct error code; later failures with the
    same code are dropped. With no logger given, the global OTel logger is used,
    which is a no-op until a provider is installed.
    """

    def __init__(self, logger: Any = None) -> None:
        self._logger = logger if logger is not None else get_logger(LOGGER_NAME)
        self._seen: set[str] = set()

    @property
    def reported_codes(self) -> frozenset[str]:
        return frozenset(self._seen)

    def warn_once(self, code: str, message: str, error: Optional[BaseException] = None) -> bool:
        """Emit the warning unless code was already reported. Returns True if emitted."""
        if code in self._seen:
            return False
        self._seen.add(code)
        attrs: dict[str, Any] = {"cmcd.error_code": code}
        if error is not None:
            attrs["exception.type"] = type(error).__name__
            attrs["exception.message"] = str(error)
        now_ns = time.time_ns()
        self._logger.emit(
            body=message,
            timestamp=now_ns,
            observed_timestamp=now_ns,
            severity_number=SeverityNumber.WARN,
            severity_text="WARN",
            attributes=attrs,
        )
        return True
