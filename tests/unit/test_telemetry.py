"""Tests for tracer provider setup, request instrumentation and shutdown."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from clinic_cache.shared.telemetry.telemetry import TelemetryConfig, build_exporter


@pytest.fixture
def installed(monkeypatch: pytest.MonkeyPatch) -> list[TracerProvider]:
    """Capture providers instead of replacing the process-wide one."""
    providers: list[TracerProvider] = []
    monkeypatch.setattr(trace, "set_tracer_provider", providers.append)
    return providers


@pytest.fixture
def telemetry() -> TelemetryConfig:
    return TelemetryConfig("clinic-cache", "1.0.0", enabled=True, environment="test")


class TestBuildExporter:
    def test_console(self) -> None:
        assert isinstance(build_exporter("console"), ConsoleSpanExporter)

    def test_otlp_with_endpoint(self) -> None:
        assert isinstance(build_exporter("otlp", "http://collector:4317"), OTLPSpanExporter)

    @pytest.mark.parametrize("exporter_type", ["otlp", "zipkin"])
    def test_falls_back_to_console(self, exporter_type: str) -> None:
        assert isinstance(build_exporter(exporter_type), ConsoleSpanExporter)

    def test_none(self) -> None:
        assert build_exporter("none") is None


class TestTelemetryConfig:
    def test_console_setup_installs_provider(
        self, telemetry: TelemetryConfig, installed: list[TracerProvider]
    ) -> None:
        provider = telemetry.setup_telemetry(exporter_type="console", sample_rate=0.5)
        assert isinstance(provider, TracerProvider)
        assert installed == [provider]
        assert telemetry.tracer_provider is provider
        attributes = provider.resource.attributes
        assert attributes["service.name"] == "clinic-cache"
        assert attributes["deployment.environment"] == "test"
        telemetry.shutdown()
        assert telemetry.tracer_provider is None

    async def test_requests_are_traced_except_health(
        self, telemetry: TelemetryConfig, installed: list[TracerProvider]
    ) -> None:
        provider = telemetry.setup_telemetry(exporter_type="none")
        assert provider is not None
        spans = InMemorySpanExporter()
        provider.add_span_processor(SimpleSpanProcessor(spans))

        app = FastAPI()

        @app.get("/api/v1/cache/status")
        async def status() -> dict:
            return {"ok": True}

        @app.get("/api/v1/health")
        async def health() -> dict:
            return {"status": "healthy"}

        telemetry.instrument_fastapi(app)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            assert (await ac.get("/api/v1/health")).status_code == 200
            assert not spans.get_finished_spans()
            assert (await ac.get("/api/v1/cache/status")).status_code == 200

        names = [span.name for span in spans.get_finished_spans()]
        assert any("/api/v1/cache/status" in name for name in names)
        telemetry.shutdown()

    def test_instrument_before_setup_is_noop(self, telemetry: TelemetryConfig) -> None:
        app = FastAPI()
        telemetry.instrument_fastapi(app)
        assert not getattr(app, "_is_instrumented_by_opentelemetry", False)

    def test_shutdown_without_setup(self, telemetry: TelemetryConfig) -> None:
        telemetry.shutdown()
        assert telemetry.tracer_provider is None
