# pylint: disable=missing-module-docstring,missing-function-docstring,redefined-outer-name

import pytest
from fastapi.testclient import TestClient

from adapters.report.openai_report import OpenAIReportGenerator
from config import AppConfig
from server import routes
from server.app import build_report_generator, create_app
from server.main import uvicorn_options
from transport.ports import PortInfo

from fakes import FakeReportGenerator, FakeSerialFactory


FRAME = b'{"heartRate":80,"spo2":97,"gsr":2.4,"ecg":1.05}'


@pytest.fixture
def factory() -> FakeSerialFactory:
    return FakeSerialFactory()


@pytest.fixture
def client(factory, captured_logs):  # pylint: disable=unused-argument
    config = AppConfig(serial_port="/dev/ttyFAKE", session_quota=1, poll_interval_ms=60_000)
    app = create_app(config, report_generator=FakeReportGenerator(), serial_factory=factory)
    with TestClient(app) as test_client:
        yield test_client


def _receive_until(ws, predicate, limit: int = 20) -> list[dict]:
    received = []
    for _ in range(limit):
        msg = ws.receive_json()
        received.append(msg)
        if predicate(msg):
            return received
    raise AssertionError(f"no matching message in {received}")


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_ports_lists_devices(client, monkeypatch):
    monkeypatch.setattr(
        routes,
        "list_ports",
        lambda: [PortInfo(path="/dev/ttyUSB0", description="CP2102 USB to UART")],
    )

    body = client.get("/ports").json()

    assert body["ports"][0]["path"] == "/dev/ttyUSB0"
    assert body["ports"][0]["description"] == "CP2102 USB to UART"


def test_ports_failure_is_500(client, monkeypatch):
    def _boom():
        raise OSError("device tree unavailable")

    monkeypatch.setattr(routes, "list_ports", _boom)

    response = client.get("/ports")

    assert response.status_code == 500
    assert response.json() == {"error": "device tree unavailable"}


def test_websocket_session_round_trip(client, factory):
    with client.websocket_connect("/ws") as ws:
        init = ws.receive_json()
        assert init["type"] == "SESSION_INIT"
        assert init["config"]["report_enabled"] is True

        ws.send_json({"type": "OPEN"})
        _receive_until(ws, lambda m: m.get("connection_status") == "UP")

        ws.send_json({"type": "START"})
        _receive_until(ws, lambda m: m.get("state") == "MONITORING")

        factory.instances[0].push(FRAME)
        received = _receive_until(ws, lambda m: m["type"] == "REPORT")

        assert [m for m in received if m["type"] == "SAMPLE"][0]["valid"] is True
        assert received[-1]["report"]["wellnessScore"] == 72

        ws.send_json({"type": "CLOSE"})
        _receive_until(ws, lambda m: m.get("connection_status") == "DOWN")

    assert factory.instances[0].is_open is False


def test_generator_disabled_without_api_key(captured_logs):
    assert build_report_generator(AppConfig(openai_api_key=None)) is None
    assert any('"REPORT_GENERATOR_DISABLED"' in line for line in captured_logs)


def test_generator_built_for_groq(captured_logs):  # pylint: disable=unused-argument
    config = AppConfig(llm_provider="groq", groq_api_key="gsk-test", llm_model="llama-3.1-8b-instant")

    generator = build_report_generator(config)

    assert isinstance(generator, OpenAIReportGenerator)


def test_uvicorn_log_level_follows_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.delenv("PORT", raising=False)

    options = uvicorn_options()

    assert options["log_level"] == "warning"
    assert options["port"] == 8000
    assert options["reload"] is False
    assert options["app_dir"].endswith("backend")
