"""Tests for settings parsing, log formatting and log shipping."""

import json
import logging

import httpx
import pytest
from pydantic import ValidationError

from pizza_telemetry.config import Settings
from pizza_telemetry.logging_config import (
    ConsoleFormatter,
    JSONFormatter,
    LokiHandler,
    redact,
    start_loki_shipping,
    status_to_level,
)


def test_defaults():
    s = Settings(_env_file=None)
    assert s.metrics_export_interval_seconds == 30
    assert s.window_maintenance_interval_seconds == 10
    assert s.series_capacity == 1000
    assert s.endpoint_series_capacity == 100


def test_export_enabled_requires_url_and_key():
    assert not Settings(_env_file=None, METRICS_URL="https://otlp.example.test", METRICS_API_KEY="").export_enabled
    assert Settings(_env_file=None, METRICS_URL="https://otlp.example.test", METRICS_API_KEY="k").export_enabled


def test_intervals_read_from_environment(monkeypatch):
    monkeypatch.setenv("METRICS_EXPORT_INTERVAL", "5")
    monkeypatch.setenv("WINDOW_MAINTENANCE_INTERVAL_SECONDS", "2.5")
    s = Settings(_env_file=None)
    assert s.metrics_export_interval_seconds == 5
    assert s.window_maintenance_interval_seconds == 2.5


@pytest.mark.parametrize("field", ["METRICS_SERIES_CAPACITY", "METRICS_ENDPOINT_SERIES_CAPACITY"])
def test_capacities_must_be_positive(field):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: 0})


def test_cors_origins_accepts_json_and_csv():
    assert Settings(_env_file=None, CORS_ORIGINS='["https://a.test", "https://b.test"]').cors_origins_list == [
        "https://a.test",
        "https://b.test",
    ]
    assert Settings(_env_file=None, CORS_ORIGINS="https://a.test, https://b.test").cors_origins_list == [
        "https://a.test",
        "https://b.test",
    ]


def test_redact_masks_secrets():
    line = 'body={"email":"a@b.test","password": "hunter2","apiKey":"abc123"} Authorization: Bearer 123:sk-live.x'
    masked = redact(line)
    assert "hunter2" not in masked
    assert "abc123" not in masked
    assert "sk-live" not in masked
    assert '"password": "*****"' in masked
    assert "Bearer *****" in masked


def test_console_formatter_includes_request_context_and_redacts():
    record = logging.LogRecord("pizza_telemetry.http", logging.INFO, __file__, 1, "token %s", ("Bearer abc.def",), None)
    record.method = "GET"
    record.status_code = 200
    line = ConsoleFormatter().format(record)
    assert "method=GET" in line
    assert "status_code=200" in line
    assert "abc.def" not in line


def test_logging_enabled_requires_url_and_key():
    assert not Settings(_env_file=None).logging_enabled
    assert not Settings(_env_file=None, LOGGING_URL="https://logs.example.test", LOGGING_API_KEY="").logging_enabled
    assert Settings(_env_file=None, LOGGING_URL="https://logs.example.test", LOGGING_API_KEY="k").logging_enabled


@pytest.mark.parametrize(
    "status_code, level",
    [(200, logging.INFO), (302, logging.INFO), (404, logging.WARNING), (500, logging.ERROR), (503, logging.ERROR)],
)
def test_status_to_level(status_code, level):
    assert status_to_level(status_code) == level


def _http_record(name="pizza_telemetry.http", level=logging.WARNING, msg="request completed", args=()):
    record = logging.LogRecord(name, level, __file__, 1, msg, args, None)
    record.method = "POST"
    record.path = "/api/auth"
    record.status_code = 401
    record.log_type = "http"
    return record


def test_json_formatter_emits_parseable_redacted_line():
    record = _http_record(msg='body={"password": "%s"}', args=("hunter2",))
    entry = json.loads(JSONFormatter().format(record))
    assert entry["level"] == "WARNING"
    assert entry["logger"] == "pizza_telemetry.http"
    assert entry["status_code"] == 401
    assert entry["path"] == "/api/auth"
    assert "hunter2" not in entry["message"]


class TestLokiHandler:

    def test_posts_stream_with_labels_and_auth(self):
        requests = []

        def loki(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        handler = LokiHandler(
            "https://logs.example.test/loki/api/v1/push", "7", "loki-key", "pizza-test",
            transport=httpx.MockTransport(loki),
        )
        handler.handle(_http_record(msg="Authorization: Bearer %s", args=("abc.def",)))
        handler.close()

        assert len(requests) == 1
        assert str(requests[0].url) == "https://logs.example.test/loki/api/v1/push"
        assert requests[0].headers["Authorization"] == "Bearer 7:loki-key"
        stream = json.loads(requests[0].content)["streams"][0]
        assert stream["stream"] == {"component": "pizza-test", "level": "warning", "type": "http"}
        timestamp_ns, line = stream["values"][0]
        assert timestamp_ns.isdigit() and len(timestamp_ns) >= 19
        assert "abc.def" not in line
        assert json.loads(line)["method"] == "POST"

    def test_untyped_record_is_labelled_app(self):
        handler = LokiHandler("https://logs.example.test", "", "k", "pizza-test", transport=httpx.MockTransport(lambda r: httpx.Response(204)))
        record = logging.LogRecord("pizza_telemetry", logging.INFO, __file__, 1, "started", (), None)
        assert handler.build_event(record)["streams"][0]["stream"]["type"] == "app"
        handler.close()

    def test_push_failure_is_logged_not_raised(self, caplog):
        handler = LokiHandler("https://logs.example.test", "", "k", "pizza-test", transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        handler.handle(_http_record())
        handler.close()

        assert "HTTP status 500" in caplog.text

    def test_skips_its_own_and_http_client_records(self):
        requests = []
        handler = LokiHandler(
            "https://logs.example.test", "", "k", "pizza-test",
            transport=httpx.MockTransport(lambda r: requests.append(r) or httpx.Response(204)),
        )
        handler.handle(_http_record(name="pizza_telemetry.loki"))
        handler.handle(_http_record(name="httpx"))
        handler.close()

        assert requests == []


def test_log_shipping_disabled_without_url_or_key():
    assert start_loki_shipping("", "7", "k", "pizza-test") is None
    assert start_loki_shipping("https://logs.example.test", "7", "", "pizza-test") is None
