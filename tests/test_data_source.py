import json

import pytest
import requests

from dogmap import config
from dogmap.data_source import (
    SupabaseDataSource,
    build_animals_params,
    build_emergencies_params,
    describe_failure,
)
from dogmap.errors import DataSourceError
from dogmap.http import HttpClient, RequestMetrics

BASE_URL = "https://example.supabase.co"


class FakeResponse:
    def __init__(self, payload=None, status_code=200, headers=None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.content = b"" if payload is None else json.dumps(payload).encode("utf-8")

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    """Replays queued responses; exceptions in the queue are raised."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_source(responses, retry_max=1, metrics=None):
    client = HttpClient(
        BASE_URL,
        "anon-key",
        timeout=3,
        retry_max=retry_max,
        backoff_base=0.0,
        backoff_max=0.0,
        metrics=metrics,
    )
    client.session = FakeSession(responses)
    return SupabaseDataSource(client, animal_limit=100)


def test_fetch_animals_request_shape():
    rows = [{"id": 1, "latitude": 40.7, "longitude": -74.0}]
    source = make_source([FakeResponse(rows)])

    assert source.fetch_animals() == rows

    call = source.http.session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == f"{BASE_URL}/rest/v1/dogs"
    assert call["timeout"] == 3
    assert call["params"] == build_animals_params(100)
    assert call["params"]["limit"] == 100
    assert call["headers"]["apikey"] == "anon-key"
    assert call["headers"]["Authorization"] == "Bearer anon-key"


def test_fetch_emergencies_only_open():
    source = make_source([FakeResponse([])])

    assert source.fetch_emergencies() == []

    call = source.http.session.calls[0]
    assert call["url"] == f"{BASE_URL}/rest/v1/emergency_requests"
    assert call["params"]["status"] == "eq.open"
    assert call["params"] == build_emergencies_params()


def test_empty_body_is_an_empty_list():
    source = make_source([FakeResponse(None, status_code=200)])
    assert source.fetch_animals() == []


def test_retry_on_503_then_success():
    metrics = RequestMetrics()
    source = make_source(
        [FakeResponse(None, status_code=503), FakeResponse([{"id": 1}])],
        retry_max=3,
        metrics=metrics,
    )

    assert source.fetch_animals() == [{"id": 1}]
    assert metrics.network_fetches == 1
    assert metrics.retries == 1
    assert metrics.failures == 0
    assert len(source.http.session.calls) == 2


def test_retry_after_header_is_honoured(monkeypatch):
    slept = []
    monkeypatch.setattr("dogmap.http.time.sleep", slept.append)
    source = make_source(
        [FakeResponse(None, status_code=429, headers={"Retry-After": "0"}), FakeResponse([])],
        retry_max=2,
    )

    assert source.fetch_emergencies() == []
    assert slept == [0.0]


def test_exhausted_retries_raise_data_source_error():
    metrics = RequestMetrics()
    source = make_source(
        [FakeResponse(None, status_code=502), FakeResponse(None, status_code=502)],
        retry_max=2,
        metrics=metrics,
    )

    with pytest.raises(DataSourceError) as excinfo:
        source.fetch_animals()

    assert "http_502" in str(excinfo.value)
    assert metrics.failures == 1


def test_connection_error_raises_data_source_error():
    source = make_source([requests.ConnectionError("refused")])
    with pytest.raises(DataSourceError) as excinfo:
        source.fetch_emergencies()
    assert "unreachable" in str(excinfo.value)


def test_non_retryable_status_fails_fast():
    source = make_source([FakeResponse(None, status_code=401)], retry_max=3)
    with pytest.raises(DataSourceError):
        source.fetch_animals()
    assert len(source.http.session.calls) == 1


def test_unexpected_shape_raises():
    source = make_source([FakeResponse({"message": "oops"})])
    with pytest.raises(DataSourceError):
        source.fetch_animals()


def test_submit_workflow_posts_row():
    metrics = RequestMetrics()
    source = make_source([FakeResponse(None, status_code=201)], metrics=metrics)

    result = source.submit_workflow("walk_request", {"dog_id": "rex", "duration_minutes": 30})

    assert result.ok is True
    call = source.http.session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == f"{BASE_URL}/rest/v1/walk_requests"
    assert json.loads(call["data"]) == {"dog_id": "rex", "duration_minutes": 30}
    assert call["headers"]["Prefer"] == "return=minimal"
    assert metrics.network_submits == 1


def test_submit_workflow_failure_is_a_result():
    source = make_source([requests.Timeout("slow")])

    result = source.submit_workflow("dog_review", {"dog_id": "rex"})

    assert result.ok is False
    assert result.reason == "timeout"


def test_submit_unknown_workflow_kind():
    source = make_source([])
    with pytest.raises(ValueError):
        source.submit_workflow("adoption", {})


def test_from_env_requires_credentials(monkeypatch):
    for name in config.SUPABASE_URL_ENV_NAMES + config.SUPABASE_KEY_ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(ValueError):
        SupabaseDataSource.from_env()

    monkeypatch.setenv("EXPO_PUBLIC_SUPABASE_URL", BASE_URL + "/")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "k")
    source = SupabaseDataSource.from_env()
    assert source.http.base_url == BASE_URL
    assert source.animal_limit == config.ANIMAL_FETCH_LIMIT


def test_describe_failure():
    assert describe_failure(requests.Timeout()) == "timeout"
    assert describe_failure(requests.ConnectionError()) == "unreachable"
    assert describe_failure(ValueError("bad json")) == "bad json"


def test_request_metrics_rejects_unknown_kind():
    with pytest.raises(ValueError):
        RequestMetrics().inc_network("upload")
