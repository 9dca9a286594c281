"""Entity data source backed by the hosted PostgREST API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import requests

from . import config
from .errors import DataSourceError
from .http import HttpClient, RequestMetrics
from .models import SubmissionResult

logger = logging.getLogger(__name__)


class EntityDataSource(Protocol):
    def fetch_animals(self) -> List[Dict[str, Any]]:
        ...

    def fetch_emergencies(self) -> List[Dict[str, Any]]:
        ...

    def submit_workflow(self, kind: str, payload: Dict[str, Any]) -> SubmissionResult:
        ...


class SupabaseDataSource:
    def __init__(
        self,
        http_client: HttpClient,
        animal_limit: Optional[int] = None,
    ) -> None:
        self.http = http_client
        self.animal_limit = animal_limit if animal_limit is not None else config.ANIMAL_FETCH_LIMIT

    @classmethod
    def from_env(cls, metrics: Optional[RequestMetrics] = None) -> "SupabaseDataSource":
        url, key = config.get_supabase_credentials()
        if not url or not key:
            raise ValueError(
                "Missing environment variables: " + ", ".join(config.validate_environment())
            )
        http_client = HttpClient(
            url,
            key,
            timeout=config.HTTP_TIMEOUT_SECONDS,
            retry_max=config.HTTP_RETRY_MAX,
            backoff_base=config.HTTP_BACKOFF_BASE,
            backoff_max=config.HTTP_BACKOFF_MAX,
            metrics=metrics,
        )
        return cls(http_client)

    def fetch_animals(self) -> List[Dict[str, Any]]:
        params = build_animals_params(self.animal_limit)
        return self._fetch_rows(config.ANIMALS_TABLE, params)

    def fetch_emergencies(self) -> List[Dict[str, Any]]:
        params = build_emergencies_params()
        return self._fetch_rows(config.EMERGENCIES_TABLE, params)

    def submit_workflow(self, kind: str, payload: Dict[str, Any]) -> SubmissionResult:
        table = config.WORKFLOW_TABLES.get(kind)
        if table is None:
            raise ValueError(f"Unknown workflow kind: {kind}")
        try:
            self.http.post_json(
                table_path(table),
                payload,
                extra_headers={"Prefer": "return=minimal"},
            )
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Workflow submission %s failed: %s", kind, exc)
            return SubmissionResult(ok=False, reason=describe_failure(exc))
        return SubmissionResult(ok=True)

    def _fetch_rows(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            data = self.http.get_json(table_path(table), params=params)
        except (requests.RequestException, ValueError) as exc:
            raise DataSourceError(f"Failed to load {table}: {describe_failure(exc)}") from exc
        if data is None:
            return []
        if not isinstance(data, list):
            raise DataSourceError(f"Unexpected response shape for {table}: {type(data).__name__}")
        return data


def table_path(table: str) -> str:
    return f"{config.REST_PREFIX}/{table}"


def build_animals_params(limit: int) -> Dict[str, Any]:
    return {
        "select": "*",
        "latitude": "not.is.null",
        "longitude": "not.is.null",
        "limit": int(limit),
    }


def build_emergencies_params() -> Dict[str, Any]:
    return {
        "select": "*",
        "status": f"eq.{config.EMERGENCY_STATUS_OPEN}",
        "latitude": "not.is.null",
        "longitude": "not.is.null",
    }


def describe_failure(exc: Exception) -> str:
    if isinstance(exc, requests.Timeout):
        return "timeout"
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return f"http_{exc.response.status_code}"
    if isinstance(exc, requests.ConnectionError):
        return "unreachable"
    return str(exc) or type(exc).__name__
