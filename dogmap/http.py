"""HTTP client for the hosted REST API with retry/backoff and request metrics."""
from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


@dataclass
class RequestMetrics:
    network_fetches: int = 0
    network_submits: int = 0
    retries: int = 0
    failures: int = 0

    def inc_network(self, kind: str) -> None:
        if kind == "fetch":
            self.network_fetches += 1
        elif kind == "submit":
            self.network_submits += 1
        else:
            raise ValueError(f"Unknown request kind: {kind}")


class HttpClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = 20,
        retry_max: int = 5,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.retry_max = max(1, int(retry_max))
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.metrics = metrics if metrics is not None else RequestMetrics()
        self.session = requests.Session()

    def _headers(self, extra_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        self.metrics.inc_network("fetch")
        resp = self._request("GET", url, params=params, headers=self._headers())
        return self._decode(resp, url)

    def post_json(
        self,
        path: str,
        body: Any,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        self.metrics.inc_network("submit")
        resp = self._request(
            "POST", url, data=json.dumps(body), headers=self._headers(extra_headers)
        )
        return self._decode(resp, url)

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        for attempt in range(1, self.retry_max + 1):
            try:
                resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except requests.RequestException as exc:
                logger.warning("%s %s failed: %s (attempt %s)", method, url, exc, attempt)
                if attempt >= self.retry_max:
                    self.metrics.failures += 1
                    raise
                self.metrics.retries += 1
                self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if 200 <= status < 300:
                return resp

            if status in RETRYABLE_STATUSES:
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt >= self.retry_max:
                    self.metrics.failures += 1
                    resp.raise_for_status()
                self.metrics.retries += 1
                if not self._sleep_retry_after(resp):
                    self._sleep_backoff(attempt)
                continue

            # Non-retryable
            logger.error("HTTP %s from %s", status, url)
            self.metrics.failures += 1
            resp.raise_for_status()

        raise RuntimeError("Unexpected HTTP retry loop exit")

    @staticmethod
    def _decode(resp: requests.Response, url: str) -> Any:
        if resp.status_code == 204 or not (resp.content or b"").strip():
            return None
        try:
            return resp.json()
        except ValueError:
            logger.error("Non-JSON response from %s", url)
            raise

    def _sleep_backoff(self, attempt: int) -> None:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        time.sleep(base + jitter)

    def _sleep_retry_after(self, resp: requests.Response) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max))
        time.sleep(delay)
        return True
