"""HTTP delivery of metrics to a Prometheus remote-write endpoint."""

from __future__ import annotations

import base64
import logging
import time
from typing import Callable, Dict, Iterable, Optional

import requests

from .. import __version__
from ..errors import RateLimitExceededError, RemoteWriteError, TransportError
from ..exporter import MetricSample
from .encoder import CONTENT_ENCODING, RemoteWriteEncoder
from .text import CONTENT_TYPE as TEXT_CONTENT_TYPE
from .text import render_text

LOGGER = logging.getLogger(__name__)

PUSH_PATH = "/push"
TEXT_PATH = "/metrics/write"
REMOTE_WRITE_VERSION = "0.1.0"
USER_AGENT = f"ibenc/{__version__}"
TOO_MANY_REQUESTS = 429

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 1.0
DEFAULT_TIMEOUT_SECONDS = 30.0


def basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


class RemoteWriter:
    """Sends samples to Grafana Cloud (or any remote-write receiver).

    Rate-limited pushes (HTTP 429) are retried with exponential backoff,
    ``backoff_base * 2 ** attempt``. Any other failure is raised
    straight away.
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        encoder: Optional[RemoteWriteEncoder] = None,
        session: Optional[requests.Session] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = url.rstrip("/")
        self.username = username
        self.password = password
        self.encoder = encoder or RemoteWriteEncoder()
        self.session = session or requests.Session()
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.timeout = timeout
        self.sleep = sleep

    @classmethod
    def from_config(cls, config, **kwargs) -> "RemoteWriter":
        return cls(
            url=config.prometheus.url,
            username=config.prometheus.username,
            password=config.prometheus.password,
            max_attempts=config.remote_write.max_attempts,
            backoff_base=config.remote_write.backoff_seconds,
            timeout=config.remote_write.timeout_seconds,
            **kwargs,
        )

    @property
    def push_url(self) -> str:
        return self.base_url + PUSH_PATH

    @property
    def text_url(self) -> str:
        return self.base_url + TEXT_PATH

    def _headers(self, content_type: str) -> Dict[str, str]:
        return {
            "Authorization": basic_auth_header(self.username, self.password),
            "Content-Type": content_type,
            "User-Agent": USER_AGENT,
        }

    def _post(self, url: str, body: bytes, headers: Dict[str, str]) -> requests.Response:
        try:
            return self.session.post(url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"failed to send request to {url}: {exc}") from exc

    def write_metrics(self, samples: Iterable[MetricSample]) -> None:
        self.push(self.encoder.encode(samples))

    def push(self, payload: bytes) -> None:
        headers = self._headers("application/x-protobuf")
        headers["Content-Encoding"] = CONTENT_ENCODING
        headers["X-Prometheus-Remote-Write-Version"] = REMOTE_WRITE_VERSION

        body = ""
        for attempt in range(self.max_attempts):
            # fresh copy per attempt, nothing is shared with the previous request
            response = self._post(self.push_url, bytes(payload), headers)
            if _is_success(response):
                LOGGER.debug("Remote write accepted with status %d", response.status_code)
                return

            body = response.text
            if response.status_code != TOO_MANY_REQUESTS:
                raise RemoteWriteError(response.status_code, body)

            if attempt < self.max_attempts - 1:
                wait = self.backoff_base * (2 ** attempt)
                LOGGER.warning(
                    "Rate limited. Retrying in %.1fs... (attempt %d/%d)",
                    wait,
                    attempt + 1,
                    self.max_attempts,
                )
                self.sleep(wait)

        raise RateLimitExceededError(self.max_attempts, body)

    def write_metrics_text(self, samples: Iterable[MetricSample]) -> None:
        body = render_text(samples).encode("utf-8")
        response = self._post(self.text_url, body, self._headers(TEXT_CONTENT_TYPE))
        if not _is_success(response):
            raise RemoteWriteError(response.status_code, response.text)
