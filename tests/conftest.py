"""Shared pytest fixtures for ibenc tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from ibenc.config import (
    AppConfig,
    Iperf3Config,
    LoggingConfig,
    MetricsConfig,
    PathsConfig,
    PrometheusConfig,
    RemoteWriteConfig,
    SchedulerConfig,
)
from ibenc.exporter import make_labels


def iperf_payload(
    sum_bps=None,
    sent_bps=None,
    received_bps=None,
    streams=None,
):
    """Build a trimmed iperf3 -J report with only the fields the parser reads."""
    end = {}
    if sum_bps is not None:
        end["sum"] = {"bits_per_second": sum_bps}
    if sent_bps is not None:
        end["sum_sent"] = {"bits_per_second": sent_bps, "sender": True}
    if received_bps is not None:
        end["sum_received"] = {"bits_per_second": received_bps, "sender": False}
    end["streams"] = streams if streams is not None else []
    return {"start": {"connected": []}, "intervals": [], "end": end}


def stream(rtt_us, rttvar_us):
    return {"socket": 5, "bits_per_second": 1.0, "rtt": rtt_us, "rttvar": rttvar_us}


@pytest.fixture
def labels():
    return make_labels("fra", "acme", "pro")


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        root_dir=tmp_path,
        prometheus=PrometheusConfig(url="https://prom.example.net/api/prom", username="123", password="secret"),
        iperf3=Iperf3Config(server="iperf.example.net", port=5201, duration=5),
        metrics=MetricsConfig(location="fra", isp_name="acme", package_name="pro"),
        remote_write=RemoteWriteConfig(),
        scheduler=SchedulerConfig(),
        paths=PathsConfig(logs_dir=tmp_path / "logs"),
        logging=LoggingConfig(),
    )


class FakeResponse:
    def __init__(self, status_code: int, text: str = ""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    """Replays canned responses and records every post."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": dict(headers or {}), "timeout": timeout})
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeClock:
    def __init__(self, value: int = 1_700_000_000_000):
        self.value = value

    def __call__(self) -> int:
        return self.value
