"""Projection of a combined measurement into named gauge samples."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .config import MetricsConfig
from .measurements.models import CombinedMeasurement

LabelSet = Tuple[Tuple[str, str], ...]
Clock = Callable[[], int]


class MetricKind(enum.Enum):
    GAUGE = "gauge"
    COUNTER = "counter"
    UNTYPED = "untyped"
    HISTOGRAM = "histogram"
    SUMMARY = "summary"


# Kinds that carry a single float value and can be flattened into one series
SCALAR_KINDS = frozenset({MetricKind.GAUGE, MetricKind.COUNTER, MetricKind.UNTYPED})


@dataclass(frozen=True)
class MetricSample:
    name: str
    help: str
    value: float
    labels: LabelSet
    timestamp_ms: int
    # None means the kind was never set, which is not the same as UNTYPED
    kind: Optional[MetricKind] = MetricKind.GAUGE

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS


# (name, help, CombinedMeasurement attribute), in export order
METRIC_DEFINITIONS = (
    ("download_speed_mbps", "Download speed in Mbps", "download_mbps"),
    ("upload_speed_mbps", "Upload speed in Mbps", "upload_mbps"),
    ("jitter_ms", "Jitter in milliseconds", "jitter_ms"),
    ("latency_ms", "Latency in milliseconds", "latency_ms"),
    ("packet_loss_percent", "Packet loss percentage", "packet_loss_percent"),
)


def now_ms() -> int:
    return int(time.time() * 1000)


def make_labels(location: str, isp_name: str = "", package_name: str = "") -> LabelSet:
    return (
        ("location", location),
        ("isp_name", isp_name),
        ("package_name", package_name),
    )


def labels_from_config(metrics: MetricsConfig) -> LabelSet:
    return make_labels(metrics.location, metrics.isp_name, metrics.package_name)


def export_metrics(
    measurement: CombinedMeasurement, labels: LabelSet, clock: Clock = now_ms
) -> List[MetricSample]:
    timestamp = clock()
    return [
        MetricSample(
            name=name,
            help=help_text,
            value=float(getattr(measurement, attribute)),
            labels=labels,
            timestamp_ms=timestamp,
        )
        for name, help_text, attribute in METRIC_DEFINITIONS
    ]


class MetricExporter:
    """Binds a label set and clock so callers only pass measurements."""

    def __init__(self, labels: LabelSet, clock: Clock = now_ms):
        self.labels = labels
        self.clock = clock

    def export(self, measurement: CombinedMeasurement) -> List[MetricSample]:
        return export_metrics(measurement, self.labels, clock=self.clock)

    def single_sample(self, name: str, help_text: str, value: float) -> MetricSample:
        return MetricSample(
            name=name,
            help=help_text,
            value=float(value),
            labels=self.labels,
            timestamp_ms=self.clock(),
        )
