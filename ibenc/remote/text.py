"""Prometheus text exposition rendering for the plain-text write path."""

from __future__ import annotations

from typing import Dict, Iterable

from prometheus_client import CollectorRegistry
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, UnknownMetricFamily
from prometheus_client.exposition import generate_latest

from ..exporter import MetricKind, MetricSample

CONTENT_TYPE = "text/plain; charset=utf-8"

FAMILY_TYPES = {
    MetricKind.GAUGE: GaugeMetricFamily,
    MetricKind.COUNTER: CounterMetricFamily,
    MetricKind.UNTYPED: UnknownMetricFamily,
}


class SampleCollector:
    """Exposes already-captured samples, with their own timestamps, to a registry."""

    def __init__(self, samples: Iterable[MetricSample]):
        self.samples = [sample for sample in samples if sample.kind in FAMILY_TYPES]

    def collect(self):
        families: Dict[str, object] = {}
        for sample in self.samples:
            family = families.get(sample.name)
            if family is None:
                family = FAMILY_TYPES[sample.kind](
                    sample.name, sample.help, labels=[name for name, _ in sample.labels]
                )
                families[sample.name] = family
            family.add_metric(
                [value for _, value in sample.labels],
                sample.value,
                # exposition truncates seconds * 1000, so aim at the middle of the millisecond
                timestamp=(sample.timestamp_ms + 0.5) / 1000,
            )
        return list(families.values())


def build_registry(samples: Iterable[MetricSample]) -> CollectorRegistry:
    registry = CollectorRegistry(auto_describe=False)
    registry.register(SampleCollector(samples))
    return registry


def render_text(samples: Iterable[MetricSample]) -> str:
    """Render samples as exposition text, one HELP/TYPE header per family."""
    return generate_latest(build_registry(samples)).decode("utf-8")
