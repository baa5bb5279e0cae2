"""Application bootstrap helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

# defined before the submodule imports, ibenc.remote.writer reads it
__version__ = "1.0.0"

from .config import AppConfig, load_config_with_defaults
from .exporter import Clock, MetricExporter, MetricSample, labels_from_config, now_ms
from .logging_setup import configure_logging
from .measurements.iperf_runner import IperfRunner
from .measurements.manager import MeasurementManager, ProbeRunner
from .remote.writer import RemoteWriter
from .scheduler import SchedulerService

LOGGER = logging.getLogger(__name__)

# Fixed values used by the mock and debug sends
MOCK_METRICS = (
    ("download_speed_mbps", "Download speed in Mbps", 85.5),
    ("upload_speed_mbps", "Upload speed in Mbps", 42.3),
    ("latency_ms", "Latency in milliseconds", 45.23),
)


class BenchmarkContext:
    """Wires the benchmark pipeline for one configuration."""

    def __init__(
        self,
        config: AppConfig,
        runner: Optional[ProbeRunner] = None,
        writer: Optional[RemoteWriter] = None,
        clock: Clock = now_ms,
    ):
        self.config = config
        self.measurements = MeasurementManager(
            runner or IperfRunner(binary=config.iperf3.binary),
            max_attempts=config.iperf3.max_attempts,
        )
        self.exporter = MetricExporter(labels_from_config(config.metrics), clock=clock)
        self.writer = writer or RemoteWriter.from_config(config)
        self.scheduler = SchedulerService(config, self.run_once)

    def run_once(self, dry_run: bool = False) -> Optional[List[MetricSample]]:
        """Benchmark both directions and report the result.

        Returns the samples that were (or, with ``dry_run``, would have been)
        sent, or None when the run produced no throughput at all.
        """
        iperf3 = self.config.iperf3
        LOGGER.info("Starting iperf3 benchmark against %s:%d", iperf3.server, iperf3.port)
        measurement = self.measurements.run_both_directions(iperf3.server, iperf3.port, iperf3.duration)

        if not measurement.has_throughput:
            LOGGER.error(
                "Test results are 0 - iperf3 connection failed. Check that %s:%d is reachable "
                "and not firewalled. No metrics will be sent.",
                iperf3.server,
                iperf3.port,
            )
            return None

        samples = self.exporter.export(measurement)
        if dry_run:
            for sample in samples:
                LOGGER.info("Dry run: %s = %s", sample.name, sample.value)
            return samples

        self.send(samples)
        return samples

    def send(self, samples: List[MetricSample]) -> None:
        LOGGER.info("Sending %d metrics to %s", len(samples), self.config.prometheus.url)
        if self.config.remote_write.format == "text":
            self.writer.write_metrics_text(samples)
        else:
            self.writer.write_metrics(samples)
        LOGGER.info("Metrics sent successfully")

    def send_mock(self) -> List[MetricSample]:
        samples = [self.exporter.single_sample(*metric) for metric in MOCK_METRICS]
        LOGGER.info("Sending mock metrics for testing")
        self.send(samples)
        return samples

    def send_debug_metric(self) -> MetricSample:
        sample = self.exporter.single_sample(*MOCK_METRICS[0])
        self.send([sample])
        return sample


def bootstrap(config_path: Optional[str] = None, log_level: Optional[str] = None) -> BenchmarkContext:
    """Load configuration, set up logging and wire dependencies."""

    config_file = str(Path(config_path).expanduser()) if config_path else None
    config = load_config_with_defaults(config_file)
    configure_logging(config, level=log_level)
    return BenchmarkContext(config)
