"""Dual-direction benchmark orchestration."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..errors import BothDirectionsFailedError, ProbeExecutionError
from .models import PACKET_LOSS_NOT_MEASURED, CombinedMeasurement, DirectionalProbeResult

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 2

ProbeRunner = Callable[[str, int, int, bool], DirectionalProbeResult]


def merge_min_nonzero(first: float, second: float) -> float:
    """Smaller of two readings, where zero means the direction reported nothing."""
    if first and second:
        return min(first, second)
    return first or second or 0.0


class MeasurementManager:
    def __init__(self, runner: ProbeRunner, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.runner = runner
        self.max_attempts = max_attempts

    def run_direction(self, server: str, port: int, duration: int, reverse: bool) -> DirectionalProbeResult:
        """Run one direction, retrying immediately until it succeeds or attempts run out."""
        direction = "Download" if reverse else "Upload"
        last_error: Optional[ProbeExecutionError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.runner(server, port, duration, reverse)
            except ProbeExecutionError as exc:
                last_error = exc
                if attempt < self.max_attempts:
                    LOGGER.warning("%s test attempt %d failed, retrying: %s", direction, attempt, exc)
                else:
                    LOGGER.warning("%s test attempt %d failed: %s", direction, attempt, exc)

        LOGGER.warning("%s test failed after %d attempts", direction, self.max_attempts)
        raise last_error  # type: ignore[misc]

    def _try_direction(
        self, server: str, port: int, duration: int, reverse: bool
    ) -> Optional[DirectionalProbeResult]:
        try:
            return self.run_direction(server, port, duration, reverse)
        except ProbeExecutionError:
            return None

    def run_both_directions(self, server: str, port: int, duration: int) -> CombinedMeasurement:
        download = self._try_direction(server, port, duration, reverse=True)
        upload = self._try_direction(server, port, duration, reverse=False)

        download_mbps = download.mbps if download else 0.0
        if upload is None and download_mbps == 0:
            raise BothDirectionsFailedError("both download and upload tests failed")

        if upload is None:
            LOGGER.warning("Upload test unavailable, reporting download results only")

        measurement = CombinedMeasurement(
            download_mbps=download_mbps,
            upload_mbps=upload.mbps if upload else 0.0,
            latency_ms=merge_min_nonzero(
                download.rtt_ms if download else 0.0, upload.rtt_ms if upload else 0.0
            ),
            jitter_ms=merge_min_nonzero(
                download.jitter_ms if download else 0.0, upload.jitter_ms if upload else 0.0
            ),
            packet_loss_percent=PACKET_LOSS_NOT_MEASURED,
        )
        LOGGER.info(
            "Benchmark against %s:%d: down %.2f Mbps / up %.2f Mbps, latency %.2f ms, jitter %.2f ms",
            server,
            port,
            measurement.download_mbps,
            measurement.upload_mbps,
            measurement.latency_ms,
            measurement.jitter_ms,
        )
        return measurement
