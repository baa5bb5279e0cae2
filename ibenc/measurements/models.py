"""Shared value records for directional results and combined measurements."""

from __future__ import annotations

from dataclasses import dataclass

BITS_PER_MEGABIT = 1_000_000

# iperf3 reports retransmits, never loss; the gauge is always sent as zero
PACKET_LOSS_NOT_MEASURED = 0.0


@dataclass(frozen=True)
class DirectionalProbeResult:
    throughput_bps: float = 0.0
    rtt_ms: float = 0.0
    jitter_ms: float = 0.0
    reverse: bool = False

    @property
    def mbps(self) -> float:
        return self.throughput_bps / BITS_PER_MEGABIT

    @property
    def direction(self) -> str:
        return "download" if self.reverse else "upload"


@dataclass(frozen=True)
class CombinedMeasurement:
    download_mbps: float = 0.0
    upload_mbps: float = 0.0
    latency_ms: float = 0.0
    jitter_ms: float = 0.0
    packet_loss_percent: float = PACKET_LOSS_NOT_MEASURED

    @property
    def has_throughput(self) -> bool:
        """False when both directions came back empty; such runs are never reported."""
        return self.download_mbps != 0 or self.upload_mbps != 0
