"""iperf3 execution and JSON report parsing."""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Dict, List, Optional

from ..errors import ProbeExecutionError
from .models import DirectionalProbeResult

LOGGER = logging.getLogger(__name__)

MICROSECONDS_PER_MS = 1000.0


def build_iperf_command(
    server: str, port: int, duration: int, reverse: bool, binary: str = "iperf3"
) -> List[str]:
    cmd = [binary, "-c", server, "-p", str(port), "-t", str(duration), "-J"]
    if reverse:
        # server sends, client receives: download direction
        cmd.append("-R")
    return cmd


def decode_iperf_output(raw: str, reverse: bool) -> DirectionalProbeResult:
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProbeExecutionError(
            f"failed to parse iperf3 JSON output: {exc}", output=raw or ""
        ) from exc
    if not isinstance(payload, dict):
        raise ProbeExecutionError("iperf3 JSON output is not an object", output=raw)
    try:
        return parse_iperf_payload(payload, reverse)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ProbeExecutionError(f"unexpected iperf3 report layout: {exc}", output=raw) from exc


def parse_iperf_payload(payload: Dict, reverse: bool) -> DirectionalProbeResult:
    end_section = payload.get("end") or {}
    return DirectionalProbeResult(
        throughput_bps=_select_bits_per_second(end_section, reverse),
        rtt_ms=_last_stream_value(end_section, "rtt"),
        jitter_ms=_last_stream_value(end_section, "rttvar"),
        reverse=reverse,
    )


def _select_bits_per_second(end_section: Dict, reverse: bool) -> float:
    # Reverse runs count what we received, forward runs what we sent
    summary_key = "sum_received" if reverse else "sum_sent"
    preferred = _bits_per_second(end_section.get(summary_key))
    if preferred > 0:
        return preferred
    return _bits_per_second(end_section.get("sum"))


def _bits_per_second(summary: Optional[Dict]) -> float:
    if not summary:
        return 0.0
    return float(summary.get("bits_per_second") or 0.0)


def _last_stream_value(end_section: Dict, key: str) -> float:
    streams = end_section.get("streams") or []
    if not streams:
        return 0.0
    # TCP streams report rtt/rttvar under "sender" in newer iperf3 releases
    last = streams[-1]
    value = last.get(key)
    if value is None:
        value = (last.get("sender") or {}).get(key)
    return float(value or 0) / MICROSECONDS_PER_MS


class IperfRunner:
    """Runs one iperf3 client test per call and returns the parsed result."""

    def __init__(self, binary: str = "iperf3", timeout_margin: int = 30):
        self.binary = binary
        self.timeout_margin = timeout_margin

    def __call__(self, server: str, port: int, duration: int, reverse: bool) -> DirectionalProbeResult:
        return self.run(server, port, duration, reverse)

    def run(self, server: str, port: int, duration: int, reverse: bool) -> DirectionalProbeResult:
        cmd = build_iperf_command(server, port, duration, reverse, binary=self.binary)
        LOGGER.info("Running iperf3 command: %s", " ".join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=duration + self.timeout_margin,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProbeExecutionError(
                f"iperf3 did not finish within {exc.timeout} seconds",
                output=_as_text(exc.stdout) + _as_text(exc.stderr),
            ) from exc
        except OSError as exc:
            raise ProbeExecutionError(f"could not start {self.binary}: {exc}") from exc

        output = (completed.stdout or "") + (completed.stderr or "")
        if completed.returncode != 0:
            raise ProbeExecutionError(
                f"iperf3 command failed with exit code {completed.returncode}",
                output=output,
                returncode=completed.returncode,
            )

        result = decode_iperf_output(completed.stdout, reverse)
        LOGGER.debug(
            "iperf3 %s result: %.2f Mbps, rtt %.2f ms, rttvar %.2f ms",
            result.direction,
            result.mbps,
            result.rtt_ms,
            result.jitter_ms,
        )
        return result


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
