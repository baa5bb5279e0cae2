import json
import subprocess
from unittest import mock

import pytest

from conftest import iperf_payload, stream
from ibenc.errors import ProbeExecutionError
from ibenc.measurements.iperf_runner import (
    IperfRunner,
    build_iperf_command,
    decode_iperf_output,
    parse_iperf_payload,
)
from ibenc.measurements.manager import MeasurementManager


def test_reverse_run_prefers_received_summary():
    payload = iperf_payload(sum_bps=1_000_000, sent_bps=90_000_000, received_bps=85_500_000)
    result = parse_iperf_payload(payload, reverse=True)
    assert result.throughput_bps == 85_500_000
    assert result.mbps == pytest.approx(85.5)
    assert result.direction == "download"


def test_forward_run_prefers_sent_summary():
    payload = iperf_payload(sum_bps=1_000_000, sent_bps=42_300_000, received_bps=41_000_000)
    result = parse_iperf_payload(payload, reverse=False)
    assert result.mbps == pytest.approx(42.3)
    assert result.direction == "upload"


@pytest.mark.parametrize("reverse", [True, False])
def test_falls_back_to_generic_summary_when_preferred_is_zero(reverse):
    payload = iperf_payload(sum_bps=12_000_000, sent_bps=0, received_bps=0)
    assert parse_iperf_payload(payload, reverse=reverse).mbps == pytest.approx(12.0)


def test_missing_summaries_yield_zero_throughput():
    assert parse_iperf_payload({"end": {}}, reverse=True).throughput_bps == 0.0
    assert parse_iperf_payload({}, reverse=False).throughput_bps == 0.0


def test_latency_and_jitter_come_from_last_stream():
    payload = iperf_payload(
        received_bps=10_000_000,
        streams=[stream(90_000, 9_000), stream(45_230, 2_100)],
    )
    result = parse_iperf_payload(payload, reverse=True)
    assert result.rtt_ms == pytest.approx(45.23)
    assert result.jitter_ms == pytest.approx(2.1)


def test_no_streams_leaves_latency_and_jitter_at_zero():
    result = parse_iperf_payload(iperf_payload(received_bps=10_000_000), reverse=True)
    assert result.rtt_ms == 0.0
    assert result.jitter_ms == 0.0


def test_rtt_nested_under_sender_is_read():
    payload = iperf_payload(sent_bps=1.0, streams=[{"sender": {"rtt": 3000, "rttvar": 500}}])
    result = parse_iperf_payload(payload, reverse=False)
    assert result.rtt_ms == pytest.approx(3.0)
    assert result.jitter_ms == pytest.approx(0.5)


def test_decode_rejects_garbage_and_keeps_output():
    with pytest.raises(ProbeExecutionError) as excinfo:
        decode_iperf_output("iperf3: error - unable to connect", reverse=True)
    assert "unable to connect" in excinfo.value.output
    assert "unable to connect" in str(excinfo.value)


def test_build_command_adds_reverse_flag_only_for_download():
    assert build_iperf_command("srv", 5201, 10, reverse=True) == [
        "iperf3", "-c", "srv", "-p", "5201", "-t", "10", "-J", "-R",
    ]
    assert "-R" not in build_iperf_command("srv", 5201, 10, reverse=False)


def test_runner_parses_successful_run():
    stdout = json.dumps(iperf_payload(received_bps=50_000_000, streams=[stream(10_000, 1_000)]))
    completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")
    with mock.patch("ibenc.measurements.iperf_runner.subprocess.run", return_value=completed) as run:
        result = IperfRunner()("srv", 5201, 10, True)

    assert result.mbps == pytest.approx(50.0)
    assert result.rtt_ms == pytest.approx(10.0)
    cmd = run.call_args[0][0]
    assert cmd[-1] == "-R"
    assert run.call_args[1]["timeout"] == 40


def test_runner_raises_on_non_zero_exit():
    completed = subprocess.CompletedProcess(
        args=[], returncode=1, stdout="", stderr="iperf3: error - the server is busy"
    )
    with mock.patch("ibenc.measurements.iperf_runner.subprocess.run", return_value=completed):
        with pytest.raises(ProbeExecutionError) as excinfo:
            IperfRunner().run("srv", 5201, 10, False)
    assert excinfo.value.returncode == 1
    assert "server is busy" in excinfo.value.output


def test_runner_wraps_missing_binary():
    with mock.patch(
        "ibenc.measurements.iperf_runner.subprocess.run", side_effect=FileNotFoundError("iperf3")
    ):
        with pytest.raises(ProbeExecutionError):
            IperfRunner(binary="iperf3").run("srv", 5201, 10, False)


def test_runner_wraps_timeout():
    with mock.patch(
        "ibenc.measurements.iperf_runner.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="iperf3", timeout=40, output=b"partial"),
    ):
        with pytest.raises(ProbeExecutionError) as excinfo:
            IperfRunner().run("srv", 5201, 10, False)
    assert "partial" in excinfo.value.output


@pytest.mark.parametrize(
    "raw",
    [
        '{"end": {"sum_received": {"bits_per_second": "n/a"}}}',
        '{"end": ["x"]}',
        '{"end": {"sum_received": {"bits_per_second": 1.0}, "streams": ["bad"]}}',
    ],
)
def test_wrongly_typed_report_is_an_execution_error(raw):
    with pytest.raises(ProbeExecutionError) as excinfo:
        decode_iperf_output(raw, reverse=True)
    assert excinfo.value.output == raw


def test_wrongly_typed_download_report_is_retried_then_upload_reported():
    bad = '{"end": {"sum_received": {"bits_per_second": "n/a"}}}'
    good = json.dumps(iperf_payload(sent_bps=10_000_000, streams=[stream(20_000, 1_000)]))
    outputs = [bad, bad, good]

    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(args=cmd, returncode=0, stdout=outputs.pop(0), stderr="")

    with mock.patch("ibenc.measurements.iperf_runner.subprocess.run", side_effect=fake_run) as run:
        measurement = MeasurementManager(IperfRunner(), max_attempts=2).run_both_directions("srv", 5201, 5)

    assert run.call_count == 3
    assert measurement.download_mbps == 0.0
    assert measurement.upload_mbps == pytest.approx(10.0)
    assert measurement.latency_ms == pytest.approx(20.0)
