"""Entry point for running the iperf3 benchmark reporter."""

from __future__ import annotations

import argparse
import logging
import sys

from ibenc import bootstrap
from ibenc.errors import IbencError

LOGGER = logging.getLogger("ibenc.main")


def positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{text!r} is not an integer") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return value


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Benchmark a link with iperf3 and push results via remote write")
    parser.add_argument("--config", help="Path to ibenc.yaml", default="ibenc.yaml")
    parser.add_argument(
        "--interval",
        type=positive_int,
        default=None,
        metavar="MINUTES",
        help="Keep running and benchmark every MINUTES (defaults to scheduler.interval_minutes when enabled)",
    )
    parser.add_argument(
        "--format",
        choices=("protobuf", "text"),
        default=None,
        help="Override remote_write.format",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--mock", action="store_true", help="Send fixed mock metrics instead of benchmarking")
    mode.add_argument("--debug-metric", action="store_true", help="Send a single download metric and print it")
    mode.add_argument("--dry-run", action="store_true", help="Benchmark and log the metrics without sending them")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    return parser.parse_args(argv)


def _print_sample(sample) -> None:
    print(f"Metric Name: {sample.name}")
    print(f"Metric Help: {sample.help}")
    print(f"Metric Type: {sample.kind.name}")
    print(f"Metric Value: {sample.value}")
    print(f"Metric Timestamp: {sample.timestamp_ms}")
    print("Labels:")
    for name, value in sample.labels:
        print(f"  {name} = {value}")


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        context = bootstrap(args.config, log_level="DEBUG" if args.verbose else None)
    except IbencError as exc:
        print(f"Failed to load configuration: {exc}", file=sys.stderr)
        return 1

    if args.format:
        context.config.remote_write.format = args.format

    try:
        if args.mock:
            context.send_mock()
        elif args.debug_metric:
            _print_sample(context.send_debug_metric())
        elif args.interval is not None or context.config.scheduler.enabled:
            context.scheduler.start(args.interval, dry_run=args.dry_run)
        else:
            context.run_once(dry_run=args.dry_run)
    except IbencError as exc:
        LOGGER.error("Run failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
