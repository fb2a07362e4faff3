#!/usr/bin/env python3
"""
prom-replay - replay recorded Prometheus remote storage requests.

Usage:
    promreplay record replay capture.zip
    promreplay record replay -p 8 --duration 5m s3://bucket/captures/day1.zip
    promreplay record inspect entry.json -f yaml
    promreplay record list https://host/captures/day1.zip
"""

import argparse
import logging
import sys

from promreplay.archive import parse_record, read_archives
from promreplay.blobsource import BlobSource, make_s3_client, scheme_of
from promreplay.config import build_config
from promreplay.engine import run_replay
from promreplay.errors import ReplayToolError
from promreplay.render import FORMATS, render

logger = logging.getLogger("promreplay")

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def setup_logging(level="INFO"):
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def blob_source(locations):
    """Build the blob source, creating an S3 client only when needed."""
    s3_client = None
    if any(scheme_of(loc) == "s3" for loc in locations):
        s3_client = make_s3_client()
    return BlobSource(s3_client=s3_client)


def cmd_replay(args):
    config = build_config(
        {
            "timeout": args.timeout,
            "duration": args.duration,
            "parallel": args.parallel,
            "metrics_port": args.metrics_port,
        },
        args.config,
    )

    logger.info("# reading records from %d archives ...", len(args.archives))
    records = read_archives(args.archives, blob_source(args.archives))
    logger.info("# read %d records ...", len(records))

    run_replay(records, config)
    return 0


def cmd_inspect(args):
    raw = BlobSource().fetch(args.file)
    render(parse_record(raw).to_dict(), args.format)
    return 0


def cmd_list(args):
    records = read_archives(args.archives, blob_source(args.archives))
    render(
        [
            {
                "modtime": r.modtime.isoformat() if r.modtime else None,
                "method": r.request.method,
                "url": r.request.url,
                "request_size": len(r.request.body),
                "status": r.response.status,
                "response_size": len(r.response.body),
            }
            for r in records
        ],
        args.format,
    )
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog="promreplay",
        description="CLI for recorded Prometheus remote storage requests",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")

    commands = parser.add_subparsers(dest="command", required=True)
    record = commands.add_parser("record", help="Recorded Prometheus requests")
    sub = record.add_subparsers(dest="record_command", required=True)

    replay = sub.add_parser("replay", help="Replay recorded requests against their endpoints")
    replay.add_argument("archives", nargs="+", help="Archive path, http(s):// or s3:// URL")
    replay.add_argument("--timeout", default=None, help="Max round trip time (default: 60s)")
    replay.add_argument("--duration", default=None,
                        help="Keep sending requests over a period of time (default: disabled)")
    replay.add_argument("-p", "--parallel", type=int, default=None,
                        help="Controls parallelism level for requests (default: 1)")
    replay.add_argument("--config", default=None, help="YAML file with replay defaults")
    replay.add_argument("--metrics-port", type=int, default=None,
                        help="Expose outcome counters for Prometheus on this port")
    replay.set_defaults(func=cmd_replay)

    inspect = sub.add_parser("inspect", help="Decode a single record document ('-' for stdin)")
    inspect.add_argument("file")
    inspect.add_argument("-f", "--format", choices=FORMATS, default="json",
                         help="Format type of output")
    inspect.set_defaults(func=cmd_inspect)

    ls = sub.add_parser("list", help="List the records contained in archives")
    ls.add_argument("archives", nargs="+")
    ls.add_argument("-f", "--format", choices=FORMATS, default="json",
                    help="Format type of output")
    ls.set_defaults(func=cmd_list)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else args.log_level.upper())

    try:
        return args.func(args)
    except ReplayToolError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
