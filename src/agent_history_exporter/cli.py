# Copyright (c) 2026, WSO2 LLC. (https://www.wso2.com).
#
# WSO2 LLC. licenses this file to you under the Apache License,
# Version 2.0 (the "License"); you may not use this file except
# in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.

"""
Command line entry point.

Replays spans recorded in a JSON file through the exporter, either against
the configured history API or, with --dry-run, into memory. A JSON summary
is printed to stdout.

Usage:
    agent-history-exporter replay spans.json
    agent-history-exporter replay spans.json --dry-run --debug
"""

from typing import List, Optional
import argparse
import json
import logging
import sys

from pydantic import ValidationError

from .config import ExporterConfig
from .errors import ConfigurationError, SpanLoadError
from .exporter import AgentHistoryExporter
from .logging_utils import PACKAGE_LOGGER, configure_logging
from .sink import HistorySink, HttpHistorySink, InMemoryHistorySink
from .trace.loader import load_spans


logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="agent-history-exporter",
        description="Export AI SDK spans as multi-agent histories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser("replay", help="Replay spans from a JSON file")
    replay.add_argument("file", help="JSON file with a list of spans or an object with a 'spans' list")
    replay.add_argument(
        "--dry-run",
        action="store_true",
        help="Write histories to memory instead of the history API and print them",
    )
    replay.add_argument("--debug", action="store_true", help="Enable debug logging")
    replay.add_argument("--json-logs", action="store_true", help="Emit logs as single-line JSON")

    return parser.parse_args(argv)


def build_sink(config: ExporterConfig, dry_run: bool) -> HistorySink:
    """In-memory sink for dry runs, otherwise the HTTP sink (requires credentials)."""
    if dry_run:
        return InMemoryHistorySink()
    if not config.public_key or not config.secret_key:
        raise ConfigurationError(
            "AGENT_EXPORTER_PUBLIC_KEY and AGENT_EXPORTER_SECRET_KEY must be set (or use --dry-run)"
        )
    return HttpHistorySink.from_config(config)


def replay(args: argparse.Namespace) -> int:
    try:
        config = ExporterConfig()
    except ValidationError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    configure_logging(debug=args.debug or config.debug, json_output=args.json_logs)

    try:
        spans = load_spans(args.file)
        sink = build_sink(config, args.dry_run)
    except (SpanLoadError, ConfigurationError) as e:
        logger.error("%s", e)
        return 1

    logger.info("Replaying %d spans from %s", len(spans), args.file)

    exporter = AgentHistoryExporter(config=config, sink=sink, logger=logging.getLogger(PACKAGE_LOGGER))
    result = exporter.export(spans)
    exporter.shutdown()

    summary = {"result": result.name, **exporter.stats.to_dict()}
    if isinstance(sink, InMemoryHistorySink):
        summary.update(sink.summary())
    print(json.dumps(summary, indent=2, default=str))

    return 0 if result.name == "SUCCESS" else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    if args.command == "replay":
        return replay(args)
    return 2


if __name__ == "__main__":
    sys.exit(main())
