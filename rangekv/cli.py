#!/usr/bin/env python3
"""
RangeKV Simulator Entry Point

Boots an in-process cluster and executes text commands against it.

Usage:
    python -m rangekv.cli                          # Read commands from stdin
    python -m rangekv.cli --script demo.txt        # Read commands from a file
    python -m rangekv.cli --nodes 7 --seed 42      # Custom bootstrap
    python -m rangekv.cli --debug                  # Enable debug logging

Commands:
    INSERT <key> <value>
    GET <key>
    UPDATE <key> <value>
    REMOVE <key>
    DUMP
    QUIT

Environment Variables:
    RANGEKV_NODE_COUNT          - Number of nodes
    RANGEKV_REPLICATION_FACTOR  - Replicas per range
    RANGEKV_MAX_KEY             - Largest valid key
    RANGEKV_SEED                - Placement seed
    RANGEKV_DEBUG               - Enable debug mode (true/false)
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Iterable, TextIO

from .client import ClusterClient
from .cluster.cluster import Cluster
from .cluster.config import ClusterConfig
from .config.settings import settings
from .protocol.commands import Response
from .protocol.parser import ProtocolParser, RequestType


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="RangeKV: range-partitioned replicated key-value store simulator",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--nodes",
        type=int,
        default=settings.NODE_COUNT,
        help="Number of nodes in the cluster",
    )

    parser.add_argument(
        "--replication-factor",
        type=int,
        default=settings.REPLICATION_FACTOR,
        help="Replicas per range",
    )

    parser.add_argument(
        "--max-key",
        type=int,
        default=settings.MAX_KEY,
        help="Largest valid key",
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=settings.SEED,
        help="Seed for leader placement and entry-node choice",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.REQUEST_TIMEOUT,
        help="Inter-node request timeout in seconds",
    )

    parser.add_argument(
        "--colocate-leaseholder",
        action="store_true",
        default=settings.COLOCATE_LEASEHOLDER,
        help="Place each range's leaseholder on its leader",
    )

    parser.add_argument(
        "--script",
        type=str,
        default=None,
        help="File of commands to run (default: stdin)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


async def run_session(client: ClusterClient, lines: Iterable[str], out: TextIO) -> int:
    """
    Execute text commands until input ends or QUIT.

    Returns:
        Number of commands that ended in an error
    """
    parser = ProtocolParser()
    failures = 0

    for line in lines:
        if not line.strip() or line.lstrip().startswith("#"):
            continue

        request = parser.parse_request(line)
        if request.type == RequestType.QUIT:
            break

        if request.type == RequestType.DUMP:
            out.write(json.dumps(client.cluster.snapshot(), indent=2) + "\n")
            continue

        if not request.is_valid:
            response = Response.validation(f"invalid command: {request.raw}")
        elif request.type == RequestType.INSERT:
            response = await client.insert(request.key, request.value)
        elif request.type == RequestType.GET:
            response = await client.get(request.key)
        elif request.type == RequestType.UPDATE:
            response = await client.update(request.key, request.value)
        else:
            response = await client.remove(request.key)

        if not response.is_ok:
            failures += 1
        out.write(parser.format_response(response))

    return failures


async def _main(args: argparse.Namespace) -> int:
    config = ClusterConfig.from_settings(
        node_count=args.nodes,
        replication_factor=args.replication_factor,
        max_key=args.max_key,
        seed=args.seed,
        colocate_leaseholder=args.colocate_leaseholder,
        request_timeout=args.timeout,
    )

    async with Cluster(config) as cluster:
        client = ClusterClient(cluster)
        if args.script:
            with open(args.script) as script:
                return await run_session(client, script.readlines(), sys.stdout)
        return await run_session(client, sys.stdin, sys.stdout)


def main() -> None:
    """Main entry point for the simulator."""
    args = parse_args()
    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    try:
        failures = asyncio.run(_main(args))
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        sys.exit(130)

    logger.info(f"Session complete ({failures} failed commands)")


if __name__ == "__main__":
    main()
