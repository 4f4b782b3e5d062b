"""
Tests for the command-line simulator session

Run with: python -m pytest tests/test_cli.py -v
"""

import io
import json

import pytest

from rangekv.cli import parse_args, run_session
from rangekv.client import ClusterClient
from rangekv.cluster.cluster import Cluster


@pytest.mark.asyncio
class TestRunSession:
    """Test text sessions against a running cluster."""

    async def test_walkthrough(self, client: ClusterClient):
        lines = [
            "INSERT 1 223",
            "GET 1",
            "INSERT 1 5",
            "REMOVE 1",
            "GET 1",
        ]
        out = io.StringIO()
        failures = await run_session(client, lines, out)

        assert out.getvalue().splitlines() == [
            "OK",
            "OK 223",
            "ERROR already_exists key 1 already exists",
            "OK",
            "ERROR not_found key 1 not found",
        ]
        assert failures == 2

    async def test_validation_and_garbage(self, client: ClusterClient):
        out = io.StringIO()
        failures = await run_session(client, ["INSERT 1000 265", "INSERT -1 298", "FROB 1"], out)

        lines = out.getvalue().splitlines()
        assert all(line.startswith("ERROR validation") for line in lines)
        assert failures == 3

    async def test_comments_blank_lines_and_quit(self, client: ClusterClient):
        out = io.StringIO()
        await run_session(client, ["# setup", "", "INSERT 2 3", "QUIT", "GET 2"], out)
        assert out.getvalue() == "OK\n"

    async def test_dump(self, cluster: Cluster, client: ClusterClient):
        out = io.StringIO()
        await run_session(client, ["INSERT 2 3", "DUMP"], out)

        snapshot = json.loads(out.getvalue().split("\n", 1)[1])
        holders = [node for node in snapshot.values() if node["store"]]
        assert len(holders) == cluster.config.replication_factor
        assert all(node["store"] == {"2": 3} for node in holders)


class TestParseArgs:
    """Test argument parsing."""

    def test_defaults_and_overrides(self):
        args = parse_args(["--nodes", "7", "--seed", "3", "--colocate-leaseholder"])
        assert args.nodes == 7
        assert args.seed == 3
        assert args.colocate_leaseholder is True
        assert args.script is None
