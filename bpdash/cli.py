"""CLI entry point for the bpdash tool."""

import asyncio
import logging
import sys

import click

from bpdash.aggregator import (
    KINDS,
    UnknownNodeError,
    build_shell_cards,
    poll_network,
    poll_node,
)
from bpdash.config import (
    NETWORKS,
    ConfigError,
    DashboardConfig,
    load_config,
    normalize_network,
    read_timeout_ms,
)
from bpdash.models import DashboardSnapshot
from bpdash.output import render

logger = logging.getLogger(__name__)

FORMATS = ("table", "json")


@click.command()
@click.option(
    "--network",
    "-n",
    default=None,
    type=click.Choice(NETWORKS, case_sensitive=False),
    help="Network to poll (default: defaultNetwork from the config).",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    default="table",
    type=click.Choice(FORMATS, case_sensitive=False),
    show_default=True,
    help="Output format.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=False),
    help="Path to the hosts config (default: $BPDASH_CONFIG or ~/.bpdash/hosts.yaml).",
)
@click.option("--lite", is_flag=True, help="Skip RPC latency sampling and token supply.")
@click.option("--shell", is_flag=True, help="Print placeholder cards without polling.")
@click.option(
    "--kind",
    default=None,
    type=click.Choice(KINDS, case_sensitive=False),
    help="Poll a single node of this kind (requires --key).",
)
@click.option("--key", default=None, help="Config key of the single node to poll.")
@click.option(
    "--timeout-ms",
    default=None,
    type=click.IntRange(min=1),
    help="Per-attempt HTTP deadline (default: $BPDASH_TIMEOUT_MS or 8000).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(
    network: str | None,
    output_format: str,
    config_path: str | None,
    lite: bool,
    shell: bool,
    kind: str | None,
    key: str | None,
    timeout_ms: int | None,
    verbose: bool,
) -> None:
    """Poll block producers, RPC nodes and explorers and summarize their status."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if (kind is None) != (key is None):
        click.echo("Error: --kind and --key must be given together", err=True)
        sys.exit(2)

    try:
        cfg = load_config(config_path)
    except (ConfigError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    net = normalize_network(network.lower() if network else None, cfg)
    if network and net != network.lower():
        logger.warning("Network %s is not configured; using %s", network, net)
    timeout = timeout_ms or read_timeout_ms()
    logger.debug("Polling %s with timeout %d ms", net, timeout)

    if shell:
        render(build_shell_cards(cfg, net), output_format)
        return

    try:
        snapshot = asyncio.run(_poll(cfg, net, kind, key, timeout, lite))
    except UnknownNodeError as exc:
        click.echo(f"Error: {exc.args[0]}", err=True)
        sys.exit(1)

    render(snapshot, output_format)


async def _poll(
    cfg: DashboardConfig,
    network: str,
    kind: str | None,
    key: str | None,
    timeout_ms: int,
    lite: bool,
) -> DashboardSnapshot:
    """Run either a full network poll or a single-node poll.

    A single-node poll is wrapped in a one-card snapshot so both paths
    share the renderers.
    """
    if kind is None or key is None:
        return await poll_network(cfg, network, timeout_ms=timeout_ms, lite=lite)

    card = await poll_node(cfg, network, kind.lower(), key, timeout_ms=timeout_ms)
    return DashboardSnapshot(
        network=network,
        default_network=cfg.default_network,
        counts={kind.lower(): 1},
        cards=[card],
    )
