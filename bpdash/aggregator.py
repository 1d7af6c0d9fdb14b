"""Aggregator: one poll cycle over a network, fanned out per node."""

import asyncio
import logging

import httpx

from bpdash.api import fetch_token_supply
from bpdash.config import DashboardConfig, NetworkConfig
from bpdash.errors import sanitize_error
from bpdash.fetcher import open_client
from bpdash.models import CardData, CardOptions, DashboardSnapshot, SupplySummary
from bpdash.probes import get_probe

logger = logging.getLogger(__name__)

SUPPLY_SYMBOLS = ("SOUL", "KCAL")
KINDS = ("bp", "rpc", "explorer")


class UnknownNodeError(KeyError):
    """Raised when a node key is not configured for the requested kind."""


def _entries(net: NetworkConfig, kind: str) -> dict:
    if kind == "bp":
        return net.hosts
    if kind == "rpc":
        return net.rpcs
    if kind == "explorer":
        return net.explorers
    raise ValueError(f"Unknown node kind {kind!r}")


def _card_options(
    net: NetworkConfig, *, timeout_ms: int, lite: bool
) -> list[tuple[str, CardOptions]]:
    """List ``(kind, options)`` for every configured node, sorted by key."""
    options = []
    for kind in KINDS:
        for key, entry in sorted(_entries(net, kind).items()):
            options.append(
                (
                    kind,
                    CardOptions(
                        id=f"{kind}-{key}",
                        node_key=key,
                        entry=entry,
                        timeout_ms=timeout_ms,
                        sample_latency=not lite,
                    ),
                )
            )
    return options


def _counts(net: NetworkConfig) -> dict[str, int]:
    return {
        "hosts": len(net.hosts),
        "rpcs": len(net.rpcs),
        "explorers": len(net.explorers),
    }


def max_height(cards: list[CardData]) -> int | float | None:
    """Highest known height among BP and RPC cards; explorer heights are excluded."""
    heights = [
        card.height
        for card in cards
        if card.kind in ("bp", "rpc") and card.height is not None
    ]
    return max(heights) if heights else None


def build_shell_cards(config: DashboardConfig, network: str) -> DashboardSnapshot:
    """Return placeholder cards for *network* without any network I/O.

    Lets a display show the fleet layout immediately while the real poll
    is in flight.
    """
    net = config.networks[network]
    cards = [
        CardData(
            id=options.id,
            node_key=options.node_key,
            kind=kind,
            title=options.entry.title or options.node_key,
            role=options.entry.role if kind == "bp" else None,
            explorer_url=options.entry.url if kind == "explorer" else None,
        )
        for kind, options in _card_options(net, timeout_ms=0, lite=True)
    ]
    return DashboardSnapshot(
        network=network,
        default_network=config.default_network,
        counts=_counts(net),
        cards=cards,
    )


async def fetch_supply(
    client: httpx.AsyncClient,
    api_url: str,
    symbols: tuple[str, ...] = SUPPLY_SYMBOLS,
    timeout_ms: int = 8000,
) -> SupplySummary:
    """Fetch the supply of every symbol concurrently.

    Every symbol runs to completion.  Supplies are shown together, so
    any failure blanks all of them; the first failure is reported.
    """
    results = await asyncio.gather(
        *(fetch_token_supply(client, api_url, symbol, timeout_ms) for symbol in symbols),
        return_exceptions=True,
    )
    exc = next((r for r in results if isinstance(r, BaseException)), None)
    if exc is not None:
        logger.info("Token supply fetch failed: %s", exc)
        message = sanitize_error(exc)
        return SupplySummary(
            values={symbol: None for symbol in symbols},
            error="Supply unavailable" if message == "HTTP 404" else message,
        )
    return SupplySummary(values=dict(zip(symbols, results)))


async def poll_network(
    config: DashboardConfig,
    network: str,
    *,
    timeout_ms: int,
    lite: bool = False,
    client: httpx.AsyncClient | None = None,
) -> DashboardSnapshot:
    """Probe every node of *network* in parallel and build a snapshot.

    Args:
        config: Loaded hosts configuration.
        network: A configured network name.
        timeout_ms: Per-attempt HTTP deadline for every call.
        lite: Skip RPC latency sampling and the token supply fetch.
        client: HTTP client to reuse; a private one is opened when omitted.

    Returns:
        A ``DashboardSnapshot``.  Individual node failures are reported
        on their cards and never fail the poll.
    """
    if client is None:
        async with open_client() as own_client:
            return await poll_network(
                config, network, timeout_ms=timeout_ms, lite=lite, client=own_client
            )

    net = config.networks[network]
    node_options = _card_options(net, timeout_ms=timeout_ms, lite=lite)
    logger.info("Polling %d node(s) on %s", len(node_options), network)

    card_jobs = [get_probe(kind).build(options, client) for kind, options in node_options]
    api_url = net.explorer_api_url
    if lite or api_url is None:
        cards = await asyncio.gather(*card_jobs)
        supply = SupplySummary()
    else:
        *cards, supply = await asyncio.gather(
            *card_jobs, fetch_supply(client, api_url, timeout_ms=timeout_ms)
        )

    cards = list(cards)
    failed = sum(1 for card in cards if card.error)
    logger.info("Polled %s: %d card(s), %d with errors", network, len(cards), failed)

    return DashboardSnapshot(
        network=network,
        default_network=config.default_network,
        counts=_counts(net),
        cards=cards,
        max_height=max_height(cards),
        supply=supply,
    )


async def poll_node(
    config: DashboardConfig,
    network: str,
    kind: str,
    key: str,
    *,
    timeout_ms: int,
    client: httpx.AsyncClient | None = None,
) -> CardData:
    """Probe a single configured node.

    Raises:
        UnknownNodeError: If *key* is not configured as a *kind* node on
            *network*.
        ValueError: If *kind* is not a known node kind.
    """
    entry = _entries(config.networks[network], kind).get(key)
    if entry is None:
        raise UnknownNodeError(f"Unknown {kind} node {key!r} on {network}")

    options = CardOptions(
        id=f"{kind}-{key}", node_key=key, entry=entry, timeout_ms=timeout_ms
    )
    return await get_probe(kind).build(options, client)
