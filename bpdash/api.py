"""Remote API client: one coroutine per block-producer, RPC and explorer call."""

from urllib.parse import urlencode

import httpx

from bpdash.fetcher import DEFAULT_TIMEOUT_MS, fetch_json
from bpdash.models import BlockHeights, ExplorerLatestBlock, RpcBuildInfo, StatusSummary
from bpdash.parsers import (
    parse_block_heights,
    parse_explorer_latest_block,
    parse_rpc_build_info,
    parse_rpc_height,
    parse_status,
    parse_token_supply,
)

EXPLORER_CHAIN = "main"


def _rpc_request(method: str, params: list) -> dict:
    return {"jsonrpc": "2.0", "method": method, "params": params, "id": 1}


async def fetch_block_heights(
    client: httpx.AsyncClient, base_url: str, timeout_ms: float = DEFAULT_TIMEOUT_MS
) -> BlockHeights:
    """Fetch ``<base_url>v1/block_heights``; *base_url* ends with a slash."""
    payload = await fetch_json(
        client, "GET", f"{base_url}v1/block_heights?format=json", timeout_ms=timeout_ms
    )
    return parse_block_heights(payload)


async def fetch_status_summary(
    client: httpx.AsyncClient, base_url: str, timeout_ms: float = DEFAULT_TIMEOUT_MS
) -> StatusSummary:
    """Fetch ``<base_url>v1/status``; *base_url* ends with a slash."""
    payload = await fetch_json(
        client, "GET", f"{base_url}v1/status?format=json", timeout_ms=timeout_ms
    )
    return parse_status(payload)


async def fetch_rpc_height(
    client: httpx.AsyncClient, rpc_url: str, timeout_ms: float = DEFAULT_TIMEOUT_MS
) -> int:
    """Call JSON-RPC ``getBlockHeight`` on the main chain."""
    payload = await fetch_json(
        client,
        "POST",
        rpc_url,
        timeout_ms=timeout_ms,
        json=_rpc_request("getBlockHeight", ["main"]),
    )
    return parse_rpc_height(payload)


async def fetch_rpc_version(
    client: httpx.AsyncClient, rpc_url: str, timeout_ms: float = DEFAULT_TIMEOUT_MS
) -> RpcBuildInfo:
    """Call JSON-RPC ``getVersion``.

    The call does no chain-state work on the node, which makes it the
    latency probe of choice.
    """
    payload = await fetch_json(
        client,
        "POST",
        rpc_url,
        timeout_ms=timeout_ms,
        json=_rpc_request("getVersion", []),
    )
    return parse_rpc_build_info(payload)


async def fetch_explorer_latest_block(
    client: httpx.AsyncClient, api_url: str, timeout_ms: float = DEFAULT_TIMEOUT_MS
) -> ExplorerLatestBlock:
    """Fetch the most recent block indexed by the explorer at *api_url*."""
    query = urlencode(
        {
            "chain": EXPLORER_CHAIN,
            "order_direction": "desc",
            "limit": "1",
            "with_total": "0",
        }
    )
    payload = await fetch_json(
        client, "GET", f"{api_url.rstrip('/')}/blocks?{query}", timeout_ms=timeout_ms
    )
    return parse_explorer_latest_block(payload)


async def fetch_token_supply(
    client: httpx.AsyncClient,
    api_url: str,
    symbol: str,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
) -> str:
    """Fetch the current supply of *symbol* as a decimal string."""
    query = urlencode(
        {
            "symbol": symbol,
            "chain": EXPLORER_CHAIN,
            "limit": "1",
            "offset": "0",
            "with_total": "0",
        }
    )
    payload = await fetch_json(
        client, "GET", f"{api_url.rstrip('/')}/tokens?{query}", timeout_ms=timeout_ms
    )
    return parse_token_supply(payload)
