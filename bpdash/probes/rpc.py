"""RPC probe: block height plus getVersion latency sampling."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bpdash.api import fetch_rpc_height, fetch_rpc_version
from bpdash.errors import sanitize_error
from bpdash.models import CardData, CardOptions, RpcBuildInfo
from bpdash.probes import Probe

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

# One sample is awaited alone for an immediate reading, the rest run together.
EXTRA_LATENCY_SAMPLES = 4


@dataclass
class RpcVersionSample:
    """Outcome of one timed ``getVersion`` call."""

    duration_ms: float
    info: RpcBuildInfo | None = None
    error: BaseException | None = None


async def sample_rpc_version(
    client: httpx.AsyncClient, rpc_url: str, timeout_ms: float
) -> RpcVersionSample:
    """Time one ``getVersion`` call, capturing its failure instead of raising."""
    start = time.monotonic()
    try:
        info = await fetch_rpc_version(client, rpc_url, timeout_ms)
    except Exception as exc:
        return RpcVersionSample(duration_ms=(time.monotonic() - start) * 1000, error=exc)
    return RpcVersionSample(duration_ms=(time.monotonic() - start) * 1000, info=info)


async def _height_outcome(
    client: httpx.AsyncClient, rpc_url: str, timeout_ms: float
) -> tuple[int | None, BaseException | None]:
    try:
        return await fetch_rpc_height(client, rpc_url, timeout_ms), None
    except Exception as exc:
        return None, exc


class RpcProbe(Probe):
    """Probe for JSON-RPC endpoints.

    The height query runs in the background while the latency samples
    are taken.  Samples can be skipped with ``CardOptions.sample_latency``
    (lite polls), leaving the latency and version fields empty.
    """

    kind = "rpc"

    async def probe(self, options: CardOptions, client: httpx.AsyncClient) -> CardData:
        entry = options.entry
        height_task = asyncio.create_task(
            _height_outcome(client, entry.url, options.timeout_ms)
        )

        samples: list[RpcVersionSample] = []
        try:
            if options.sample_latency:
                first = await sample_rpc_version(client, entry.url, options.timeout_ms)
                extra = await asyncio.gather(
                    *(
                        sample_rpc_version(client, entry.url, options.timeout_ms)
                        for _ in range(EXTRA_LATENCY_SAMPLES)
                    )
                )
                samples = [first, *extra]

            height, height_exc = await height_task
        finally:
            height_task.cancel()

        successful = [sample for sample in samples if sample.info is not None]
        version_info = successful[0].info if successful else None
        first_ms = successful[0].duration_ms if successful else None
        average_ms = (
            sum(sample.duration_ms for sample in successful) / len(successful)
            if successful
            else None
        )

        version_error = None
        if samples and not successful:
            sample_exc = next((s.error for s in samples if s.error is not None), None)
            logger.info("RPC %s: all latency samples failed: %s", options.node_key, sample_exc)
            version_error = sanitize_error(sample_exc)

        height_error = None
        if height_exc is not None:
            logger.info("RPC %s: height query failed: %s", options.node_key, height_exc)
            height_error = sanitize_error(height_exc)

        return CardData(
            id=options.id,
            node_key=options.node_key,
            kind="rpc",
            title=entry.title,
            height=height,
            rpc_first_response_ms=first_ms,
            rpc_average_response_ms=average_ms,
            rpc_version=version_info.version if version_info else None,
            rpc_commit=version_info.commit if version_info else None,
            rpc_build_time_utc=version_info.build_time_utc if version_info else None,
            error=height_error or version_error,
        )


async def build_rpc_card(
    options: CardOptions, client: httpx.AsyncClient | None = None
) -> CardData:
    """Build the card of one RPC endpoint."""
    return await RpcProbe().build(options, client)
