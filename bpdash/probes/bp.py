"""Block-producer probe: block heights + status, joined without short-circuit."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bpdash.api import fetch_block_heights, fetch_status_summary
from bpdash.errors import sanitize_error
from bpdash.models import CardData, CardOptions, StatusSummary
from bpdash.probes import Probe

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)


@dataclass
class BlockSummary:
    """Figures derived from the recent-blocks window of a status response."""

    leader: str | None = None
    last_applied_age_sec: float | None = None
    avg_production_delay_ms: float | None = None
    avg_verification_delay_ms: float | None = None
    avg_transactions: float | None = None
    sparkline: list[float] | None = None


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def summarize_blocks(status: StatusSummary | None) -> BlockSummary:
    """Summarize the block samples of *status*.

    Averages are plain means over the whole window.  The age of the last
    applied block is measured against the server's clock when it reports
    one, so local clock skew doesn't leak into the figure.

    Args:
        status: Parsed status response, or ``None`` if it failed.

    Returns:
        A ``BlockSummary``; every field is ``None`` when there are no
        blocks.
    """
    if status is None or not status.blocks:
        return BlockSummary()

    blocks = status.blocks
    last = blocks[-1]
    now_ms = status.now_ms if status.now_ms is not None else time.time() * 1000
    production_delays = [block.production_delay_ms for block in blocks]

    return BlockSummary(
        leader=last.raft_leader_pha or last.raft_leader,
        last_applied_age_sec=max(0.0, (now_ms - last.time_applied_ms) / 1000),
        avg_production_delay_ms=_mean(production_delays),
        avg_verification_delay_ms=_mean([b.verification_delay_ms for b in blocks]),
        avg_transactions=_mean([b.transactions for b in blocks]),
        sparkline=production_delays,
    )


class BlockProducerProbe(Probe):
    """Probe for block-producer hosts.

    Fetches ``v1/block_heights`` and ``v1/status`` concurrently.  Heights
    are essential: their failure sets the card error.  Status is
    enrichment: its failure only leaves the leader / delay fields empty.
    """

    kind = "bp"

    async def probe(self, options: CardOptions, client: httpx.AsyncClient) -> CardData:
        entry = options.entry
        heights_result, status_result = await asyncio.gather(
            fetch_block_heights(client, entry.url, options.timeout_ms),
            fetch_status_summary(client, entry.url, options.timeout_ms),
            return_exceptions=True,
        )

        heights = None
        error = None
        if isinstance(heights_result, BaseException):
            logger.info("BP %s: block heights failed: %s", options.node_key, heights_result)
            error = sanitize_error(heights_result)
        else:
            heights = heights_result

        status = None
        if isinstance(status_result, BaseException):
            logger.debug("BP %s: status failed: %s", options.node_key, status_result)
        else:
            status = status_result

        summary = summarize_blocks(status)
        return CardData(
            id=options.id,
            node_key=options.node_key,
            kind="bp",
            title=entry.title,
            height=heights.applied if heights is not None else None,
            heights=heights,
            role=entry.role,
            leader=summary.leader,
            last_applied_age_sec=summary.last_applied_age_sec,
            avg_production_delay_ms=summary.avg_production_delay_ms,
            avg_verification_delay_ms=summary.avg_verification_delay_ms,
            avg_transactions=summary.avg_transactions,
            sparkline=summary.sparkline,
            bp_build_version=status.app_version if status is not None else None,
            error=error,
        )


async def build_bp_card(
    options: CardOptions, client: httpx.AsyncClient | None = None
) -> CardData:
    """Build the card of one block-producer host."""
    return await BlockProducerProbe().build(options, client)
