"""Explorer probe: latest indexed block, its age and the API latency."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from bpdash.api import fetch_explorer_latest_block
from bpdash.errors import sanitize_error
from bpdash.models import CardData, CardOptions
from bpdash.probes import Probe

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)


class ExplorerProbe(Probe):
    """Probe for block explorers.

    A single timed call to the indexing API.  On failure the latency is
    not reported: a failed call's duration is not a latency sample.
    """

    kind = "explorer"

    async def probe(self, options: CardOptions, client: httpx.AsyncClient) -> CardData:
        entry = options.entry
        card = CardData(
            id=options.id,
            node_key=options.node_key,
            kind="explorer",
            title=entry.title or options.node_key,
            explorer_url=entry.url,
        )

        start = time.monotonic()
        try:
            latest = await fetch_explorer_latest_block(
                client, entry.api_url, options.timeout_ms
            )
        except Exception as exc:
            logger.info("Explorer %s: latest block failed: %s", options.node_key, exc)
            card.error = sanitize_error(exc)
            return card

        card.explorer_response_ms = (time.monotonic() - start) * 1000
        card.height = latest.height
        if latest.timestamp_sec is not None:
            card.block_age_sec = max(0.0, time.time() - latest.timestamp_sec)
        return card


async def build_explorer_card(
    options: CardOptions, client: httpx.AsyncClient | None = None
) -> CardData:
    """Build the card of one block explorer."""
    return await ExplorerProbe().build(options, client)
