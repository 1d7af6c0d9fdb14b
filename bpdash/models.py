"""Data models: parsed API records, CardData and the dashboard snapshot."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from bpdash.config import ExplorerEntry, HostEntry, RpcEntry

CardKind = Literal["bp", "rpc", "explorer"]


# ---------------------------------------------------------------------------
# Parsed remote records
# ---------------------------------------------------------------------------


@dataclass
class BlockHeights:
    """Ledger progress of a block producer at each durability stage.

    No ordering between stages is enforced: sampling skew can make a
    lagging stage momentarily exceed another.
    """

    applied: float
    proven: float
    committed: float
    appended: float
    known: float


@dataclass
class StatusBlock:
    """One historical block sample from a node status response.

    Attributes:
        index: Block index.
        time_applied_ms: When the block was applied (epoch ms).
        production_delay_ms: Time taken to produce the block.
        verification_delay_ms: Time taken to verify the block.
        transactions: Number of transactions in the block.
        changes: Number of state changes in the block.
        raft_leader: Leader identifier, if reported.
        raft_leader_pha: Fully-qualified leader address, if reported.
    """

    index: float
    time_applied_ms: float
    production_delay_ms: float
    verification_delay_ms: float
    transactions: float
    changes: float
    raft_leader: str | None = None
    raft_leader_pha: str | None = None


@dataclass
class TokenInfo:
    symbol: str
    decimals: float


@dataclass
class BlockRate:
    target_slow: float | None = None
    target: float | None = None
    target_burst: float | None = None
    average_actual: float | None = None
    production_time: float | None = None
    last_block_ms: float | None = None


@dataclass
class StatusSummary:
    """Snapshot of a block-producer node.

    Every field is optional: node versions expose different subsets of
    the status API, and ``None`` means "not reported" (as opposed to a
    zero value).
    """

    name: str | None = None
    now_ms: float | None = None
    cpu: float | None = None
    ram: float | None = None
    id_pha: str | None = None
    app_version: str | None = None
    block_rate: BlockRate | None = None
    blocks: list[StatusBlock] | None = None
    connections_count: int | None = None
    gas_token: TokenInfo | None = None
    data_token: TokenInfo | None = None


@dataclass
class RpcBuildInfo:
    version: str | None = None
    commit: str | None = None
    build_time_utc: str | None = None


@dataclass
class ExplorerLatestBlock:
    """Latest block indexed by an explorer.

    Attributes:
        height: Block height.
        timestamp_sec: UTC timestamp of the block in seconds, if reported.
    """

    height: int
    timestamp_sec: float | None = None


# ---------------------------------------------------------------------------
# Probe input / output
# ---------------------------------------------------------------------------


@dataclass
class CardOptions:
    """Input of every probe's ``build()`` method.

    Attributes:
        id: Card identifier (e.g. ``"bp-node1"``).
        node_key: Key of the node in the hosts configuration.
        entry: The configured host, RPC or explorer entry.
        timeout_ms: Per-attempt HTTP deadline.
        sample_latency: RPC only; ``False`` skips the latency samples.
    """

    id: str
    node_key: str
    entry: HostEntry | RpcEntry | ExplorerEntry
    timeout_ms: int
    sample_latency: bool = True


@dataclass
class CardData:
    """Per-node status record produced by exactly one probe invocation.

    Common fields are always meaningful; kind-specific fields stay
    ``None`` for the other kinds.  ``error`` is ``None`` unless the probe
    ended without enough data to render.
    """

    id: str
    kind: CardKind
    title: str
    node_key: str | None = None
    height: int | float | None = None
    error: str | None = None

    # -- bp --
    heights: BlockHeights | None = None
    role: str | None = None
    leader: str | None = None
    last_applied_age_sec: float | None = None
    avg_production_delay_ms: float | None = None
    avg_verification_delay_ms: float | None = None
    avg_transactions: float | None = None
    sparkline: list[float] | None = None
    bp_build_version: str | None = None

    # -- rpc --
    rpc_first_response_ms: float | None = None
    rpc_average_response_ms: float | None = None
    rpc_version: str | None = None
    rpc_commit: str | None = None
    rpc_build_time_utc: str | None = None

    # -- explorer --
    explorer_url: str | None = None
    block_age_sec: float | None = None
    explorer_response_ms: float | None = None


def merge_card(previous: CardData, update: CardData) -> CardData:
    """Shallow-merge *update* onto *previous*, ignoring ``None`` fields.

    A transient probe result with missing fields never erases a value
    that an earlier poll populated.

    Args:
        previous: The card currently held by the consumer.
        update: A freshly probed card for the same node.

    Returns:
        A new ``CardData``; neither input is modified.
    """
    changes = {
        f.name: getattr(update, f.name)
        for f in dataclasses.fields(update)
        if getattr(update, f.name) is not None
    }
    return dataclasses.replace(previous, **changes)


# ---------------------------------------------------------------------------
# Poll-cycle output
# ---------------------------------------------------------------------------


@dataclass
class SupplySummary:
    """Token supplies as exact decimal strings.

    Attributes:
        values: Symbol → supply string (``None`` when unavailable).
        error: Sanitized failure reason, if the supply fetch failed.
    """

    values: dict[str, str | None] = field(default_factory=dict)
    error: str | None = None


@dataclass
class DashboardSnapshot:
    """Result of one poll cycle over a network.

    Attributes:
        network: The network that was polled.
        default_network: The configured default network.
        counts: Number of configured ``hosts``, ``rpcs`` and ``explorers``.
        cards: One card per configured node.
        max_height: Highest known BP/RPC height, the reference for deltas.
        supply: Token supplies, when fetched.
    """

    network: str
    default_network: str
    counts: dict[str, int] = field(default_factory=dict)
    cards: list[CardData] = field(default_factory=list)
    max_height: int | float | None = None
    supply: SupplySummary = field(default_factory=SupplySummary)
