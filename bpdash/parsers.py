"""Response parsers: raw JSON payloads → typed records.

Every parser rejects a non-object payload, raises with the API's own
text when the payload carries an ``error`` field, and names the endpoint
when required fields are missing.  Optional fields degrade to ``None``.
"""

import logging

from bpdash.errors import ResponseError
from bpdash.models import (
    BlockHeights,
    BlockRate,
    ExplorerLatestBlock,
    RpcBuildInfo,
    StatusBlock,
    StatusSummary,
    TokenInfo,
)
from bpdash.validators import is_record, read_array, read_number, read_string

logger = logging.getLogger(__name__)

_HEIGHT_FIELDS = ("applied", "proven", "committed", "appended", "known")


def _raise_on_api_error(payload: dict, default: str) -> None:
    """Raise ``ResponseError`` if *payload* reports an explicit error."""
    error = payload.get("error")
    if not error:
        return
    if isinstance(error, str):
        raise ResponseError(error)
    if is_record(error) and isinstance(error.get("message"), str):
        raise ResponseError(error["message"])
    raise ResponseError(default)


def parse_block_heights(payload: object) -> BlockHeights:
    """Parse a ``v1/block_heights`` response.

    The counters may sit at the top level or inside a ``result`` object,
    as numbers or numeric strings.
    """
    if not is_record(payload):
        raise ResponseError("Block heights response must be an object")
    _raise_on_api_error(payload, "Block heights error")

    source = payload["result"] if is_record(payload.get("result")) else payload
    values = {name: read_number(source.get(name)) for name in _HEIGHT_FIELDS}
    if any(value is None for value in values.values()):
        raise ResponseError("Block heights response missing numeric fields")

    return BlockHeights(**values)


def parse_token_info(payload: object) -> TokenInfo | None:
    if not is_record(payload):
        return None
    symbol = read_string(payload.get("symbol"))
    decimals = read_number(payload.get("decimals"))
    if not symbol or decimals is None:
        return None
    return TokenInfo(symbol=symbol, decimals=decimals)


def parse_block_rate(payload: object) -> BlockRate | None:
    if not is_record(payload):
        return None
    return BlockRate(
        target_slow=read_number(payload.get("target_slow")),
        target=read_number(payload.get("target")),
        target_burst=read_number(payload.get("target_burst")),
        average_actual=read_number(payload.get("average_actual")),
        production_time=read_number(payload.get("production_time")),
        last_block_ms=read_number(payload.get("last_block")),
    )


def parse_blocks(payload: object) -> list[StatusBlock] | None:
    """Parse the ``blocks`` array of a status response.

    Malformed entries are dropped one by one so that a partially valid
    list still renders.

    Returns:
        The valid blocks in their original (chronological) order, or
        ``None`` if *payload* is not a list or no entry validated.
    """
    entries = read_array(payload)
    if entries is None:
        return None

    blocks: list[StatusBlock] = []
    for entry in entries:
        if not is_record(entry):
            continue
        index = read_number(entry.get("index"))
        time_applied = read_number(entry.get("time_applied"))
        production_delay = read_number(entry.get("production_delay"))
        verification_delay = read_number(entry.get("verification_delay"))
        transactions = read_number(entry.get("num_transactions"))
        changes = read_number(entry.get("num_changes"))
        if None in (
            index,
            time_applied,
            production_delay,
            verification_delay,
            transactions,
            changes,
        ):
            continue

        blocks.append(
            StatusBlock(
                index=index,
                time_applied_ms=time_applied,
                production_delay_ms=production_delay,
                verification_delay_ms=verification_delay,
                transactions=transactions,
                changes=changes,
                raft_leader=read_string(entry.get("raft_leader")),
                raft_leader_pha=read_string(entry.get("raft_leader_pha")),
            )
        )

    if len(blocks) < len(entries):
        logger.debug("Dropped %d malformed block entries", len(entries) - len(blocks))
    return blocks or None


def parse_status(payload: object) -> StatusSummary:
    """Parse a ``v1/status`` response.  Only the ``result`` object is required."""
    if not is_record(payload):
        raise ResponseError("Status response must be an object")
    _raise_on_api_error(payload, "Status error")

    result = payload.get("result")
    if not is_record(result):
        raise ResponseError("Status response missing result")

    connections = read_array(result.get("connections"))
    return StatusSummary(
        name=read_string(result.get("name")),
        now_ms=read_number(result.get("now")),
        cpu=read_number(result.get("cpu")),
        ram=read_number(result.get("ram")),
        id_pha=read_string(result.get("id_pha")),
        app_version=read_string(result.get("app_version")),
        block_rate=parse_block_rate(result.get("block_rate")),
        blocks=parse_blocks(result.get("blocks")),
        connections_count=len(connections) if connections is not None else None,
        gas_token=parse_token_info(result.get("gas_token")),
        data_token=parse_token_info(result.get("data_token")),
    )


def parse_rpc_build_info(payload: object) -> RpcBuildInfo:
    """Parse a JSON-RPC ``getVersion`` response."""
    if not is_record(payload):
        raise ResponseError("RPC response must be an object")
    _raise_on_api_error(payload, "RPC returned error")

    result = payload.get("result")
    if not is_record(result):
        raise ResponseError("RPC result missing build info")

    return RpcBuildInfo(
        version=read_string(result.get("version")),
        commit=read_string(result.get("commit")),
        build_time_utc=read_string(result.get("buildTimeUtc")),
    )


def parse_rpc_height(payload: object) -> int:
    """Parse a JSON-RPC ``getBlockHeight`` response into an integer height."""
    if not is_record(payload):
        raise ResponseError("RPC response must be an object")
    if payload.get("error"):
        raise ResponseError("RPC returned error")

    height = read_number(payload.get("result"))
    if height is None:
        raise ResponseError("RPC result missing numeric height")
    return int(height)


def parse_explorer_latest_block(payload: object) -> ExplorerLatestBlock:
    """Parse the explorer's latest-block listing.

    Accepts either ``{"blocks": [{...}, ...]}`` (first entry is the
    latest) or ``{"result": {...}}``.  The block timestamp is read from
    ``timestamp`` or, failing that, ``date`` (UTC seconds).
    """
    if not is_record(payload):
        raise ResponseError("Explorer response must be an object")
    _raise_on_api_error(payload, "Explorer response reported an error")

    blocks = read_array(payload.get("blocks"))
    if blocks:
        block = blocks[0]
    elif is_record(payload.get("result")):
        block = payload["result"]
    else:
        raise ResponseError("Explorer response missing blocks")
    if not is_record(block):
        raise ResponseError("Explorer response missing blocks")

    height = read_number(block.get("height"))
    if height is None:
        raise ResponseError("Explorer response missing numeric height")

    timestamp = read_number(block.get("timestamp"))
    if timestamp is None:
        timestamp = read_number(block.get("date"))
    return ExplorerLatestBlock(height=int(height), timestamp_sec=timestamp)


def parse_token_supply(payload: object) -> str:
    """Return the ``current_supply`` of the first token, as an exact string."""
    if not is_record(payload):
        raise ResponseError("Explorer response must be an object")
    tokens = read_array(payload.get("tokens"))
    if not tokens or not is_record(tokens[0]):
        raise ResponseError("Explorer response missing tokens")
    supply = read_string(tokens[0].get("current_supply"))
    if not supply:
        raise ResponseError("Explorer response missing supply")
    return supply
