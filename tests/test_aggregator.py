"""Tests for bpdash.aggregator — poll cycles, supply and shell cards."""

import asyncio
import json

import httpx
import pytest

from bpdash.aggregator import (
    UnknownNodeError,
    build_shell_cards,
    fetch_supply,
    max_height,
    poll_network,
    poll_node,
)
from bpdash.config import parse_dashboard_config
from bpdash.models import CardData

EXPLORER_API = "https://api.explorer.test/api/v1"

CONFIG = parse_dashboard_config(
    {
        "defaultNetwork": "mainnet",
        "networks": {
            "mainnet": {
                "defaultExplorer": "main",
                "hosts": {
                    "zeta": {"title": "BP Zeta", "url": "https://bp1.test/api/", "role": "Validator"},
                    "alpha": {"title": "BP Alpha", "url": "https://bp2.test/api/"},
                },
                "rpcs": {"pub": {"title": "Public RPC", "url": "https://rpc.test/rpc"}},
                "explorers": {
                    "main": {"url": "https://explorer.test", "apiUrl": EXPLORER_API},
                },
            },
            "testnet": {
                "hosts": {"t1": {"title": "Test BP", "url": "https://bp1.test/api/"}},
            },
        },
    }
)

HEIGHTS = {"applied": 1000, "proven": 999, "committed": 998, "appended": 1001, "known": 1002}


class _FleetHandler:
    """MockTransport handler impersonating every node in ``CONFIG``.

    ``bp2.test`` answers 404 to everything; the others are healthy.
    """

    def __init__(self, supply_status: int = 200) -> None:
        self.supply_status = supply_status
        self.rpc_methods: list[str] = []
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host, path = request.url.host, request.url.path
        self.paths.append(f"{host}{path}")
        if host == "bp1.test":
            if path.endswith("/v1/block_heights"):
                return httpx.Response(200, json=HEIGHTS)
            return httpx.Response(200, json={"result": {"app_version": "1.4.2"}})
        if host == "rpc.test":
            method = json.loads(request.content)["method"]
            self.rpc_methods.append(method)
            if method == "getBlockHeight":
                return httpx.Response(200, json={"result": "1010"})
            return httpx.Response(200, json={"result": {"version": "2.0.0"}})
        if host == "api.explorer.test":
            if path.endswith("/blocks"):
                return httpx.Response(200, json={"blocks": [{"height": "990"}]})
            if path.endswith("/tokens"):
                if self.supply_status != 200:
                    return httpx.Response(self.supply_status)
                symbol = request.url.params["symbol"]
                supply = {"SOUL": "125000000.5", "KCAL": "98765432.1"}[symbol]
                return httpx.Response(
                    200, json={"tokens": [{"symbol": symbol, "current_supply": supply}]}
                )
        return httpx.Response(404)


def _with_client(handler, build):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await build(client)

    return asyncio.run(go())


def _poll(handler, network: str = "mainnet", lite: bool = False):
    return _with_client(
        handler,
        lambda client: poll_network(CONFIG, network, timeout_ms=1000, lite=lite, client=client),
    )


class TestMaxHeight:
    def test_explorer_heights_ignored(self) -> None:
        cards = [
            CardData(id="bp-a", kind="bp", title="A", height=10),
            CardData(id="rpc-a", kind="rpc", title="A", height=12),
            CardData(id="explorer-a", kind="explorer", title="A", height=50),
        ]
        assert max_height(cards) == 12

    def test_no_heights(self) -> None:
        assert max_height([CardData(id="bp-a", kind="bp", title="A")]) is None


class TestBuildShellCards:
    """Placeholder cards mirror the configured fleet without any I/O."""

    def test_cards_in_kind_then_key_order(self) -> None:
        snapshot = build_shell_cards(CONFIG, "mainnet")
        assert [card.id for card in snapshot.cards] == [
            "bp-alpha",
            "bp-zeta",
            "rpc-pub",
            "explorer-main",
        ]

    def test_cards_are_empty(self) -> None:
        snapshot = build_shell_cards(CONFIG, "mainnet")
        assert all(card.height is None and card.error is None for card in snapshot.cards)
        assert snapshot.max_height is None

    def test_static_fields(self) -> None:
        cards = {card.id: card for card in build_shell_cards(CONFIG, "mainnet").cards}
        assert cards["bp-zeta"].role == "Validator"
        assert cards["bp-alpha"].role == "Watcher"
        assert cards["explorer-main"].title == "main"
        assert cards["explorer-main"].explorer_url == "https://explorer.test"

    def test_counts(self) -> None:
        snapshot = build_shell_cards(CONFIG, "mainnet")
        assert snapshot.counts == {"hosts": 2, "rpcs": 1, "explorers": 1}
        assert snapshot.default_network == "mainnet"


class TestPollNetwork:
    """A full poll cycle against a mocked fleet."""

    def test_one_card_per_node(self) -> None:
        snapshot = _poll(_FleetHandler())
        assert [card.id for card in snapshot.cards] == [
            "bp-alpha",
            "bp-zeta",
            "rpc-pub",
            "explorer-main",
        ]
        assert snapshot.network == "mainnet"

    def test_failing_node_does_not_fail_poll(self) -> None:
        cards = {card.id: card for card in _poll(_FleetHandler()).cards}
        assert cards["bp-alpha"].error == "HTTP 404"
        assert cards["bp-alpha"].height is None
        assert cards["bp-zeta"].error is None
        assert cards["bp-zeta"].height == 1000
        assert cards["rpc-pub"].height == 1010
        assert cards["explorer-main"].height == 990

    def test_max_height_from_bp_and_rpc(self) -> None:
        assert _poll(_FleetHandler()).max_height == 1010

    def test_supply_fetched(self) -> None:
        supply = _poll(_FleetHandler()).supply
        assert supply.values == {"SOUL": "125000000.5", "KCAL": "98765432.1"}
        assert supply.error is None

    def test_supply_404_is_unavailable(self) -> None:
        supply = _poll(_FleetHandler(supply_status=404)).supply
        assert supply.values == {"SOUL": None, "KCAL": None}
        assert supply.error == "Supply unavailable"

    def test_full_poll_samples_rpc_latency(self) -> None:
        handler = _FleetHandler()
        card = next(c for c in _poll(handler).cards if c.kind == "rpc")
        assert handler.rpc_methods.count("getVersion") == 5
        assert card.rpc_version == "2.0.0"
        assert card.rpc_average_response_ms is not None

    def test_lite_skips_sampling_and_supply(self) -> None:
        handler = _FleetHandler()
        snapshot = _poll(handler, lite=True)
        assert handler.rpc_methods == ["getBlockHeight"]
        assert not any(path.endswith("/tokens") for path in handler.paths)
        assert snapshot.supply.values == {}
        rpc = next(c for c in snapshot.cards if c.kind == "rpc")
        assert rpc.height == 1010
        assert rpc.rpc_first_response_ms is None

    def test_network_without_explorer_skips_supply(self) -> None:
        handler = _FleetHandler()
        snapshot = _poll(handler, network="testnet")
        assert snapshot.counts == {"hosts": 1, "rpcs": 0, "explorers": 0}
        assert snapshot.supply.values == {}
        assert not any("explorer" in path for path in handler.paths)


class TestPollNode:
    def test_single_rpc(self) -> None:
        card = _with_client(
            _FleetHandler(),
            lambda client: poll_node(CONFIG, "mainnet", "rpc", "pub", timeout_ms=1000, client=client),
        )
        assert card.id == "rpc-pub"
        assert card.height == 1010

    def test_unknown_key(self) -> None:
        with pytest.raises(UnknownNodeError, match="Unknown bp node 'nope' on mainnet"):
            asyncio.run(poll_node(CONFIG, "mainnet", "bp", "nope", timeout_ms=1000))

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError, match="Unknown node kind"):
            asyncio.run(poll_node(CONFIG, "mainnet", "relay", "pub", timeout_ms=1000))


class TestFetchSupply:
    def test_other_failures_pass_through(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"tokens": []})

        supply = _with_client(handler, lambda client: fetch_supply(client, EXPLORER_API))
        assert supply.error == "Explorer response missing tokens"
        assert supply.values == {"SOUL": None, "KCAL": None}

    def test_custom_symbols(self) -> None:
        supply = _with_client(
            _FleetHandler(), lambda client: fetch_supply(client, EXPLORER_API, ("KCAL",))
        )
        assert supply.values == {"KCAL": "98765432.1"}

    def test_fast_failure_waits_for_sibling(self) -> None:
        finished: list[str] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            symbol = request.url.params["symbol"]
            if symbol == "SOUL":
                return httpx.Response(404)
            await asyncio.sleep(0.2)
            finished.append(symbol)
            return httpx.Response(
                200, json={"tokens": [{"symbol": symbol, "current_supply": "1"}]}
            )

        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                supply = await fetch_supply(client, EXPLORER_API)
                pending = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
                return supply, pending

        supply, pending = asyncio.run(go())
        assert supply.error == "Supply unavailable"
        assert finished == ["KCAL"]
        assert pending == []
