"""Tests for the output renderer."""

import json

import pytest

from bpdash.models import CardData, DashboardSnapshot, SupplySummary
from bpdash.output import render, render_to_string

# -- Fixtures ----------------------------------------------------------------


def _snapshot(**overrides: object) -> DashboardSnapshot:
    """A mainnet snapshot with one card of each kind."""
    cards = [
        CardData(
            id="bp-one",
            kind="bp",
            title="BP One",
            node_key="one",
            height=1_000_000,
            role="Validator",
            leader="P2Kleader",
            last_applied_age_sec=75.0,
            avg_production_delay_ms=1500.0,
        ),
        CardData(
            id="rpc-pub",
            kind="rpc",
            title="Public RPC",
            node_key="pub",
            height=1_000_025,
            rpc_version="2.1.0",
            rpc_first_response_ms=80.0,
            rpc_average_response_ms=120.0,
        ),
        CardData(
            id="explorer-main",
            kind="explorer",
            title="main",
            node_key="main",
            error="timeout",
            explorer_url="https://explorer.test",
        ),
    ]
    defaults: dict = {
        "network": "mainnet",
        "default_network": "mainnet",
        "counts": {"hosts": 1, "rpcs": 1, "explorers": 1},
        "cards": cards,
        "max_height": 1_000_025,
        "supply": SupplySummary(values={"SOUL": "125000000.75", "KCAL": "9876543"}),
    }
    defaults.update(overrides)
    return DashboardSnapshot(**defaults)


# -- Table -------------------------------------------------------------------


class TestTableOutput:
    """Rich table rendering."""

    def test_headers_present(self) -> None:
        out = render_to_string(_snapshot(), "table")
        for header in ("Kind", "Title", "Height", "Delta", "Age", "Latency", "Error"):
            assert header in out

    def test_title_names_network(self) -> None:
        assert "mainnet — 3 nodes" in render_to_string(_snapshot(), "table")

    def test_card_values(self) -> None:
        out = render_to_string(_snapshot(), "table")
        assert "1,000,000" in out
        assert "Δ 25" in out
        assert "P2Kleader" in out
        assert "2.1.0" in out
        assert "1.2m" in out
        assert "1.5s" in out

    def test_error_shown(self) -> None:
        assert "timeout" in render_to_string(_snapshot(), "table")

    def test_summary_line(self) -> None:
        out = render_to_string(_snapshot(), "table")
        assert "max height: 1,000,025, 1 of 3 with errors" in out

    def test_supply_whole_units(self) -> None:
        out = render_to_string(_snapshot(), "table")
        assert "supply: SOUL 125,000,000, KCAL 9,876,543" in out

    def test_supply_error(self) -> None:
        supply = SupplySummary(values={"SOUL": None, "KCAL": None}, error="Supply unavailable")
        out = render_to_string(_snapshot(supply=supply), "table")
        assert "supply: Supply unavailable" in out

    def test_empty_snapshot(self) -> None:
        out = render_to_string(_snapshot(cards=[], max_height=None, supply=SupplySummary()), "table")
        assert "max height: —, 0 of 0 with errors" in out
        assert "supply:" not in out


# -- JSON --------------------------------------------------------------------


class TestJsonOutput:
    """JSON rendering mirrors the snapshot dataclass."""

    def test_valid_json(self) -> None:
        data = json.loads(render_to_string(_snapshot(), "json"))
        assert data["network"] == "mainnet"
        assert data["max_height"] == 1_000_025
        assert data["counts"] == {"hosts": 1, "rpcs": 1, "explorers": 1}

    def test_cards_serialized(self) -> None:
        data = json.loads(render_to_string(_snapshot(), "json"))
        assert [card["id"] for card in data["cards"]] == ["bp-one", "rpc-pub", "explorer-main"]
        assert data["cards"][0]["leader"] == "P2Kleader"
        assert data["cards"][1]["rpc_average_response_ms"] == 120.0
        assert data["cards"][2]["error"] == "timeout"
        assert data["cards"][2]["height"] is None

    def test_supply_kept_as_strings(self) -> None:
        data = json.loads(render_to_string(_snapshot(), "json"))
        assert data["supply"] == {
            "values": {"SOUL": "125000000.75", "KCAL": "9876543"},
            "error": None,
        }


class TestRender:
    def test_unknown_format(self) -> None:
        with pytest.raises(ValueError, match="Unknown output format"):
            render(_snapshot(), "yaml")

    def test_writes_to_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        render(_snapshot(), "json")
        assert json.loads(capsys.readouterr().out)["network"] == "mainnet"
