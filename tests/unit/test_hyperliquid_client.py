"""
Tests for HyperliquidClient and its response parsers. ccxt is mocked; no network.
"""
import json
from decimal import Decimal

import ccxt
import pytest

from src.data.hyperliquid_client import (
    HyperliquidClient,
    parse_account_state,
    parse_order_outcome,
    parse_rejected_order,
)
from src.domain.models import OrderDirection, OrderRequest
from src.exceptions import ConfigurationError, LeverageError, TransportError

CLEARINGHOUSE_STATE = {
    "marginSummary": {"accountValue": "10250.5", "totalMarginUsed": "1250.5", "totalNtlPos": "2500"},
    "assetPositions": [
        {
            "type": "oneWay",
            "position": {
                "coin": "BTC",
                "szi": "-0.05",
                "entryPx": "50000.0",
                "unrealizedPnl": "-12.3",
                "leverage": {"type": "cross", "value": 2},
            },
        },
        {"type": "oneWay", "position": {"coin": "ETH", "szi": "0.0", "entryPx": None}},
    ],
}


NO_MATCH = "Order could not immediately match against any resting orders."


def _order_reply(*statuses) -> dict:
    return {"status": "ok", "response": {"type": "order", "data": {"statuses": list(statuses)}}}


def _ccxt_error_for(payload: dict) -> Exception:
    """The exception ccxt's own hyperliquid error handler raises for this reply."""
    try:
        ccxt.hyperliquid().handle_errors(
            200, "OK", "https://api.hyperliquid.xyz/exchange", "POST", {}, json.dumps(payload), payload, None, None
        )
    except ccxt.BaseError as e:
        return e
    raise AssertionError("ccxt accepted the reply")


def _client() -> HyperliquidClient:
    return HyperliquidClient("0xabc", "0xkey")


def _buy(size: str = "0.5") -> OrderRequest:
    return OrderRequest(
        instrument="BTC/USDC:USDC",
        direction=OrderDirection.BUY,
        quantity=Decimal(size),
        limit_price=Decimal("50000"),
    )


class TestParseAccountState:
    def test_margin_summary_and_positions(self):
        state = parse_account_state(CLEARINGHOUSE_STATE)

        assert state.account_value == Decimal("10250.5")
        assert state.margin_used == Decimal("1250.5")
        assert state.available_balance == Decimal("9000.0")
        btc, eth = state.positions
        assert btc["coin"] == "BTC"
        assert btc["signed_size"] == Decimal("-0.05")
        assert btc["leverage"] == Decimal("2")
        assert eth["signed_size"] == 0
        assert eth["entry_price"] == 0

    def test_empty_payload(self):
        state = parse_account_state({})
        assert state.account_value == 0
        assert state.positions == ()

    def test_non_dict_payload_rejected(self):
        with pytest.raises(TransportError):
            parse_account_state(None)


class TestParseOrderOutcome:
    def test_filled(self):
        outcome = parse_order_outcome({"info": {"filled": {"totalSz": "0.5", "avgPx": "50001.5", "oid": 77}}})

        assert outcome.filled
        (leg,) = outcome.legs
        assert leg.filled_size == Decimal("0.5")
        assert leg.order_id == "77"
        assert outcome.average_price == Decimal("50001.5")

    def test_resting_and_error_are_not_filled(self):
        assert not parse_order_outcome({"info": {"resting": {"oid": 1}}}).filled
        outcome = parse_order_outcome({"info": {"error": "Order could not immediately match against any resting orders."}})
        assert outcome.readable
        assert not outcome.filled
        assert outcome.legs[0].status == "error"

    def test_all_legs_must_fill(self):
        outcome = parse_order_outcome([
            {"info": {"filled": {"totalSz": "0.5", "avgPx": "50000", "oid": 1}}},
            {"info": {"error": "insufficient margin"}},
        ])
        assert outcome.readable
        assert not outcome.filled

    def test_unified_status_fallback(self):
        outcome = parse_order_outcome({"id": "9", "status": "closed", "filled": 0.5, "average": 50000})
        assert outcome.filled
        assert outcome.legs[0].order_id == "9"

    @pytest.mark.parametrize("response", [None, {}, {"info": {}}, [{"info": {"filled": {"totalSz": "1"}}}, None]])
    def test_unreadable(self, response):
        outcome = parse_order_outcome(response)
        assert not outcome.readable
        assert not outcome.filled


class TestParseRejectedOrder:
    def test_no_match_reply_is_unfilled(self):
        outcome = parse_rejected_order(_order_reply({"error": NO_MATCH}))

        assert outcome.readable
        assert not outcome.filled
        assert outcome.legs[0].error == NO_MATCH

    def test_mixed_legs(self):
        outcome = parse_rejected_order(_order_reply(
            {"filled": {"totalSz": "0.5", "avgPx": "50000", "oid": 3}},
            {"error": "Insufficient margin to place order. asset=0"},
        ))

        assert [leg.status for leg in outcome.legs] == ["filled", "error"]
        assert not outcome.filled

    def test_unreadable_entry(self):
        outcome = parse_rejected_order(_order_reply({"error": NO_MATCH}, {"weird": 1}))
        assert outcome is not None
        assert not outcome.readable

    @pytest.mark.parametrize("raw", [
        None,
        "rate limited",
        {"status": "err", "response": "User or API Wallet 0xabc does not exist."},
        {"status": "ok", "response": {"type": "order", "data": {"statuses": []}}},
        {"status": "ok", "response": {"type": "default"}},
    ])
    def test_no_statuses(self, raw):
        assert parse_rejected_order(raw) is None


class TestHyperliquidClient:
    @pytest.mark.asyncio
    async def test_initialize_requires_credentials(self, no_network_client):
        ctor, _ = no_network_client
        client = HyperliquidClient("", None)

        with pytest.raises(ConfigurationError):
            await client.initialize()
        ctor.assert_not_called()

    @pytest.mark.asyncio
    async def test_initialize_rejects_unexpanded_wallet(self, no_network_client):
        ctor, _ = no_network_client
        client = HyperliquidClient("${HYPERLIQUID_WALLET_ADDRESS}", "0xkey")

        with pytest.raises(ConfigurationError, match="HYPERLIQUID_WALLET_ADDRESS"):
            await client.initialize()
        ctor.assert_not_called()

    @pytest.mark.asyncio
    async def test_initialize_once(self, no_network_client):
        ctor, exchange = no_network_client
        client = _client()

        await client.initialize()
        await client.initialize()

        ctor.assert_called_once()
        options = ctor.call_args.args[0]
        assert options["walletAddress"] == "0xabc"
        assert options["privateKey"] == "0xkey"
        assert options["enableLastJsonResponse"] is True
        exchange.load_markets.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initialize_market_load_failure(self, no_network_client):
        _, exchange = no_network_client
        exchange.load_markets.side_effect = ccxt.NetworkError("down")
        client = _client()

        with pytest.raises(TransportError):
            await client.initialize()
        exchange.close.assert_awaited_once()
        assert client.exchange is None

    @pytest.mark.asyncio
    async def test_account_state_for_configured_wallet(self, no_network_client):
        _, exchange = no_network_client
        exchange.public_post_info.return_value = CLEARINGHOUSE_STATE
        client = _client()

        state = await client.get_account_state()

        exchange.public_post_info.assert_awaited_once_with({"type": "clearinghouseState", "user": "0xabc"})
        assert state.account_value == Decimal("10250.5")

    @pytest.mark.asyncio
    async def test_account_state_retries_transport_errors(self, no_network_client, sleeps):
        _, exchange = no_network_client
        exchange.public_post_info.side_effect = [ccxt.NetworkError("reset"), CLEARINGHOUSE_STATE]
        client = _client()

        state = await client.get_account_state()

        assert state.margin_used == Decimal("1250.5")
        assert exchange.public_post_info.await_count == 2
        assert len(sleeps) == 1

    @pytest.mark.asyncio
    async def test_mid_price(self, no_network_client):
        _, exchange = no_network_client
        exchange.public_post_info.return_value = {"BTC": "50000.5", "ETH": "2500"}
        client = _client()

        assert await client.get_mid_price("BTC/USDC:USDC") == Decimal("50000.5")
        with pytest.raises(TransportError):
            await client.get_mid_price("XYZ/USDC:USDC")

    @pytest.mark.asyncio
    async def test_set_leverage(self, no_network_client):
        _, exchange = no_network_client
        client = _client()

        await client.set_leverage("BTC/USDC:USDC", Decimal("5"), "cross")

        exchange.set_leverage.assert_awaited_once_with(5, "BTC/USDC:USDC", {"marginMode": "cross"})

    @pytest.mark.asyncio
    async def test_set_leverage_failure(self, no_network_client):
        _, exchange = no_network_client
        exchange.set_leverage.side_effect = ccxt.ExchangeError("max leverage is 3")
        client = _client()

        with pytest.raises(LeverageError, match="max leverage is 3"):
            await client.set_leverage("BTC/USDC:USDC", Decimal("5"))

    @pytest.mark.asyncio
    async def test_place_order(self, no_network_client):
        _, exchange = no_network_client
        exchange.create_order.return_value = {"info": {"filled": {"totalSz": "0.5", "avgPx": "50000", "oid": 5}}}
        client = _client()
        request = OrderRequest(
            instrument="BTC/USDC:USDC",
            direction=OrderDirection.SELL,
            quantity=Decimal("0.5"),
            limit_price=Decimal("50000.12"),
            reduce_only=True,
        )

        outcome = await client.place_order(request)

        assert outcome.filled
        kwargs = exchange.create_order.call_args.kwargs
        assert kwargs["symbol"] == "BTC/USDC:USDC"
        assert kwargs["type"] == "limit"
        assert kwargs["side"] == "sell"
        assert kwargs["amount"] == 0.5
        assert kwargs["price"] == 50000.12
        assert kwargs["params"] == {"timeInForce": "Ioc", "reduceOnly": True}

    @pytest.mark.asyncio
    async def test_place_order_transport_failure(self, no_network_client):
        _, exchange = no_network_client
        exchange.create_order.side_effect = ccxt.NetworkError("timeout")
        client = _client()

        with pytest.raises(TransportError):
            await client.place_order(_buy())

    @pytest.mark.asyncio
    async def test_place_order_ioc_no_match_is_unfilled(self, no_network_client):
        _, exchange = no_network_client
        reply = _order_reply({"error": NO_MATCH})
        error = _ccxt_error_for(reply)
        assert isinstance(error, ccxt.InvalidOrder)

        async def create_order(**kwargs):
            exchange.last_json_response = reply
            raise error

        exchange.create_order.side_effect = create_order
        client = _client()

        outcome = await client.place_order(_buy())

        assert outcome.readable
        assert not outcome.filled
        assert outcome.legs[0].status == "error"
        assert outcome.legs[0].error == NO_MATCH

    @pytest.mark.asyncio
    async def test_place_order_ignores_previous_reply(self, no_network_client):
        _, exchange = no_network_client
        client = _client()
        await client.initialize()
        exchange.last_json_response = _order_reply({"error": NO_MATCH})
        exchange.create_order.side_effect = ccxt.RequestTimeout("timeout")

        with pytest.raises(TransportError):
            await client.place_order(_buy())

    @pytest.mark.asyncio
    async def test_close_releases_exchange(self, no_network_client):
        _, exchange = no_network_client
        client = _client()
        await client.initialize()

        await client.close()

        exchange.close.assert_awaited_once()
        assert client.exchange is None

    def test_describe_positions(self):
        lines = _client().describe_positions(parse_account_state(CLEARINGHOUSE_STATE))
        assert lines == ["BTC: SHORT 0.05 @ $50000.00 | PnL: $-12.30"]
