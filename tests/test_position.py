from decimal import Decimal

import pytest

from irrbot.common.errors import InvalidQuantityError
from irrbot.common.models.models import Fill, Side
from irrbot.common.models.position import Position

D = Decimal


def _fill(side: Side, price: str, qty: str, fee: str = "0") -> Fill:
    return Fill(symbol="BTCUSDT", side=side, price=D(price), quantity=D(qty), fee=D(fee))


def test_increase_updates_average_cost():
    pos = Position(symbol="BTCUSDT")
    assert pos.apply_fill(_fill(Side.BUY, "100", "1")) is None
    assert pos.apply_fill(_fill(Side.BUY, "130", "2")) is None
    assert pos.base == D("3")
    assert pos.average_cost == D("120")


def test_reduce_realizes_profit_net_of_fee():
    pos = Position(symbol="BTCUSDT")
    pos.apply_fill(_fill(Side.BUY, "100", "2"))
    profit, net = pos.apply_fill(_fill(Side.SELL, "110", "1", fee="0.5"))
    assert profit == D("10")
    assert net == D("9.5")
    assert pos.base == D("1")
    assert pos.average_cost == D("100")
    assert pos.realized_profit == D("10")
    assert pos.accumulated_fee == D("0.5")


def test_close_resets_average_cost():
    pos = Position(symbol="BTCUSDT")
    pos.apply_fill(_fill(Side.SELL, "100", "1"))
    assert pos.is_short
    profit, _ = pos.apply_fill(_fill(Side.BUY, "90", "1"))
    assert profit == D("10")
    assert pos.is_closed
    assert pos.average_cost == 0


def test_flip_opens_remainder_at_fill_price():
    pos = Position(symbol="BTCUSDT")
    pos.apply_fill(_fill(Side.BUY, "100", "1"))
    profit, _ = pos.apply_fill(_fill(Side.SELL, "95", "3"))
    assert profit == D("-5")
    assert pos.base == D("-2")
    assert pos.average_cost == D("95")


def test_is_dust_thresholds():
    pos = Position(symbol="BTCUSDT", base=D("0.001"), min_quantity=D("0.01"))
    assert pos.is_dust(D("100"))
    pos = Position(symbol="BTCUSDT", base=D("0.1"), min_notional=D("10"))
    assert pos.is_dust(D("50"))
    assert not pos.is_dust(D("200"))
    assert Position(symbol="BTCUSDT").is_dust(D("100"))


def test_unrealized_profit_sign():
    pos = Position(symbol="BTCUSDT", base=D("-2"), average_cost=D("100"))
    assert pos.unrealized_profit(D("90")) == D("20")


def test_non_positive_fill_quantity_rejected():
    pos = Position(symbol="BTCUSDT")
    with pytest.raises(InvalidQuantityError):
        pos.apply_fill(_fill(Side.BUY, "100", "0"))
    assert pos.is_closed
    assert pos.accumulated_fee == 0
