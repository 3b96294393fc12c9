"""核心数据结构：Bar/OrderBookSnapshot/Fill/OrderInstruction/PriceTrackingState。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from irrbot.common.utils.precision import ZERO


class Side(str, Enum):
    """买卖方向。"""

    BUY = "buy"
    SELL = "sell"

    @property
    def sign(self) -> int:
        return 1 if self is Side.BUY else -1


@dataclass(frozen=True)
class Bar:
    """已收盘 K 线。"""

    symbol: str
    interval: str
    close: Decimal
    end_ts: datetime
    open: Decimal = ZERO
    high: Decimal = ZERO
    low: Decimal = ZERO
    volume: Decimal = ZERO
    start_ts: datetime | None = None


@dataclass(frozen=True)
class OrderBookSnapshot:
    """盘口快照：bids/asks 为 (price, qty) 列表，按最优价在前。"""

    bids: list[tuple[Decimal, Decimal]] = field(default_factory=list)
    asks: list[tuple[Decimal, Decimal]] = field(default_factory=list)

    def depth(self, levels: int = 5) -> Decimal:
        """前 `levels` 档买卖双边挂单量之和。"""
        n = max(0, int(levels))
        total = ZERO
        for _, qty in self.bids[:n]:
            total += qty
        for _, qty in self.asks[:n]:
            total += qty
        return total


@dataclass(frozen=True)
class Fill:
    """成交回报（手续费以报价币计）。"""

    symbol: str
    side: Side
    price: Decimal
    quantity: Decimal
    fee: Decimal = ZERO
    fee_currency: str | None = None
    ts: datetime | None = None
    order_id: str | None = None


@dataclass(frozen=True)
class OrderInstruction:
    """决策循环输出的子订单指令，创建后即交给外部执行方。"""

    symbol: str
    side: Side
    quantity: Decimal
    price: Decimal
    tag: str = "irr"


@dataclass
class PriceTrackingState:
    """持仓参考价跟踪（只在成交处理时更新）。

    - 多头：buy_price/highest_price 为最近一次成交价；
    - 空头：sell_price/lowest_price 为最近一次成交价；
    - 仓位为 dust 时全部归零。
    """

    buy_price: float = 0.0
    sell_price: float = 0.0
    highest_price: float = 0.0
    lowest_price: float = 0.0

    def reset(self) -> None:
        self.buy_price = 0.0
        self.sell_price = 0.0
        self.highest_price = 0.0
        self.lowest_price = 0.0

    def mark_long(self, price: float) -> None:
        self.buy_price = price
        self.sell_price = 0.0
        self.highest_price = price
        self.lowest_price = 0.0

    def mark_short(self, price: float) -> None:
        self.sell_price = price
        self.buy_price = 0.0
        self.highest_price = 0.0
        self.lowest_price = price
