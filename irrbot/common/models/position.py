"""持仓：带符号的基础币数量 + 均价 + 已实现盈亏。"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from irrbot.common.errors import InvalidQuantityError
from irrbot.common.models.models import Fill
from irrbot.common.utils.precision import ZERO


@dataclass
class Position:
    """单品种持仓。

    Notes
    -----
    只能通过 `apply_fill` 修改；风控与仓位模块只读。
    均价不含手续费，手续费计入 `accumulated_fee` 与 `net_profit`。
    """

    symbol: str
    base: Decimal = ZERO
    average_cost: Decimal = ZERO
    realized_profit: Decimal = ZERO
    net_profit: Decimal = ZERO
    accumulated_fee: Decimal = ZERO
    min_quantity: Decimal = ZERO
    min_notional: Decimal = ZERO

    @property
    def is_long(self) -> bool:
        return self.base > 0

    @property
    def is_short(self) -> bool:
        return self.base < 0

    @property
    def is_closed(self) -> bool:
        return self.base == 0

    def is_dust(self, price: Decimal) -> bool:
        """仓位是否小到可以视为 0。"""
        qty = abs(self.base)
        if qty == 0:
            return True
        if self.min_quantity > 0 and qty < self.min_quantity:
            return True
        if self.min_notional > 0 and qty * price < self.min_notional:
            return True
        return False

    def unrealized_profit(self, price: Decimal) -> Decimal:
        if self.base == 0:
            return ZERO
        return (price - self.average_cost) * self.base

    def apply_fill(self, fill: Fill) -> tuple[Decimal, Decimal] | None:
        """应用一笔成交。

        Returns
        -------
        tuple[Decimal, Decimal] | None
            减仓/平仓时返回 (profit, net_profit)；纯加仓返回 None。

        Raises
        ------
        InvalidQuantityError
            成交数量 <= 0。
        """
        qty = fill.quantity
        price = fill.price
        if qty <= 0:
            raise InvalidQuantityError(f"fill quantity must be > 0, got {qty}")
        signed = qty * fill.side.sign
        self.accumulated_fee += fill.fee

        if self.base == 0 or (self.base > 0) == (signed > 0):
            new_base = self.base + signed
            self.average_cost = (abs(self.base) * self.average_cost + qty * price) / abs(new_base)
            self.base = new_base
            return None

        close_qty = min(qty, abs(self.base))
        if self.base > 0:
            profit = (price - self.average_cost) * close_qty
        else:
            profit = (self.average_cost - price) * close_qty
        net_profit = profit - fill.fee
        self.realized_profit += profit
        self.net_profit += net_profit

        remaining = qty - close_qty
        if remaining > 0:
            # 反手：剩余部分按成交价开新仓
            self.base = remaining if signed > 0 else -remaining
            self.average_cost = price
        else:
            self.base += signed
            if self.base == 0:
                self.average_cost = ZERO
        return profit, net_profit
