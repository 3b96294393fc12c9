"""回测撮合模拟器。

职责：保存挂单，在下一根 K 线的高低价穿越限价时按限价成交，
扣手续费、更新余额。`position` 只记录本执行器成交累积的净仓位（不含初始余额），
平仓只作用于这部分。成交回报先进入待发送队列，由回测驱动方通过
`drain_fills()` 取出后串行交给决策循环，避免在 on_tick 内部重入 on_fill。
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from itertools import count
from typing import Sequence

from irrbot.common.models.models import Bar, Fill, OrderInstruction, Side
from irrbot.common.utils.logging import setup_logger
from irrbot.common.utils.precision import ZERO


@dataclass
class RestingOrder:
    order_id: str
    instruction: OrderInstruction


class SimulatedExecutor:
    """同时实现 OrderExecutor 与 AccountState，仅用于回测/测试。

    Parameters
    ----------
    base_currency, quote_currency:
        余额币种。
    initial_base, initial_quote:
        初始余额。
    fee_rate:
        手续费率（按成交额，以报价币扣除）。
    """

    def __init__(
        self,
        *,
        symbol: str | None = None,
        base_currency: str,
        quote_currency: str,
        initial_base: Decimal = ZERO,
        initial_quote: Decimal = ZERO,
        fee_rate: Decimal = ZERO,
    ):
        self.symbol = symbol or f"{base_currency}{quote_currency}"
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        self.fee_rate = fee_rate
        self._balances: dict[str, Decimal] = {
            base_currency: initial_base,
            quote_currency: initial_quote,
        }
        self.position: Decimal = ZERO
        self.resting: list[RestingOrder] = []
        self.fills: list[Fill] = []
        self._pending: list[Fill] = []
        self.last_price: Decimal = ZERO
        self._ids = count(1)
        self.logger = setup_logger("sim-executor")

    def balances(self) -> dict[str, Decimal]:
        return dict(self._balances)

    def submit(self, instructions: Sequence[OrderInstruction]) -> None:
        for ins in instructions:
            order_id = f"sim-{next(self._ids)}"
            self.resting.append(RestingOrder(order_id=order_id, instruction=ins))
            self.logger.debug("submit %s %s %s@%s", order_id, ins.side.value, ins.quantity, ins.price)

    def cancel_all_own_orders(self) -> None:
        if self.resting:
            self.logger.debug("cancel %d resting orders", len(self.resting))
        self.resting.clear()

    def close_position(self, fraction: Decimal) -> None:
        """按最新价市价平掉 fraction 比例的策略仓位；初始余额不受影响。"""
        qty = abs(self.position) * fraction
        if qty <= 0 or self.last_price <= 0:
            return
        side = Side.SELL if self.position > 0 else Side.BUY
        self._fill(f"sim-{next(self._ids)}", side, self.last_price, qty, None)

    def on_bar(self, bar: Bar) -> list[Fill]:
        """用一根新 K 线撮合挂单，返回本根产生的成交。"""
        fills: list[Fill] = []
        still_resting: list[RestingOrder] = []
        for order in self.resting:
            ins = order.instruction
            crossed = (ins.side is Side.BUY and bar.low <= ins.price) or (
                ins.side is Side.SELL and bar.high >= ins.price
            )
            if crossed:
                fills.append(self._fill(order.order_id, ins.side, ins.price, ins.quantity, bar))
            else:
                still_resting.append(order)
        self.resting = still_resting
        self.last_price = bar.close
        return fills

    def _fill(self, order_id: str, side: Side, price: Decimal, qty: Decimal, bar: Bar | None) -> Fill:
        notional = price * qty
        fee = notional * self.fee_rate
        base = self._balances.get(self.base_currency, ZERO)
        quote = self._balances.get(self.quote_currency, ZERO)
        if side is Side.BUY:
            self._balances[self.base_currency] = base + qty
            self._balances[self.quote_currency] = quote - notional - fee
        else:
            self._balances[self.base_currency] = base - qty
            self._balances[self.quote_currency] = quote + notional - fee
        self.position += qty * side.sign
        fill = Fill(
            symbol=self.symbol,
            side=side,
            price=price,
            quantity=qty,
            fee=fee,
            fee_currency=self.quote_currency,
            ts=bar.end_ts if bar is not None else None,
            order_id=order_id,
        )
        self.fills.append(fill)
        self._pending.append(fill)
        return fill

    def drain_fills(self) -> list[Fill]:
        """取出尚未交给决策循环的成交（按发生顺序）。"""
        out, self._pending = self._pending, []
        return out
