"""逐笔已实现盈亏统计（胜率、盈亏比）。"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from irrbot.common.utils.precision import ZERO


@dataclass
class TradeStats:
    symbol: str
    num_of_profit_trade: int = 0
    num_of_loss_trade: int = 0
    gross_profit: Decimal = ZERO
    gross_loss: Decimal = ZERO
    largest_profit_trade: Decimal = ZERO
    largest_loss_trade: Decimal = ZERO

    def add_profit(self, profit: Decimal) -> None:
        """记录一笔平仓盈亏；0 盈亏不计入胜负。"""
        if profit > 0:
            self.num_of_profit_trade += 1
            self.gross_profit += profit
            self.largest_profit_trade = max(self.largest_profit_trade, profit)
        elif profit < 0:
            self.num_of_loss_trade += 1
            self.gross_loss += profit
            self.largest_loss_trade = min(self.largest_loss_trade, profit)

    @property
    def total_trades(self) -> int:
        return self.num_of_profit_trade + self.num_of_loss_trade

    @property
    def winning_ratio(self) -> float:
        total = self.total_trades
        return self.num_of_profit_trade / total if total else 0.0

    @property
    def profit_factor(self) -> float:
        loss_abs = abs(self.gross_loss)
        if loss_abs > 0:
            return float(self.gross_profit / loss_abs)
        return float("inf") if self.gross_profit > 0 else 0.0

    def __str__(self) -> str:
        return (
            f"TradeStats[{self.symbol}] trades={self.total_trades} "
            f"win={self.num_of_profit_trade} loss={self.num_of_loss_trade} "
            f"winRatio={self.winning_ratio:.4f} profitFactor={self.profit_factor:.4f} "
            f"grossProfit={self.gross_profit} grossLoss={self.gross_loss}"
        )
