"""回测驱动：按时间顺序把 K 线与模拟成交串行交给决策循环。"""

from __future__ import annotations

from typing import Any, Iterable

from irrbot.common.config.schema import IrrConfig
from irrbot.common.models.models import Bar
from irrbot.common.utils.logging import setup_logger
from irrbot.execution.simulator import SimulatedExecutor
from irrbot.strategies.irr import IrrStrategy


class BacktestRunner:
    """离线回放。

    每根 K 线的顺序：先用它撮合上一根留下的挂单 -> 处理成交 -> 决策 ->
    处理决策中产生的即时成交（止损平仓）。
    """

    def __init__(self, config: IrrConfig, *, report: bool = True):
        self.cfg = config.model_copy(update={"report_enabled": True}) if report else config
        self.logger = setup_logger("backtest")
        self.executor = SimulatedExecutor(
            symbol=self.cfg.symbol,
            base_currency=self.cfg.base_currency,
            quote_currency=self.cfg.quote_currency,
            initial_base=self.cfg.initial_base,
            initial_quote=self.cfg.initial_quote,
            fee_rate=self.cfg.fee_rate,
        )
        self.strategy = IrrStrategy(self.cfg, self.executor, self.executor)

    def run(self, bars: Iterable[Bar]) -> dict[str, Any]:
        n = 0
        for bar in bars:
            if n == 0:
                self.strategy.start(last_price=bar.close)
            self.executor.on_bar(bar)
            self._dispatch_fills()
            self.strategy.on_tick(bar)
            self._dispatch_fills()
            n += 1
        if n == 0:
            self.logger.warning("No bars to replay.")
        summary = self.strategy.stop()
        summary["bars"] = n
        summary["fills"] = len(self.executor.fills)
        summary["balances"] = self.executor.balances()
        return summary

    def _dispatch_fills(self) -> None:
        for fill in self.executor.drain_fills():
            self.strategy.on_fill(fill)
