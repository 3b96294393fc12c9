"""PnL 图表用的数值序列（只产出数据，不负责绘图）。"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from irrbot.analysis.series import RollingSeries
from irrbot.common.errors import ExternalIOError
from irrbot.common.models.models import PriceTrackingState


class ChartSeries:
    """逐笔成交更新的收益序列。

    - profit：相对上一笔开仓价的收益倍数（多头 price/buy_price，空头 sell_price/price）；
    - cum_profit：账户资产估值；
    - profit_dollar / cum_profit_dollar：逐笔已实现盈亏及其累计。
    """

    def __init__(self, initial_asset: float):
        self.profit = RollingSeries([1.0, 1.0])
        self.cum_profit = RollingSeries([initial_asset, initial_asset])
        self.profit_dollar = RollingSeries([0.0, 0.0])
        self.cum_profit_dollar = RollingSeries([0.0, 0.0])

    def on_trade(self, price: float, tracking: PriceTrackingState, asset_value: float, profit: float) -> None:
        """在 tracking 更新之前调用，使用上一笔的参考价。"""
        if tracking.buy_price > 0:
            self.profit.update(price / tracking.buy_price)
            self.cum_profit.update(asset_value)
        elif tracking.sell_price > 0 and price > 0:
            self.profit.update(tracking.sell_price / price)
            self.cum_profit.update(asset_value)
        self.profit_dollar.update(profit)
        self.cum_profit_dollar.update(self.profit_dollar.sum())

    def export(self, pnl_path: str | Path | None, cum_pnl_path: str | Path | None) -> list[Path]:
        """把序列写成 TSV，供外部画图工具使用。"""
        written: list[Path] = []
        jobs = [
            (pnl_path, {"profit": self.profit.values(), "profit_dollar": self.profit_dollar.values()}),
            (cum_pnl_path, {"cum_profit": self.cum_profit.values(), "cum_profit_dollar": self.cum_profit_dollar.values()}),
        ]
        for path, columns in jobs:
            if not path:
                continue
            out = Path(path)
            df = pd.DataFrame({k: pd.Series(v, dtype=float) for k, v in columns.items()})
            try:
                out.parent.mkdir(parents=True, exist_ok=True)
                df.to_csv(out, sep="\t", index_label="n", float_format="%f")
            except OSError as exc:
                raise ExternalIOError(f"cannot write chart series to {out}: {exc}") from exc
            written.append(out)
        return written
