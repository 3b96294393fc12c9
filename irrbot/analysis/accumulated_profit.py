"""累计收益报告（回测用）。

事件：
- `record_trade(fee)`：每笔成交，累加手续费与成交笔数；
- `record_profit(profit)`：每笔平仓盈亏，立即计入累计收益；
- `daily_update(trade_stats)`：每个 day boundary 快照一次各滚动序列。

`output(symbol)` 只读，按 `interval_window` 向前回看 `number_of_interval` 行，
区间收益/区间成交数用“两段 tail 相减”得到严格落在某个历史窗口内的和。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from pathlib import Path
from typing import NamedTuple

import pandas as pd

from irrbot.analysis.series import RollingSeries, SimpleMovingAverage
from irrbot.analysis.trade_stats import TradeStats
from irrbot.common.config.schema import AccumulatedProfitReportConfig
from irrbot.common.errors import ExternalIOError
from irrbot.common.utils.logging import setup_logger
from irrbot.common.utils.precision import ZERO

_DEFAULT_MA_WINDOW = 60
_DEFAULT_INTERVAL_WINDOW = 7
_DEFAULT_NUMBER_OF_INTERVAL = 1
_DEFAULT_DAILY_PROFIT_WINDOW = 7
_DEFAULT_TRADE_COUNT_WINDOW = 60


class ReportWindows(NamedTuple):
    ma: int
    interval: int
    number_of_interval: int
    daily_profit: int
    trade_count: int


def _positive_or(value: int, default: int) -> int:
    return value if value > 0 else default


@dataclass(frozen=True)
class ReportRow:
    """报告中的一行（index 从 1 开始，1 为最近区间）。"""

    index: int
    symbol: str
    accumulated_profit: float
    accumulated_profit_ma: float
    interval_profit: float
    accumulated_fee: float
    win_ratio: float
    profit_factor: float
    trades: float


class AccumulatedProfitReport:
    """累计收益聚合器。

    Parameters
    ----------
    config:
        报告窗口配置；非正值在 `initialize()` 中回落为默认值。
    """

    def __init__(self, config: AccumulatedProfitReportConfig | None = None):
        cfg = config or AccumulatedProfitReportConfig()
        self.accumulated_profit_ma_window = cfg.accumulated_profit_ma_window
        self.interval_window = cfg.interval_window
        self.number_of_interval = cfg.number_of_interval
        self.accumulated_daily_profit_window = cfg.accumulated_daily_profit_window
        self.trade_count_window = cfg.trade_count_window
        self.tsv_report_path = cfg.tsv_report_path
        self.logger = setup_logger("accumulated-profit")

        self.accumulated_profit: Decimal = ZERO
        self.previous_accumulated_profit: Decimal = ZERO
        self.accumulated_fee: Decimal = ZERO
        self.accumulated_trades = 0
        self.previous_accumulated_trades = 0

        self.accumulated_profit_per_day = RollingSeries()
        self.accumulated_profit_ma_per_day = RollingSeries()
        self.daily_profit = RollingSeries()
        self.accumulated_fee_per_day = RollingSeries()
        self.win_ratio_per_day = RollingSeries()
        self.profit_factor_per_day = RollingSeries()
        self.daily_trades = RollingSeries()

        self._accumulated_profit_ma: SimpleMovingAverage | None = None

    @property
    def initialized(self) -> bool:
        return self._accumulated_profit_ma is not None

    def effective_windows(self) -> ReportWindows:
        """非正窗口按默认值解释，不回写字段。"""
        return ReportWindows(
            ma=_positive_or(self.accumulated_profit_ma_window, _DEFAULT_MA_WINDOW),
            interval=_positive_or(self.interval_window, _DEFAULT_INTERVAL_WINDOW),
            number_of_interval=_positive_or(self.number_of_interval, _DEFAULT_NUMBER_OF_INTERVAL),
            daily_profit=_positive_or(self.accumulated_daily_profit_window, _DEFAULT_DAILY_PROFIT_WINDOW),
            trade_count=_positive_or(self.trade_count_window, _DEFAULT_TRADE_COUNT_WINDOW),
        )

    def initialize(self) -> SimpleMovingAverage:
        """补默认窗口并创建 MA；重复调用返回同一个 MA。"""
        if self._accumulated_profit_ma is not None:
            return self._accumulated_profit_ma
        w = self.effective_windows()
        self.accumulated_profit_ma_window = w.ma
        self.interval_window = w.interval
        self.number_of_interval = w.number_of_interval
        self.accumulated_daily_profit_window = w.daily_profit
        self.trade_count_window = w.trade_count
        self._accumulated_profit_ma = SimpleMovingAverage(w.ma)
        return self._accumulated_profit_ma

    def record_profit(self, profit: Decimal) -> None:
        self.accumulated_profit += profit

    def record_trade(self, fee: Decimal) -> None:
        self.accumulated_fee += fee
        self.accumulated_trades += 1

    def daily_update(self, trade_stats: TradeStats) -> None:
        """day boundary：把当前累计值快照进各滚动序列。"""
        ma = self.initialize()

        self.daily_profit.update(float(self.accumulated_profit - self.previous_accumulated_profit))
        self.previous_accumulated_profit = self.accumulated_profit

        accumulated = float(self.accumulated_profit)
        self.accumulated_profit_per_day.update(accumulated)
        self.accumulated_profit_ma_per_day.update(ma.update(accumulated))

        self.accumulated_fee_per_day.update(float(self.accumulated_fee))
        self.win_ratio_per_day.update(trade_stats.winning_ratio)
        self.profit_factor_per_day.update(trade_stats.profit_factor)

        self.daily_trades.update(float(self.accumulated_trades - self.previous_accumulated_trades))
        self.previous_accumulated_trades = self.accumulated_trades

    def header(self) -> list[str]:
        w = self.effective_windows()
        return [
            "#",
            "Symbol",
            "accumulatedProfit",
            "accumulatedProfitMA",
            f"{w.daily_profit}d profit",
            "accumulatedFee",
            "winRatio",
            "profitFactor",
            f"{w.trade_count}D trades",
        ]

    def output(self, symbol: str) -> list[ReportRow]:
        """渲染报告行；不修改任何状态。"""
        w = self.effective_windows()
        rows: list[ReportRow] = []
        for i in range(w.number_of_interval):
            offset = w.interval * i
            interval_profit = self.daily_profit.tail(w.daily_profit + offset) - self.daily_profit.tail(offset)
            trades = self.daily_trades.tail(w.trade_count + offset) - self.daily_trades.tail(offset)
            rows.append(
                ReportRow(
                    index=i + 1,
                    symbol=symbol,
                    accumulated_profit=self.accumulated_profit_per_day.index(offset),
                    accumulated_profit_ma=self.accumulated_profit_ma_per_day.index(offset),
                    interval_profit=interval_profit,
                    accumulated_fee=self.accumulated_fee_per_day.index(offset),
                    win_ratio=self.win_ratio_per_day.index(offset),
                    profit_factor=self.profit_factor_per_day.index(offset),
                    trades=trades,
                )
            )
        return rows

    def to_frame(self, symbol: str) -> pd.DataFrame:
        rows = [list(asdict(r).values()) for r in self.output(symbol)]
        return pd.DataFrame(rows, columns=self.header())

    def write_tsv(self, symbol: str, path: str | Path | None = None) -> Path | None:
        """把报告追加写入 TSV（每次都带表头）；未配置路径时跳过。

        Raises
        ------
        ExternalIOError
            文件无法写入。
        """
        target = path or self.tsv_report_path
        if not target:
            return None
        out = Path(target)
        df = self.to_frame(symbol)
        try:
            out.parent.mkdir(parents=True, exist_ok=True)
            with out.open("a", newline="", encoding="utf-8") as f:
                df.to_csv(f, sep="\t", index=False, float_format="%f")
        except OSError as exc:
            raise ExternalIOError(f"cannot write accumulated profit report to {out}: {exc}") from exc
        self.logger.info("Accumulated profit report written to %s (%d rows)", out, len(df))
        return out
