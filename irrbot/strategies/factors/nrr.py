"""NRR（Negative Return Rate）alpha 因子。

每根 K 线：
    ret = close / close[return_window-1 根之前] - 1
    value = -ret
    ranked = 最近 ranking_window 个 value 中 <= 当前 value 的占比，取值 (0, 1]

ranked 越大表示近期跌得越多（均值回归方向偏多）。
"""

from __future__ import annotations

from collections import deque

from irrbot.analysis.series import RollingSeries
from irrbot.common.models.models import Bar


class NegativeReturnRate:
    """增量计算的 NRR 排名因子。

    Parameters
    ----------
    return_window:
        收益率回看根数，2 表示相邻两根收盘价的日收益。
    ranking_window:
        排名窗口。
    """

    def __init__(self, return_window: int = 2, ranking_window: int = 30, maxlen: int | None = 4096):
        if return_window < 2:
            raise ValueError("return_window must be >= 2")
        if ranking_window < 1:
            raise ValueError("ranking_window must be >= 1")
        self.return_window = int(return_window)
        self.ranking_window = int(ranking_window)
        self._closes: deque[float] = deque(maxlen=self.return_window)
        self.values = RollingSeries(maxlen=maxlen)
        self.ranked_values = RollingSeries(maxlen=maxlen)
        self.return_values = RollingSeries(maxlen=maxlen)

    @property
    def ready(self) -> bool:
        """是否已有足够的排名值（决策循环使用 index(1)，因此至少两个）。"""
        return len(self.ranked_values) >= 2

    def update(self, bar: Bar) -> None:
        self.update_close(float(bar.close))

    def update_close(self, close: float) -> None:
        self._closes.append(close)
        if len(self._closes) < self.return_window:
            return
        base = self._closes[0]
        ret = close / base - 1.0 if base else 0.0
        self.return_values.update(ret)
        self.values.update(-ret)
        self.ranked_values.update(self._rank_latest())

    def _rank_latest(self) -> float:
        n = min(self.ranking_window, len(self.values))
        latest = self.values.index(0)
        below = sum(1 for k in range(n) if self.values.index(k) <= latest)
        return below / self.ranking_window
