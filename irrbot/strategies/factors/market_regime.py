"""趋势强度与波动率调节因子（无量纲乘数）。

两个因子都只依赖最近 window 根收盘价，预热不足时返回 1.0（不调节）。
"""

from __future__ import annotations

from collections import deque

import numpy as np

from irrbot.common.config.schema import FactorConfig


class TrendStrengthFactor:
    """Kaufman 效率比：|净位移| / 路径长度，映射到 [min, max] 乘数。

    趋势越单边，乘数越大；来回震荡时趋近 min_multiplier。
    """

    def __init__(self, window: int, min_multiplier: float = 0.5, max_multiplier: float = 1.5):
        self.window = int(window)
        self.min_multiplier = float(min_multiplier)
        self.max_multiplier = float(max_multiplier)
        self._closes: deque[float] = deque(maxlen=max(self.window, 1))

    @classmethod
    def from_config(cls, cfg: FactorConfig) -> "TrendStrengthFactor":
        return cls(cfg.window, cfg.min_multiplier, cfg.max_multiplier)

    @property
    def enabled(self) -> bool:
        return self.window > 1

    def update(self, close: float) -> None:
        self._closes.append(float(close))

    def value(self) -> float:
        if not self.enabled or len(self._closes) < self.window:
            return 1.0
        prices = np.asarray(self._closes, dtype=float)
        path = float(np.sum(np.abs(np.diff(prices))))
        if path <= 0:
            return self.min_multiplier
        efficiency = abs(prices[-1] - prices[0]) / path
        return self.min_multiplier + (self.max_multiplier - self.min_multiplier) * efficiency


class VolatilityFactor:
    """反波动率缩放：target_volatility / 实现波动率（EWMA 对数收益），裁剪到 [min, max]。"""

    def __init__(
        self,
        window: int,
        target_volatility: float = 0.02,
        min_multiplier: float = 0.5,
        max_multiplier: float = 1.5,
    ):
        self.window = int(window)
        self.target_volatility = float(target_volatility)
        self.min_multiplier = float(min_multiplier)
        self.max_multiplier = float(max_multiplier)
        self._closes: deque[float] = deque(maxlen=max(self.window, 1))

    @classmethod
    def from_config(cls, cfg: FactorConfig) -> "VolatilityFactor":
        return cls(cfg.window, cfg.target_volatility, cfg.min_multiplier, cfg.max_multiplier)

    @property
    def enabled(self) -> bool:
        return self.window > 1

    def update(self, close: float) -> None:
        self._closes.append(float(close))

    def realized(self) -> float:
        if len(self._closes) < 2:
            return 0.0
        prices = np.asarray(self._closes, dtype=float)
        if np.any(prices <= 0):
            return 0.0
        log_rets = np.diff(np.log(prices))
        # 近期权重更高
        weights = np.exp(np.linspace(-1, 0, len(log_rets)))
        weights = weights / weights.sum()
        return float(np.sqrt(np.sum(weights * log_rets**2)))

    def value(self) -> float:
        if not self.enabled or len(self._closes) < self.window:
            return 1.0
        vol = self.realized()
        if vol <= 0:
            return self.max_multiplier
        return float(np.clip(self.target_volatility / vol, self.min_multiplier, self.max_multiplier))
