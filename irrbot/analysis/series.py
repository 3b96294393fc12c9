"""滚动序列与简单移动平均。

约定：插入顺序即时间顺序；`tail(n)` 取最近 n 个样本求和，`index(k)` 取倒数第 k 个
（k=0 为最新）。越界时 `index` 返回哨兵值（默认 0.0），`at` 抛 OutOfRangeError。
"""

from __future__ import annotations

from collections import deque
from itertools import islice
from typing import Iterable

from irrbot.common.errors import OutOfRangeError


class RollingSeries:
    """只追加的 float 序列（可选 maxlen 限制内存）。"""

    def __init__(self, values: Iterable[float] | None = None, maxlen: int | None = None):
        if maxlen is not None and maxlen <= 0:
            raise ValueError("maxlen must be > 0")
        self._values: deque[float] = deque((float(v) for v in values or ()), maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RollingSeries(len={len(self._values)}, last={self.last()})"

    def update(self, value: float) -> None:
        self._values.append(float(value))

    def tail(self, n: int) -> float:
        """最近 n 个样本之和；n <= 0 为 0，n 超过长度时取全部。"""
        if n <= 0:
            return 0.0
        size = len(self._values)
        start = max(0, size - n)
        return float(sum(islice(self._values, start, size)))

    def index(self, k: int, default: float = 0.0) -> float:
        """倒数第 k 个样本；越界返回 `default`。"""
        if k < 0 or k >= len(self._values):
            return default
        return self._values[-1 - k]

    def at(self, k: int) -> float:
        """同 `index`，但越界时抛 OutOfRangeError。"""
        if k < 0 or k >= len(self._values):
            raise OutOfRangeError(f"index {k} out of range for series of length {len(self._values)}")
        return self._values[-1 - k]

    def last(self, default: float = 0.0) -> float:
        return self.index(0, default)

    def sum(self) -> float:
        return float(sum(self._values))

    def values(self) -> list[float]:
        return list(self._values)


class SimpleMovingAverage:
    """SMA：样本不足 window 时取已有样本均值。

    由持有者显式创建，不与其他组件共享。
    """

    def __init__(self, window: int):
        if window <= 0:
            raise ValueError("SMA window must be > 0")
        self.window = int(window)
        self._raw: deque[float] = deque(maxlen=self.window)
        self.values = RollingSeries()

    def update(self, value: float) -> float:
        self._raw.append(float(value))
        mean = sum(self._raw) / len(self._raw)
        self.values.update(mean)
        return mean

    def last(self, k: int = 0) -> float:
        return self.values.index(k)
