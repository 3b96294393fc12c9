"""外部协作方接口（下单执行、账户、alpha 信号源）。"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, Sequence

from irrbot.common.models.models import Bar, OrderInstruction


class OrderExecutor(Protocol):
    """下单执行方：接收子单，成交回报异步推回决策循环。

    实现方在失败时应抛 ExternalIOError；决策循环只记录日志，不在内部重试。
    """

    def submit(self, instructions: Sequence[OrderInstruction]) -> None: ...

    def cancel_all_own_orders(self) -> None: ...

    def close_position(self, fraction: Decimal) -> None: ...


class AccountState(Protocol):
    """账户余额快照（币种 -> 总额）。"""

    def balances(self) -> dict[str, Decimal]: ...


class RankedSeries(Protocol):
    def index(self, k: int, default: float = 0.0) -> float: ...


class AlphaSource(Protocol):
    """alpha 信号源：每根 K 线更新一次，`ranked_values.index(k)` 取倒数第 k 个排名值。"""

    ranked_values: RankedSeries

    @property
    def ready(self) -> bool: ...

    def update(self, bar: Bar) -> None: ...
