"""拆单计划：库存差额 -> 若干限价子单。

- 价差：基础 bid/ask 价差，盘口深度低于校准下限时按 floor/depth 放大（有上限）；
- 拆单：等量分片（按 quantity_step 向下取整），最后一片吸收余量，总量严格守恒；
- 价格：买单 close*(1-spread)，卖单 close*(1+spread)。
"""

from __future__ import annotations

from decimal import Decimal

from irrbot.common.config.schema import DynamicSpreadConfig
from irrbot.common.errors import InvalidQuantityError
from irrbot.common.models.models import OrderBookSnapshot, OrderInstruction, Side
from irrbot.common.utils.precision import ONE, ZERO, floor_to_step, round_to_step

DEFAULT_CHUNK_COUNT = 3


def dynamic_spread(
    base_spread: Decimal,
    book: OrderBookSnapshot | None,
    depth_floor: Decimal = ZERO,
    max_multiplier: Decimal = Decimal("10"),
    levels: int = 5,
) -> Decimal:
    """按盘口深度放大基础价差。

    深度 >= depth_floor（或未启用 floor、无盘口快照）时返回基础价差；
    深度越浅价差越宽，最多放大 max_multiplier 倍；空盘口直接取上限。
    """
    if depth_floor <= 0 or book is None:
        return base_spread
    depth = book.depth(levels)
    if depth >= depth_floor:
        return base_spread
    if depth <= 0:
        return base_spread * max_multiplier
    return base_spread * min(max_multiplier, depth_floor / depth)


def split_into_chunks(quantity: Decimal, chunk_count: int, step: Decimal | None = None) -> list[Decimal]:
    """把正数量拆成至多 chunk_count 片，总和恒等于 quantity。

    Raises
    ------
    InvalidQuantityError
        quantity <= 0 或 chunk_count <= 0。
    """
    if chunk_count <= 0:
        raise InvalidQuantityError(f"chunk count must be > 0, got {chunk_count}")
    if quantity <= 0:
        raise InvalidQuantityError(f"chunk quantity must be > 0, got {quantity}")

    chunk = floor_to_step(quantity / chunk_count, step)
    if chunk <= 0:
        # 不足以拆成 chunk_count 个最小步进，整单下
        return [quantity]
    chunks = [chunk] * (chunk_count - 1)
    chunks.append(quantity - chunk * (chunk_count - 1))
    return chunks


class OrderPlanner:
    """根据库存差额生成子单。

    Parameters
    ----------
    bid_spread, ask_spread:
        基础价差（比例），默认 1bp。
    chunk_count:
        拆单份数。
    spread_cfg:
        动态价差配置。
    quantity_step, price_step:
        可选的数量/价格步进。
    """

    def __init__(
        self,
        *,
        bid_spread: Decimal = Decimal("0.0001"),
        ask_spread: Decimal = Decimal("0.0001"),
        chunk_count: int = DEFAULT_CHUNK_COUNT,
        spread_cfg: DynamicSpreadConfig | None = None,
        quantity_step: Decimal | None = None,
        price_step: Decimal | None = None,
    ):
        self.bid_spread = bid_spread
        self.ask_spread = ask_spread
        self.chunk_count = chunk_count
        self.spread_cfg = spread_cfg or DynamicSpreadConfig()
        self.quantity_step = quantity_step
        self.price_step = price_step

    def spread_for(self, side: Side, book: OrderBookSnapshot | None) -> Decimal:
        base = self.bid_spread if side is Side.BUY else self.ask_spread
        return dynamic_spread(
            base,
            book,
            depth_floor=self.spread_cfg.depth_floor,
            max_multiplier=self.spread_cfg.max_multiplier,
            levels=self.spread_cfg.levels,
        )

    def plan(
        self,
        symbol: str,
        delta: Decimal,
        close: Decimal,
        book: OrderBookSnapshot | None = None,
    ) -> list[OrderInstruction]:
        """delta > 0 买入，delta < 0 卖出；delta == 0 抛 InvalidQuantityError。"""
        if delta == 0:
            raise InvalidQuantityError("inventory delta must be non-zero")
        side = Side.BUY if delta > 0 else Side.SELL
        chunks = split_into_chunks(abs(delta), self.chunk_count, self.quantity_step)

        spread = self.spread_for(side, book)
        if side is Side.BUY:
            price = close * (ONE - spread)
        else:
            price = close * (ONE + spread)
        price = round_to_step(price, self.price_step)

        return [OrderInstruction(symbol=symbol, side=side, quantity=q, price=price) for q in chunks]
