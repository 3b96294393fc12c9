"""alpha 加权目标仓位。"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from irrbot.common.errors import ConfigurationError
from irrbot.common.utils.precision import ZERO, to_decimal


@dataclass(frozen=True)
class QuantityOrAmount:
    """基础下单量：优先固定数量，其次固定名义（amount / price）。"""

    quantity: Decimal = ZERO
    amount: Decimal = ZERO

    def __post_init__(self):
        if self.quantity < 0 or self.amount < 0:
            raise ConfigurationError("quantity/amount must be >= 0")
        if self.quantity == 0 and self.amount == 0:
            raise ConfigurationError("either quantity or amount must be set")

    def calculate_quantity(self, price: Decimal) -> Decimal:
        if self.quantity > 0:
            return self.quantity
        if price <= 0:
            return ZERO
        return self.amount / price


def target_position(
    base_order_size: Decimal,
    alpha: Decimal | float,
    trend_strength: Decimal | float,
    volatility: Decimal | float,
) -> Decimal:
    """目标仓位 = 基础量 × alpha × 趋势强度 × 波动率因子。

    纯函数，不做上下限裁剪（由风控的 position_size_limit 负责）。
    """
    return base_order_size * to_decimal(alpha) * to_decimal(trend_strength) * to_decimal(volatility)
