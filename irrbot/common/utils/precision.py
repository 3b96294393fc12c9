"""精度与步进工具（Decimal 口径，避免 float 累积误差）。"""

from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
ONE = Decimal("1")


def to_decimal(value: Any) -> Decimal:
    """把 int/float/str 统一转成 Decimal（float 走 str，避免二进制噪声）。"""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"not a number: {value!r}") from exc


def floor_to_step(value: Decimal, step: Decimal | None) -> Decimal:
    """把 value 向下裁剪到 step 的整数倍；step 为空或 <= 0 时原样返回。"""
    if step is None or step <= 0:
        return value
    n = (value / step).to_integral_value(rounding=ROUND_FLOOR)
    return (n * step).quantize(step)


def round_to_step(value: Decimal, step: Decimal | None) -> Decimal:
    """四舍五入到 step 的整数倍（用于限价）。"""
    if step is None or step <= 0:
        return value
    n = (value / step).to_integral_value(rounding=ROUND_HALF_UP)
    return (n * step).quantize(step)
