"""风险管理：止损/止盈判定与新增风险闸门。

- `check_stop` / `check_limits` / `clip_target` 是纯函数，不持有状态；
- `TrailingStop`、`EquityTracker` 各自维护最小必要状态；
- `RiskManager` 把它们组合起来供决策循环使用。

风控只会阻止“新增风险”，不会回溯修改已有持仓。
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from irrbot.common.errors import ConfigurationError
from irrbot.common.models.position import Position
from irrbot.common.utils.logging import setup_logger
from irrbot.common.utils.precision import ONE, ZERO


class StopDecision(str, Enum):
    NONE = "none"
    CLOSE_ALL = "close_all"


@dataclass(frozen=True)
class RiskLimits:
    """风控上限（全部 >= 0；0 表示不启用该项）。

    - max_drawdown：峰值回撤比例上限，例如 0.1 表示 10%；
    - daily_loss_limit：当日亏损（报价币）上限；
    - position_size_limit：目标仓位绝对值上限（基础币）。
    """

    max_drawdown: Decimal = ZERO
    daily_loss_limit: Decimal = ZERO
    position_size_limit: Decimal = ZERO

    def __post_init__(self):
        for name in ("max_drawdown", "daily_loss_limit", "position_size_limit"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")


def check_stop(
    position: Position,
    current_price: Decimal,
    stop_loss: Decimal,
    take_profit: Decimal,
) -> StopDecision:
    """按持仓均价判断是否触发止损/止盈。

    多头：price <= cost*(1-stop_loss) 或 price >= cost*(1+take_profit)；
    空头：price >= cost*(1+stop_loss) 或 price <= cost*(1-take_profit)。
    比例为 0 时对应的一侧不检查。
    """
    cost = position.average_cost
    if position.is_closed or cost <= 0:
        return StopDecision.NONE

    if position.is_long:
        if stop_loss > 0 and current_price <= cost * (ONE - stop_loss):
            return StopDecision.CLOSE_ALL
        if take_profit > 0 and current_price >= cost * (ONE + take_profit):
            return StopDecision.CLOSE_ALL
        return StopDecision.NONE

    if stop_loss > 0 and current_price >= cost * (ONE + stop_loss):
        return StopDecision.CLOSE_ALL
    if take_profit > 0 and current_price <= cost * (ONE - take_profit):
        return StopDecision.CLOSE_ALL
    return StopDecision.NONE


def check_limits(drawdown: Decimal, daily_pnl: Decimal, limits: RiskLimits) -> bool:
    """是否允许新增风险：回撤超限或当日亏损超限时返回 False。"""
    if limits.max_drawdown > 0 and drawdown > limits.max_drawdown:
        return False
    if limits.daily_loss_limit > 0 and daily_pnl < -limits.daily_loss_limit:
        return False
    return True


def clip_target(target: Decimal, position_size_limit: Decimal) -> Decimal:
    """把目标仓位的绝对值裁剪到上限内（上限为 0 时不裁剪）。"""
    if position_size_limit <= 0:
        return target
    if target > position_size_limit:
        return position_size_limit
    if target < -position_size_limit:
        return -position_size_limit
    return target


def is_risk_increasing(current: Decimal, delta: Decimal) -> bool:
    """delta 是否会放大持仓绝对值（含反手）。"""
    return abs(current + delta) > abs(current)


class TrailingStop:
    """追踪止损：记录开仓以来的最优价，回撤 stop_loss 比例即触发。"""

    def __init__(self, stop_loss: Decimal):
        self.stop_loss = stop_loss
        self.extreme: Decimal = ZERO

    def reset(self) -> None:
        self.extreme = ZERO

    def update(self, position: Position, price: Decimal) -> bool:
        if self.stop_loss <= 0 or position.is_closed:
            self.reset()
            return False
        if position.is_long:
            self.extreme = max(self.extreme or position.average_cost, price)
            return price <= self.extreme * (ONE - self.stop_loss)
        self.extreme = min(self.extreme or position.average_cost, price)
        return price >= self.extreme * (ONE + self.stop_loss)


class EquityTracker:
    """账户资产峰值回撤 + 当日盈亏。"""

    def __init__(self, initial_value: Decimal = ZERO):
        self.peak: Decimal = initial_value
        self.current: Decimal = initial_value
        self.day_start: Decimal = initial_value

    def update(self, value: Decimal) -> None:
        self.current = value
        if value > self.peak:
            self.peak = value

    def roll_day(self) -> None:
        self.day_start = self.current

    @property
    def drawdown(self) -> Decimal:
        if self.peak <= 0:
            return ZERO
        return max(ZERO, (self.peak - self.current) / self.peak)

    @property
    def daily_pnl(self) -> Decimal:
        return self.current - self.day_start


class RiskManager:
    """决策循环使用的风控门面。

    Parameters
    ----------
    limits:
        回撤/日损/仓位上限。
    stop_loss, take_profit:
        止损/止盈比例，0 表示关闭。
    trailing_stop:
        是否启用追踪止损（以开仓后最优价替代均价作为止损参考）。
    """

    def __init__(
        self,
        limits: RiskLimits,
        *,
        stop_loss: Decimal = ZERO,
        take_profit: Decimal = ZERO,
        trailing_stop: bool = False,
        initial_equity: Decimal = ZERO,
        suppress_warnings: bool = False,
    ):
        self.limits = limits
        self.stop_loss = stop_loss
        self.take_profit = take_profit
        self.trailing = TrailingStop(stop_loss) if trailing_stop else None
        self.equity = EquityTracker(initial_equity)
        self.suppress_warnings = suppress_warnings
        self.logger = setup_logger("risk")
        self._blocked_logged = False

    def evaluate_stop(self, position: Position, price: Decimal) -> StopDecision:
        if self.trailing is not None:
            if self.trailing.update(position, price):
                return StopDecision.CLOSE_ALL
            # 追踪止损接管止损侧，止盈仍按均价
            return check_stop(position, price, ZERO, self.take_profit)
        return check_stop(position, price, self.stop_loss, self.take_profit)

    def reset_position_state(self) -> None:
        if self.trailing is not None:
            self.trailing.reset()

    def allow_new_risk(self) -> bool:
        allowed = check_limits(self.equity.drawdown, self.equity.daily_pnl, self.limits)
        if not allowed and not self._blocked_logged and not self.suppress_warnings:
            self.logger.warning(
                "Risk limit reached (drawdown=%.4f, daily_pnl=%s), block new risk.",
                self.equity.drawdown,
                self.equity.daily_pnl,
            )
            self._blocked_logged = True
        if allowed:
            self._blocked_logged = False
        return allowed

    def clip(self, target: Decimal) -> Decimal:
        clipped = clip_target(target, self.limits.position_size_limit)
        if clipped != target:
            self.logger.info("Target %s exceeds position_size_limit, clip to %s", target, clipped)
        return clipped

    def roll_day(self) -> None:
        self.equity.roll_day()
        if not self.suppress_warnings:
            self.logger.info("[RISK] Daily state reset.")
