"""配置架构定义（Pydantic Schema）。

目标：
- 启动阶段尽早失败，避免 typo/类型错误在回测或实盘中“隐蔽爆炸”；
- 金额/比例类字段统一为 Decimal，保证风控与拆单计算是精确小数；
- 报告窗口等“可兜底”的字段在这里补默认值，其余非法值直接拒绝。
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from irrbot.common.utils.logging import resolve_level

DEFAULT_SPREAD = Decimal("0.0001")


class AccumulatedProfitReportConfig(BaseModel):
    """累计收益报告配置（窗口单位为“日”，即 day boundary 次数）。"""

    accumulated_profit_ma_window: int = 60
    interval_window: int = 7
    number_of_interval: int = 1
    accumulated_daily_profit_window: int = 7
    trade_count_window: int = 60
    tsv_report_path: Optional[str] = None

    model_config = ConfigDict(extra="forbid", validate_assignment=False)


class DynamicSpreadConfig(BaseModel):
    """盘口深度 -> 动态价差。depth_floor 为 0 表示关闭（始终用基础价差）。"""

    depth_floor: Decimal = Decimal("0")
    max_multiplier: Decimal = Decimal("10")
    levels: int = 5
    model_config = ConfigDict(extra="forbid")

    @field_validator("depth_floor")
    @classmethod
    def _non_negative_floor(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("depth_floor must be >= 0")
        return v

    @field_validator("max_multiplier")
    @classmethod
    def _multiplier_at_least_one(cls, v: Decimal) -> Decimal:
        if v < 1:
            raise ValueError("max_multiplier must be >= 1")
        return v


class FactorConfig(BaseModel):
    """趋势强度/波动率调节因子配置。window <= 1 表示关闭（恒为 1.0）。"""

    window: int = 0
    min_multiplier: float = 0.5
    max_multiplier: float = 1.5
    target_volatility: float = 0.02
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_bounds(self) -> "FactorConfig":
        if self.min_multiplier < 0 or self.max_multiplier < self.min_multiplier:
            raise ValueError("factor multipliers must satisfy 0 <= min <= max")
        if self.target_volatility <= 0:
            raise ValueError("target_volatility must be > 0")
        return self


class IrrConfig(BaseModel):
    """策略总配置。"""

    symbol: str
    interval: str = "1h"
    # NRR 排名窗口
    window: int = 30
    return_window: int = 2

    quantity: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")

    bid_spread: Decimal = DEFAULT_SPREAD
    ask_spread: Decimal = DEFAULT_SPREAD
    chunk_count: int = 3
    dynamic_spread: DynamicSpreadConfig = Field(default_factory=DynamicSpreadConfig)

    stop_loss: Decimal = Decimal("0")
    take_profit: Decimal = Decimal("0")
    trailing_stop: bool = False

    max_drawdown: Decimal = Decimal("0")
    daily_loss_limit: Decimal = Decimal("0")
    position_size_limit: Decimal = Decimal("0")

    trend: FactorConfig = Field(default_factory=FactorConfig)
    volatility: FactorConfig = Field(default_factory=FactorConfig)

    min_quantity: Decimal = Decimal("0")
    min_notional: Decimal = Decimal("0")
    quantity_step: Optional[Decimal] = None
    price_step: Optional[Decimal] = None

    base_currency: str = "BTC"
    quote_currency: str = "USDT"
    initial_base: Decimal = Decimal("0")
    initial_quote: Decimal = Decimal("10000")
    fee_rate: Decimal = Decimal("0.001")

    report_enabled: bool = False
    accumulated_profit_report: AccumulatedProfitReportConfig = Field(
        default_factory=AccumulatedProfitReportConfig
    )

    draw_graph: bool = False
    graph_pnl_path: Optional[str] = None
    graph_cum_pnl_path: Optional[str] = None

    # 策略实例 logger 的级别（DEBUG/INFO/WARNING ...）
    log_level: str = "INFO"

    model_config = ConfigDict(extra="forbid")

    @field_validator("bid_spread", "ask_spread")
    @classmethod
    def _default_spread(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("spread must be >= 0")
        # 0 视为未配置，回落到 1bp
        return v if v > 0 else DEFAULT_SPREAD

    @field_validator(
        "stop_loss",
        "take_profit",
        "max_drawdown",
        "daily_loss_limit",
        "position_size_limit",
        "quantity",
        "amount",
        "min_quantity",
        "min_notional",
        "fee_rate",
    )
    @classmethod
    def _non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("window", "return_window")
    @classmethod
    def _window_at_least_two(cls, v: int) -> int:
        if v < 2:
            raise ValueError("window must be >= 2")
        return v

    @field_validator("chunk_count")
    @classmethod
    def _positive_chunks(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("chunk_count must be > 0")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, v: str) -> str:
        resolve_level(v)
        return v.upper()

    @model_validator(mode="after")
    def _check_sizing(self) -> "IrrConfig":
        if self.quantity == 0 and self.amount == 0:
            raise ValueError("either quantity or amount must be set")
        return self
