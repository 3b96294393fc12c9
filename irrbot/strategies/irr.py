"""IRR 策略决策循环。

每根收盘 K 线：alpha -> 目标仓位 -> 差额 -> 撤旧单 -> 风控闸门 -> 拆单 -> 下单。
每笔成交：更新持仓、参考价跟踪、胜率统计与累计收益报告。

状态机：IDLE -> RUNNING <-> SUSPENDED -> STOPPED。
本类不是线程安全的，事件需要由 `core.dispatcher.EventDispatcher` 之类的单消费者串行投递。
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from irrbot.analysis.accumulated_profit import AccumulatedProfitReport
from irrbot.analysis.chart_series import ChartSeries
from irrbot.analysis.trade_stats import TradeStats
from irrbot.common.config.schema import IrrConfig
from irrbot.common.errors import ExternalIOError, InvalidQuantityError
from irrbot.common.models.models import Bar, Fill, OrderBookSnapshot, OrderInstruction, PriceTrackingState
from irrbot.common.models.position import Position
from irrbot.common.utils.logging import setup_logger
from irrbot.common.utils.precision import ONE, ZERO, floor_to_step
from irrbot.execution.interfaces import AccountState, AlphaSource, OrderExecutor
from irrbot.execution.order_planner import OrderPlanner
from irrbot.strategies.factors.market_regime import TrendStrengthFactor, VolatilityFactor
from irrbot.strategies.factors.nrr import NegativeReturnRate
from irrbot.strategies.risk.manager import (
    EquityTracker,
    RiskLimits,
    RiskManager,
    StopDecision,
    is_risk_increasing,
)
from irrbot.strategies.sizing.alpha_target import QuantityOrAmount, target_position

ID = "irr"


class StrategyStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUSPENDED = "suspended"
    STOPPED = "stopped"


class IrrStrategy:
    """alpha 加权库存策略。

    Parameters
    ----------
    config:
        策略配置。
    executor:
        下单执行方（撤单、下单、平仓）。
    account:
        账户余额来源，用于资产估值与回撤计算。
    alpha:
        alpha 信号源；默认按配置构建 NRR 因子。
    """

    def __init__(
        self,
        config: IrrConfig,
        executor: OrderExecutor,
        account: AccountState,
        *,
        alpha: AlphaSource | None = None,
    ):
        self.cfg = config
        self.symbol = config.symbol
        self.executor = executor
        self.account = account
        self.logger = setup_logger(f"strategy.{self.instance_id()}", level=config.log_level)

        self.status = StrategyStatus.IDLE
        self.position: Position | None = None
        self.trade_stats: TradeStats | None = None
        self.report: AccumulatedProfitReport | None = None
        self.chart: ChartSeries | None = None
        self.tracking = PriceTrackingState()

        self.alpha: AlphaSource = alpha or NegativeReturnRate(config.return_window, config.window)
        self.trend = TrendStrengthFactor.from_config(config.trend)
        self.volatility = VolatilityFactor.from_config(config.volatility)
        self.sizing = QuantityOrAmount(config.quantity, config.amount)
        self.planner = OrderPlanner(
            bid_spread=config.bid_spread,
            ask_spread=config.ask_spread,
            chunk_count=config.chunk_count,
            spread_cfg=config.dynamic_spread,
            quantity_step=config.quantity_step,
            price_step=config.price_step,
        )
        self.risk = RiskManager(
            RiskLimits(
                max_drawdown=config.max_drawdown,
                daily_loss_limit=config.daily_loss_limit,
                position_size_limit=config.position_size_limit,
            ),
            stop_loss=config.stop_loss,
            take_profit=config.take_profit,
            trailing_stop=config.trailing_stop,
        )

        self.last_price: Decimal = ZERO
        self._last_bar_ts: datetime | None = None
        self._current_day: date | None = None
        # 自上次 day boundary 以来是否有行情或成交尚未计入报告
        self._day_pending = False

    def instance_id(self) -> str:
        return f"{ID}:{self.symbol}"

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def start(
        self,
        *,
        last_price: Decimal = ZERO,
        position: Position | None = None,
        trade_stats: TradeStats | None = None,
        report: AccumulatedProfitReport | None = None,
    ) -> None:
        """初始化持仓/统计并进入 RUNNING。

        读取账户余额失败会直接抛出（启动阶段致命）。
        """
        if self.status is not StrategyStatus.IDLE:
            self.logger.warning("%s already started (status=%s)", self.instance_id(), self.status.value)
            return

        self.position = position or Position(
            symbol=self.symbol,
            min_quantity=self.cfg.min_quantity,
            min_notional=self.cfg.min_notional,
        )
        self.trade_stats = trade_stats or TradeStats(symbol=self.symbol)
        if self.cfg.report_enabled:
            self.report = report or AccumulatedProfitReport(self.cfg.accumulated_profit_report)
            self.report.initialize()

        self.last_price = last_price
        initial_asset = self.calc_asset_value(last_price)
        self.risk.equity = EquityTracker(initial_asset)
        self.chart = ChartSeries(float(initial_asset))

        self.status = StrategyStatus.RUNNING
        self.logger.info("%s started, initial asset value %s", self.instance_id(), initial_asset)

    def suspend(self) -> None:
        if self.status is not StrategyStatus.RUNNING:
            return
        self._cancel_orders()
        self.status = StrategyStatus.SUSPENDED
        self.logger.info("%s suspended", self.instance_id())

    def resume(self) -> None:
        if self.status is not StrategyStatus.SUSPENDED:
            return
        self.status = StrategyStatus.RUNNING
        self.logger.info("%s resumed", self.instance_id())

    def emergency_stop(self) -> None:
        """撤掉所有挂单并全部平仓；本会话内不可恢复。"""
        if self.status in (StrategyStatus.IDLE, StrategyStatus.STOPPED):
            return
        self._cancel_orders()
        self._close_all("emergency stop")
        self.status = StrategyStatus.STOPPED

    def stop(self) -> dict[str, Any]:
        """关闭：输出报告/图表序列、打印统计、撤单。

        I/O 失败会记录日志，并放在返回值的 `errors` 里交给调用方。
        """
        errors: list[str] = []
        if self._day_pending and self.status is not StrategyStatus.IDLE:
            # 最后一个交易日没有下一根 K 线来触发，这里补收
            self.on_day_close()
        if self.report is not None:
            try:
                self.report.write_tsv(self.symbol)
            except ExternalIOError as exc:
                self.logger.error("cannot write accumulated profit report: %s", exc)
                errors.append(str(exc))
        if self.cfg.draw_graph and self.chart is not None:
            try:
                self.chart.export(self.cfg.graph_pnl_path, self.cfg.graph_cum_pnl_path)
            except ExternalIOError as exc:
                self.logger.error("cannot export chart series: %s", exc)
                errors.append(str(exc))
        if self.trade_stats is not None:
            self.logger.info("%s", self.trade_stats)
        if self.status is not StrategyStatus.IDLE:
            self._cancel_orders()
        self.status = StrategyStatus.STOPPED

        summary = self.summary()
        summary["errors"] = errors
        return summary

    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------
    def on_tick(self, bar: Bar, book: OrderBookSnapshot | None = None) -> list[OrderInstruction]:
        """处理一根收盘 K 线，返回本次下发的子单。"""
        if self.status is not StrategyStatus.RUNNING or self.position is None:
            return []
        if bar.symbol != self.symbol:
            return []
        if self._last_bar_ts is not None and bar.end_ts <= self._last_bar_ts:
            self.logger.warning(
                "Drop out-of-order bar %s (last processed %s)", bar.end_ts.isoformat(), self._last_bar_ts.isoformat()
            )
            return []
        self._last_bar_ts = bar.end_ts
        self._maybe_roll_day(bar.end_ts.date())
        self._day_pending = True

        price = bar.close
        self.last_price = price
        self.alpha.update(bar)
        self.trend.update(float(price))
        self.volatility.update(float(price))

        try:
            self.risk.equity.update(self.calc_asset_value(price))
        except ExternalIOError as exc:
            self.logger.error("cannot read account balances, skip tick: %s", exc)
            return []

        if self.risk.evaluate_stop(self.position, price) is StopDecision.CLOSE_ALL:
            self._cancel_orders()
            self._close_all(f"stop triggered at {price} (avg cost {self.position.average_cost})")
            return []

        if not self.alpha.ready:
            self.logger.debug("alpha warming up, skip tick %s", bar.end_ts.isoformat())
            return []

        alpha = self.alpha.ranked_values.index(1)
        trend_strength = self.trend.value()
        volatility = self.volatility.value()
        base_size = self.sizing.calculate_quantity(price)
        target = self.risk.clip(target_position(base_size, alpha, trend_strength, volatility))
        gap = target - self.position.base
        delta = self._tradeable_delta(gap, price)
        self.logger.info(
            "alpha=%.4f trend=%.4f vol=%.4f base=%s target=%s delta=%s",
            alpha,
            trend_strength,
            volatility,
            self.position.base,
            target,
            delta,
        )

        # 上一根的挂单价格已过期
        self._cancel_orders()

        if delta == 0:
            if gap != 0:
                self.logger.info("Inventory gap %s below minimum order size, skip", gap)
            return []
        if is_risk_increasing(self.position.base, delta) and not self.risk.allow_new_risk():
            self.logger.info("Risk gate denied, skip risk-increasing delta %s", delta)
            return []

        try:
            instructions = self.planner.plan(self.symbol, delta, price, book)
        except InvalidQuantityError as exc:
            self.logger.error("order planning failed: %s", exc)
            return []

        try:
            self.executor.submit(instructions)
        except ExternalIOError as exc:
            self.logger.error("order submission failed: %s", exc)
            return []
        return instructions

    def on_fill(self, fill: Fill) -> None:
        """处理成交：持仓、统计、报告、参考价跟踪。"""
        if self.position is None or self.trade_stats is None:
            self.logger.warning("fill received before start, ignored: %s", fill)
            return
        if fill.symbol != self.symbol:
            return
        if fill.quantity <= 0:
            self.logger.warning("Ignore fill with non-positive quantity: %s", fill)
            return
        self._day_pending = True

        # 先读账户（可能失败），再改内存状态，保证单笔成交的更新是原子的
        try:
            asset_value: float | None = float(self.calc_asset_value(fill.price))
        except ExternalIOError as exc:
            self.logger.error("cannot read account balances on fill: %s", exc)
            asset_value = None

        was_long = self.position.is_long
        was_short = self.position.is_short
        result = self.position.apply_fill(fill)
        profit = result[0] if result is not None else ZERO

        if result is not None:
            self.trade_stats.add_profit(profit)
        if self.report is not None:
            self.report.record_trade(fill.fee)
            if result is not None:
                self.report.record_profit(profit)

        if self.chart is not None:
            if asset_value is None:
                asset_value = self.chart.cum_profit.last()
            self.chart.on_trade(float(fill.price), self.tracking, asset_value, float(profit))

        price = float(fill.price)
        if self.position.is_dust(fill.price):
            self.tracking.reset()
            self.risk.reset_position_state()
        elif self.position.is_long:
            self.tracking.mark_long(price)
            if was_short:
                self.risk.reset_position_state()
        else:
            self.tracking.mark_short(price)
            if was_long:
                self.risk.reset_position_state()

    def on_day_close(self) -> None:
        """day boundary：快照报告序列并重置当日风控。"""
        self._day_pending = False
        if self.report is not None and self.trade_stats is not None:
            self.report.daily_update(self.trade_stats)
        self.risk.roll_day()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def calc_asset_value(self, price: Decimal) -> Decimal:
        balances = self.account.balances()
        base = balances.get(self.cfg.base_currency, ZERO)
        quote = balances.get(self.cfg.quote_currency, ZERO)
        return base * price + quote

    def summary(self) -> dict[str, Any]:
        pos = self.position
        out: dict[str, Any] = {
            "instance_id": self.instance_id(),
            "status": self.status.value,
            "position_base": pos.base if pos else ZERO,
            "average_cost": pos.average_cost if pos else ZERO,
            "realized_profit": pos.realized_profit if pos else ZERO,
            "net_profit": pos.net_profit if pos else ZERO,
            "accumulated_fee": pos.accumulated_fee if pos else ZERO,
        }
        if self.trade_stats is not None:
            out["win_ratio"] = self.trade_stats.winning_ratio
            out["profit_factor"] = self.trade_stats.profit_factor
            out["trades"] = self.trade_stats.total_trades
        if self.report is not None:
            out["report"] = self.report.output(self.symbol)
        return out

    def _tradeable_delta(self, gap: Decimal, price: Decimal) -> Decimal:
        """差额绝对值向下对齐到 quantity_step；不足 min_quantity / min_notional 时为 0。"""
        qty = floor_to_step(abs(gap), self.cfg.quantity_step)
        if qty <= 0:
            return ZERO
        if self.cfg.min_quantity > 0 and qty < self.cfg.min_quantity:
            return ZERO
        if self.cfg.min_notional > 0 and qty * price < self.cfg.min_notional:
            return ZERO
        return qty if gap > 0 else -qty

    def _maybe_roll_day(self, day: date) -> None:
        if self._current_day is None:
            self._current_day = day
            return
        if day == self._current_day:
            return
        self.on_day_close()
        self.logger.info("Trading day changed to %s", day.isoformat())
        self._current_day = day

    def _cancel_orders(self) -> None:
        try:
            self.executor.cancel_all_own_orders()
        except ExternalIOError as exc:
            self.logger.error("cancel order error: %s", exc)

    def _close_all(self, reason: str) -> None:
        self.logger.warning("Close all position: %s", reason)
        try:
            self.executor.close_position(ONE)
        except ExternalIOError as exc:
            self.logger.error("close position error: %s", exc)
