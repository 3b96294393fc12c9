from decimal import Decimal

import pytest

from irrbot.common.config.schema import IrrConfig
from irrbot.common.errors import ExternalIOError
from irrbot.common.models.models import Fill, OrderInstruction, Side
from irrbot.common.models.position import Position
from irrbot.execution.simulator import SimulatedExecutor
from irrbot.strategies.irr import IrrStrategy, StrategyStatus

D = Decimal


class RecordingExecutor:
    def __init__(self, fail_submit: bool = False):
        self.fail_submit = fail_submit
        self.submitted = []
        self.cancels = 0
        self.closes = []

    def submit(self, instructions):
        if self.fail_submit:
            raise ExternalIOError("exchange unavailable")
        self.submitted.append(list(instructions))

    def cancel_all_own_orders(self):
        self.cancels += 1

    def close_position(self, fraction):
        self.closes.append(fraction)


class StubAccount:
    def __init__(self, quote: str = "10000", base: str = "0"):
        self.values = {"BTC": D(base), "USDT": D(quote)}

    def balances(self):
        return dict(self.values)


def _config(**overrides) -> IrrConfig:
    data = {"symbol": "BTCUSDT", "window": 2, "return_window": 2, "quantity": "1", "chunk_count": 1}
    data.update(overrides)
    return IrrConfig.model_validate(data)


def _fill(side: Side, price: str, qty: str) -> Fill:
    return Fill(symbol="BTCUSDT", side=side, price=D(price), quantity=D(qty))


def _warm_up(strategy, bar_factory):
    """三根 K 线后 alpha 就绪：100 -> 110 -> 99，ranked = [0.5, 1.0]。"""
    out = []
    for hours, close in enumerate((100, 110, 99)):
        out.append(strategy.on_tick(bar_factory(close, hours=hours)))
    return out


def test_tick_before_start_is_ignored(bar_factory):
    strategy = IrrStrategy(_config(), RecordingExecutor(), StubAccount())
    assert strategy.on_tick(bar_factory(100)) == []
    assert strategy.status is StrategyStatus.IDLE


def test_start_fails_when_account_unreadable():
    class BrokenAccount:
        def balances(self):
            raise ExternalIOError("no balances")

    strategy = IrrStrategy(_config(), RecordingExecutor(), BrokenAccount())
    with pytest.raises(ExternalIOError):
        strategy.start(last_price=D("100"))


def test_warm_up_then_submit_alpha_weighted_order(bar_factory):
    executor = RecordingExecutor()
    strategy = IrrStrategy(_config(), executor, StubAccount())
    strategy.start(last_price=D("100"))

    first, second, third = _warm_up(strategy, bar_factory)
    assert first == [] and second == []
    # alpha = ranked_values.index(1) = 0.5 -> target 0.5
    assert len(third) == 1
    order = third[0]
    assert order.side is Side.BUY
    assert order.quantity == D("0.5")
    assert order.price < D("99")
    assert executor.submitted == [third]


def test_orders_split_into_chunks(bar_factory):
    executor = RecordingExecutor()
    strategy = IrrStrategy(_config(chunk_count=3, quantity="9"), executor, StubAccount())
    strategy.start(last_price=D("100"))
    orders = _warm_up(strategy, bar_factory)[-1]
    assert len(orders) == 3
    assert sum(o.quantity for o in orders) == D("4.5")


def test_risk_gate_blocks_new_risk(bar_factory):
    executor = RecordingExecutor()
    account = StubAccount()
    strategy = IrrStrategy(_config(max_drawdown="0.1"), executor, account)
    strategy.start(last_price=D("100"))
    account.values["USDT"] = D("8000")

    assert _warm_up(strategy, bar_factory)[-1] == []
    assert executor.submitted == []


def test_risk_gate_still_allows_reducing_position(bar_factory):
    executor = RecordingExecutor()
    account = StubAccount(quote="8000", base="2")
    strategy = IrrStrategy(_config(max_drawdown="0.1"), executor, account)
    position = Position(symbol="BTCUSDT", base=D("2"), average_cost=D("100"))
    strategy.start(last_price=D("1100"), position=position)

    orders = _warm_up(strategy, bar_factory)[-1]
    assert orders and all(o.side is Side.SELL for o in orders)
    assert sum(o.quantity for o in orders) == D("1.5")


def test_stop_loss_closes_strategy_position_only(bar_factory):
    executor = SimulatedExecutor(
        base_currency="BTC", quote_currency="USDT", initial_base=D("1"), initial_quote=D("1000")
    )
    strategy = IrrStrategy(_config(stop_loss="0.05"), executor, executor)
    strategy.start(last_price=D("100"))

    executor.submit([OrderInstruction(symbol="BTCUSDT", side=Side.BUY, quantity=D("0.5"), price=D("100"))])
    executor.on_bar(bar_factory(100, low=99))
    for fill in executor.drain_fills():
        strategy.on_fill(fill)
    assert strategy.position.base == D("0.5")

    bar = bar_factory(96, hours=1)
    executor.on_bar(bar)
    assert strategy.on_tick(bar) == []
    assert executor.drain_fills() == []

    bar = bar_factory(90, hours=2)
    executor.on_bar(bar)
    assert strategy.on_tick(bar) == []
    fills = executor.drain_fills()
    assert len(fills) == 1
    assert fills[0].side is Side.SELL
    assert fills[0].quantity == D("0.5")
    assert fills[0].price == D("90")

    strategy.on_fill(fills[0])
    assert strategy.position.is_closed
    assert executor.position == 0
    assert executor.balances()["BTC"] == D("1")
    assert strategy.trade_stats.num_of_loss_trade == 1
    assert strategy.tracking.buy_price == 0.0


def test_fill_tracking_long_short_and_dust(bar_factory):
    strategy = IrrStrategy(_config(min_quantity="0.01"), RecordingExecutor(), StubAccount())
    strategy.start(last_price=D("100"))

    strategy.on_fill(_fill(Side.BUY, "100", "1"))
    assert strategy.tracking.buy_price == 100.0
    assert strategy.tracking.highest_price == 100.0

    strategy.on_fill(_fill(Side.SELL, "105", "2"))
    assert strategy.position.is_short
    assert strategy.tracking.sell_price == 105.0
    assert strategy.tracking.buy_price == 0.0


    strategy.on_fill(_fill(Side.BUY, "100", "0.995"))
    assert strategy.position.is_dust(D("100"))
    assert strategy.tracking.sell_price == 0.0
    assert strategy.tracking.lowest_price == 0.0
    assert strategy.trade_stats.num_of_profit_trade == 2


def test_suspend_resume_and_emergency_stop(bar_factory):
    executor = RecordingExecutor()
    strategy = IrrStrategy(_config(), executor, StubAccount())
    strategy.start(last_price=D("100"))

    strategy.suspend()
    assert strategy.status is StrategyStatus.SUSPENDED
    assert executor.cancels == 1
    assert strategy.on_tick(bar_factory(100)) == []

    strategy.resume()
    assert strategy.status is StrategyStatus.RUNNING

    strategy.emergency_stop()
    assert strategy.status is StrategyStatus.STOPPED
    assert executor.closes == [D("1")]
    strategy.resume()
    assert strategy.status is StrategyStatus.STOPPED


def test_out_of_order_bar_dropped(bar_factory):
    strategy = IrrStrategy(_config(), RecordingExecutor(), StubAccount())
    strategy.start(last_price=D("100"))
    strategy.on_tick(bar_factory(100, hours=5))
    strategy.on_tick(bar_factory(110, hours=6))
    assert len(strategy.alpha.values) == 1

    assert strategy.on_tick(bar_factory(90, hours=4)) == []
    assert strategy.on_tick(bar_factory(90, hours=6)) == []
    assert len(strategy.alpha.values) == 1


def test_other_symbol_ignored(bar_factory):
    strategy = IrrStrategy(_config(), RecordingExecutor(), StubAccount())
    strategy.start(last_price=D("100"))
    strategy.on_tick(bar_factory(100, symbol="ETHUSDT"))
    assert strategy.last_price == D("100")


def test_submit_failure_is_logged_not_raised(bar_factory):
    executor = RecordingExecutor(fail_submit=True)
    strategy = IrrStrategy(_config(), executor, StubAccount())
    strategy.start(last_price=D("100"))
    assert _warm_up(strategy, bar_factory)[-1] == []
    assert strategy.status is StrategyStatus.RUNNING


def test_day_roll_feeds_report(bar_factory):
    strategy = IrrStrategy(_config(report_enabled=True), RecordingExecutor(), StubAccount())
    strategy.start(last_price=D("100"))

    strategy.on_tick(bar_factory(100, hours=0))
    strategy.on_fill(_fill(Side.BUY, "100", "1"))
    strategy.on_fill(_fill(Side.SELL, "110", "1"))
    strategy.on_tick(bar_factory(110, hours=23))
    assert len(strategy.report.daily_profit) == 0

    strategy.on_tick(bar_factory(105, hours=24))
    assert strategy.report.daily_profit.values() == [10.0]
    assert strategy.report.daily_trades.values() == [2.0]
    assert strategy.report.win_ratio_per_day.last() == 1.0


def test_stop_writes_report_and_returns_summary(tmp_path, bar_factory):
    report_path = tmp_path / "report.tsv"
    cfg = _config(
        report_enabled=True,
        accumulated_profit_report={"tsv_report_path": str(report_path)},
        draw_graph=True,
        graph_pnl_path=str(tmp_path / "pnl.tsv"),
        graph_cum_pnl_path=str(tmp_path / "cum_pnl.tsv"),
    )
    executor = RecordingExecutor()
    strategy = IrrStrategy(cfg, executor, StubAccount())
    strategy.start(last_price=D("100"))
    strategy.on_fill(_fill(Side.BUY, "100", "1"))
    strategy.on_fill(_fill(Side.SELL, "90", "1"))
    strategy.on_day_close()

    summary = strategy.stop()
    assert strategy.status is StrategyStatus.STOPPED
    assert summary["errors"] == []
    assert summary["realized_profit"] == D("-10")
    assert summary["trades"] == 1
    assert report_path.exists()
    assert (tmp_path / "pnl.tsv").exists()
    assert (tmp_path / "cum_pnl.tsv").exists()
    assert executor.cancels >= 1


def test_stop_reports_io_failure(tmp_path):
    cfg = _config(report_enabled=True, accumulated_profit_report={"tsv_report_path": str(tmp_path)})
    strategy = IrrStrategy(cfg, RecordingExecutor(), StubAccount())
    strategy.start(last_price=D("100"))
    summary = strategy.stop()
    assert len(summary["errors"]) == 1
    assert strategy.status is StrategyStatus.STOPPED


@pytest.mark.parametrize(
    "held,overrides",
    [
        ("0.49997", {"quantity_step": "0.0001"}),
        ("0.47", {"quantity_step": "0.0001", "min_notional": "5"}),
        ("0.1", {"min_quantity": "0.5"}),
    ],
)
def test_gap_below_minimum_order_size_is_skipped(bar_factory, held, overrides):
    executor = RecordingExecutor()
    strategy = IrrStrategy(_config(**overrides), executor, StubAccount())
    strategy.start(last_price=D("100"), position=Position(symbol="BTCUSDT", base=D(held), average_cost=D("100")))

    assert _warm_up(strategy, bar_factory)[-1] == []
    assert executor.submitted == []


def test_gap_floored_to_quantity_step(bar_factory):
    executor = RecordingExecutor()
    strategy = IrrStrategy(_config(quantity_step="0.0001", min_notional="5"), executor, StubAccount())
    strategy.start(last_price=D("100"), position=Position(symbol="BTCUSDT", base=D("0.12345"), average_cost=D("100")))

    (order,) = _warm_up(strategy, bar_factory)[-1]
    assert order.side is Side.BUY
    assert order.quantity == D("0.3765")


def test_zero_quantity_fill_ignored():
    strategy = IrrStrategy(_config(), RecordingExecutor(), StubAccount())
    strategy.start(last_price=D("100"))
    strategy.on_fill(_fill(Side.BUY, "100", "0"))
    assert strategy.position.is_closed
    assert strategy.position.average_cost == 0
    assert strategy.report is None
    assert strategy.chart.profit_dollar.values() == [0.0, 0.0]
