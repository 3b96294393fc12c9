"""irrbot 统一命令行入口。

子命令：

- `backtest`：用 CSV K 线回放策略，输出 summary，并按配置写累计收益报告；
- `report`：回放后把累计收益报告以 TSV 打印到标准输出；
- `test`：运行 pytest。
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Any

from irrbot.common.config.loader import load_config
from irrbot.core.backtest import BacktestRunner
from irrbot.core.sources import load_bars_csv


@dataclass
class CliArgs:
    """命令行参数。

    config: 配置文件路径
    task: 子命令 (backtest/report/test)
    bars: K 线 CSV 路径
    """

    config: str
    task: str
    bars: str | None = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="irrbot", description="irrbot 统一入口")

    # 允许 `main.py --config ... backtest`（全局）与 `main.py backtest --config ...`（子命令）
    def _add_common(p: argparse.ArgumentParser, *, default: Any) -> None:
        p.add_argument("--config", default=default, help="配置文件路径 (默认: config/config.yml)")
        p.add_argument(
            "--bars",
            default=argparse.SUPPRESS if default is argparse.SUPPRESS else None,
            help="K 线 CSV（ts, open, high, low, close, volume）",
        )

    _add_common(parser, default="config/config.yml")
    sub = parser.add_subparsers(dest="task")

    p_backtest = sub.add_parser("backtest", help="单次回测")
    _add_common(p_backtest, default=argparse.SUPPRESS)

    p_report = sub.add_parser("report", help="回测并打印累计收益报告")
    _add_common(p_report, default=argparse.SUPPRESS)

    sub.add_parser("test", help="运行 pytest")
    return parser


def parse_args(argv: list[str] | None = None) -> CliArgs:
    ns = build_parser().parse_args(argv)
    return CliArgs(
        config=str(getattr(ns, "config", "config/config.yml")),
        task=ns.task or "backtest",
        bars=getattr(ns, "bars", None),
    )


def _run_backtest(args: CliArgs) -> tuple[BacktestRunner, dict[str, Any]]:
    if not args.bars:
        raise ValueError("Must specify --bars for backtest")
    cfg = load_config(args.config)
    bars = load_bars_csv(args.bars, symbol=cfg.symbol, interval=cfg.interval)
    runner = BacktestRunner(cfg)
    return runner, runner.run(bars)


def main(argv: list[str] | None = None) -> Any:
    args = parse_args(argv)

    if args.task == "backtest":
        _, summary = _run_backtest(args)
        for key, value in summary.items():
            if key != "report":
                print(f"{key}: {value}")
        return summary

    if args.task == "report":
        runner, summary = _run_backtest(args)
        report = runner.strategy.report
        if report is not None:
            report.to_frame(runner.cfg.symbol).to_csv(sys.stdout, sep="\t", index=False, float_format="%f")
        return summary

    if args.task == "test":
        import pytest

        return pytest.main(["-q"])

    raise ValueError(f"Unknown task: {args.task}")


if __name__ == "__main__":
    main()
