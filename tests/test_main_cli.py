from datetime import datetime, timedelta, timezone
from pathlib import Path

import main as cli

def test_parse_args_defaults():
    args = cli.parse_args([])
    assert args.task == "backtest"
    assert args.config == "config/config.yml"
    assert args.bars is None


def test_parse_args_global_and_subcommand_options():
    args = cli.parse_args(["--config", "a.yml", "report", "--bars", "b.csv"])
    assert args.task == "report"
    assert args.config == "a.yml"
    assert args.bars == "b.csv"

    args = cli.parse_args(["backtest", "--config", "c.yml"])
    assert args.config == "c.yml"


def _write_inputs(tmp_path: Path) -> tuple[Path, Path]:
    cfg = tmp_path / "cfg.yml"
    cfg.write_text(
        "strategy:\n"
        "  symbol: BTCUSDT\n"
        "  window: 3\n"
        "  quantity: 1\n"
        "  accumulated_profit_report:\n"
        "    number_of_interval: 1\n"
    )
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    lines = ["ts,open,high,low,close,volume"]
    for i in range(30):
        close = 100 + (i % 4) * 2
        ts = (start + timedelta(hours=i)).isoformat()
        lines.append(f"{ts},{close},{close + 3},{close - 3},{close},1")
    bars = tmp_path / "bars.csv"
    bars.write_text("\n".join(lines) + "\n")
    return cfg, bars


def test_backtest_command(tmp_path, capsys):
    cfg, bars = _write_inputs(tmp_path)
    summary = cli.main(["backtest", "--config", str(cfg), "--bars", str(bars)])
    assert summary["bars"] == 30
    out = capsys.readouterr().out
    assert "bars: 30" in out


def test_report_command_prints_tsv(tmp_path, capsys):
    cfg, bars = _write_inputs(tmp_path)
    cli.main(["report", "--config", str(cfg), "--bars", str(bars)])
    out = capsys.readouterr().out
    header = out.splitlines()[0].split("\t")
    assert header[:3] == ["#", "Symbol", "accumulatedProfit"]
    assert "60D trades" in header
