"""K 线事件源：把 DataFrame/CSV 转成 Bar 流。

约定：df 至少包含列 `ts`（或 `end_ts`）与 `close`；`open/high/low/volume` 可选，
缺失的 high/low 用 close 代替。
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Iterator

import pandas as pd

from irrbot.common.errors import ConfigurationError
from irrbot.common.models.models import Bar


def _dec(value) -> Decimal:
    return Decimal(str(value))


def bars_from_frame(df: pd.DataFrame, *, symbol: str, interval: str) -> Iterator[Bar]:
    ts_col = "end_ts" if "end_ts" in df.columns else "ts"
    if ts_col not in df.columns or "close" not in df.columns:
        raise ConfigurationError("bar frame requires columns: ts/end_ts, close")
    frame = df.copy()
    frame[ts_col] = pd.to_datetime(frame[ts_col], utc=True)
    frame = frame.sort_values(ts_col, kind="stable")
    for row in frame.itertuples(index=False):
        data = row._asdict()
        close = _dec(data["close"])
        yield Bar(
            symbol=symbol,
            interval=interval,
            close=close,
            end_ts=data[ts_col].to_pydatetime(),
            open=_dec(data["open"]) if "open" in data else close,
            high=_dec(data["high"]) if "high" in data else close,
            low=_dec(data["low"]) if "low" in data else close,
            volume=_dec(data["volume"]) if "volume" in data else Decimal("0"),
        )


def load_bars_csv(path: str | Path, *, symbol: str, interval: str) -> list[Bar]:
    csv_path = Path(path)
    if not csv_path.exists():
        raise ConfigurationError(f"Bars file not found: {csv_path}")
    df = pd.read_csv(csv_path)
    return list(bars_from_frame(df, symbol=symbol, interval=interval))
