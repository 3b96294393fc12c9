import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# 确保项目根目录在 sys.path，便于测试内直接以顶层包名导入
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from irrbot.common.models.models import Bar  # noqa: E402

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_bar(close, *, hours: int = 0, symbol: str = "BTCUSDT", high=None, low=None) -> Bar:
    c = Decimal(str(close))
    return Bar(
        symbol=symbol,
        interval="1h",
        close=c,
        end_ts=T0 + timedelta(hours=hours),
        open=c,
        high=Decimal(str(high)) if high is not None else c,
        low=Decimal(str(low)) if low is not None else c,
    )


@pytest.fixture
def bar_factory():
    return make_bar
