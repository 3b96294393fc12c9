import pytest

from irrbot.analysis.series import RollingSeries, SimpleMovingAverage
from irrbot.common.errors import OutOfRangeError


def test_tail_sums_most_recent_samples():
    s = RollingSeries([1, 2, 3, 4, 5])
    assert s.tail(2) == 9.0
    assert s.tail(5) == 15.0
    # 超过长度取全部
    assert s.tail(100) == 15.0


def test_tail_non_positive_is_zero():
    s = RollingSeries([1, 2, 3])
    assert s.tail(0) == 0.0
    assert s.tail(-3) == 0.0
    assert RollingSeries().tail(3) == 0.0


def test_index_from_most_recent_and_sentinel():
    s = RollingSeries()
    for v in (10, 20, 30):
        s.update(v)
    assert s.index(0) == 30.0
    assert s.index(2) == 10.0
    # 越界返回哨兵，不抛异常
    assert s.index(3) == 0.0
    assert s.index(-1) == 0.0
    assert s.index(99, default=-1.0) == -1.0


def test_at_raises_out_of_range():
    s = RollingSeries([1.0])
    assert s.at(0) == 1.0
    with pytest.raises(OutOfRangeError):
        s.at(1)
    # OutOfRangeError 同时是 IndexError
    with pytest.raises(IndexError):
        RollingSeries().at(0)


@pytest.mark.parametrize("window,offset", [(0, 0), (3, 0), (3, 2), (5, 5), (2, 7), (10, 0)])
def test_sliding_window_difference_identity(window, offset):
    samples = [float(i * i - 7) for i in range(10)]
    s = RollingSeries(samples)
    got = s.tail(window + offset) - s.tail(offset)
    end = len(samples) - offset
    start = max(0, end - window)
    assert got == pytest.approx(sum(samples[start:end]))


def test_maxlen_bounds_retention():
    s = RollingSeries(maxlen=3)
    for v in range(10):
        s.update(v)
    assert len(s) == 3
    assert s.values() == [7.0, 8.0, 9.0]


def test_sma_uses_available_samples_until_window_full():
    sma = SimpleMovingAverage(3)
    assert sma.update(3) == 3.0
    assert sma.update(6) == 4.5
    assert sma.update(9) == 6.0
    assert sma.update(12) == 9.0
    assert sma.last(0) == 9.0
    assert sma.last(3) == 3.0


def test_sma_rejects_bad_window():
    with pytest.raises(ValueError):
        SimpleMovingAverage(0)
