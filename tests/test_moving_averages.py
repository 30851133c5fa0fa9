import numpy as np
import pandas as pd
import pytest

from market_signals.moving_averages import ema, sma, wilder


def test_sma_warm_up_and_values():
    out = sma([1, 2, 3, 4, 5], 3)
    assert out.iloc[:2].isna().all()
    assert list(out.iloc[2:]) == pytest.approx([2.0, 3.0, 4.0])


def test_sma_shorter_than_period_is_all_unset():
    out = sma([1, 2], 3)
    assert len(out) == 2
    assert out.isna().all()


def test_ema_shorter_than_period_is_all_unset():
    assert ema([1.0, 2.0, 3.0], 5).isna().all()


def test_ema_exact_period_has_single_value_at_last_index():
    values = [2.0, 4.0, 6.0, 8.0]
    out = ema(values, 4)
    assert out.notna().sum() == 1
    assert out.iloc[-1] == pytest.approx(5.0)


def test_ema_recurrence():
    out = ema([1, 2, 3, 4, 5], 3)
    # seed = mean(1, 2, 3); k = 0.5
    assert out.iloc[:2].isna().all()
    assert list(out.iloc[2:]) == pytest.approx([2.0, 3.0, 4.0])


@pytest.mark.parametrize("c", [10.0, 0.1, 1234.5678])
def test_ema_constant_series_is_constant(c):
    out = ema([c] * 40, 12)
    assert np.allclose(out.dropna(), c)


def test_ema_keeps_series_index():
    series = pd.Series([1.0, 2.0, 3.0], index=["a", "b", "c"])
    out = ema(series, 2)
    assert list(out.index) == ["a", "b", "c"]
    assert out["b"] == pytest.approx(1.5)


@pytest.mark.parametrize("period", [0, -3, 2.5, True])
def test_invalid_period_raises(period):
    with pytest.raises(ValueError):
        sma([1, 2, 3], period)
    with pytest.raises(ValueError):
        ema([1, 2, 3], period)


def test_wilder_skips_leading_unset_values():
    out = wilder([np.nan, 1.0, 2.0, 3.0, 6.0], 3)

    assert out.iloc[:3].isna().all()
    assert out.iloc[3] == pytest.approx(2.0)
    assert out.iloc[4] == pytest.approx((2.0 * 2 + 6.0) / 3)


def test_wilder_too_few_defined_values():
    assert wilder([np.nan, np.nan, 1.0, 2.0], 3).isna().all()
