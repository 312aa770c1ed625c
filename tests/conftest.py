"""공용 fixture: 종가 리스트 → 가격 DataFrame 팩토리."""

from datetime import date

import numpy as np
import pandas as pd
import pytest


def price_frame(closes, start: date = date(2022, 1, 3)) -> pd.DataFrame:
    """종가 리스트로 영업일 기준 OHLCV DataFrame 생성."""
    dates = pd.bdate_range(start=start, periods=len(closes))
    return pd.DataFrame({
        "date": [d.date() for d in dates],
        "open": closes,
        "high": closes,
        "low": closes,
        "close": closes,
        "volume": [1_000] * len(closes),
    })


def trend_reversal_closes(n: int = 300) -> list[float]:
    """250봉 선형 상승 (100 → 200) 후 하루 1씩 하락."""
    return [100 + 100 * i / 249 if i < 250 else 449.0 - i for i in range(n)]


@pytest.fixture
def make_prices():
    return price_frame


@pytest.fixture
def trend_reversal_prices() -> pd.DataFrame:
    return price_frame(trend_reversal_closes())


@pytest.fixture
def random_walk_prices() -> pd.DataFrame:
    """고정 시드 기하 랜덤워크 400봉."""
    rng = np.random.default_rng(42)
    closes = 100 * np.cumprod(1 + rng.normal(0.0005, 0.02, 400))
    return price_frame(closes.tolist())
