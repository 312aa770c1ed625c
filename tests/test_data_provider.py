"""가격 데이터 정규화 / InMemoryDataProvider 테스트."""

from datetime import date

import pandas as pd
import pytest

from horizon_quant.core.data_provider import (
    PRICE_COLUMNS,
    InMemoryDataProvider,
    PriceBar,
    bars_from_frame,
    load_price_csv,
    normalize_price_data,
)
from horizon_quant.core.errors import InvalidParameterError


class TestNormalize:

    def test_sorts_by_date(self, make_prices):
        df = make_prices([1.0, 2.0, 3.0]).iloc[::-1]
        normalized = normalize_price_data(df)
        assert normalized["close"].tolist() == [1.0, 2.0, 3.0]
        assert list(normalized.columns[:6]) == PRICE_COLUMNS

    def test_duplicate_dates_rejected(self):
        rows = [{"date": "2024-01-02", "close": 10}, {"date": "2024-01-02", "close": 11}]
        with pytest.raises(InvalidParameterError):
            normalize_price_data(rows)

    def test_missing_close_rejected(self):
        with pytest.raises(InvalidParameterError) as exc:
            normalize_price_data([{"date": "2024-01-02", "open": 10}])
        assert exc.value.parameter == "price_data"

    def test_unsupported_type(self):
        with pytest.raises(InvalidParameterError):
            normalize_price_data(42)

    def test_close_only_rows_filled(self):
        df = normalize_price_data([{"date": "2024-01-03", "close": 5}, {"date": "2024-01-02", "close": 4}])
        assert df["date"].tolist() == [date(2024, 1, 2), date(2024, 1, 3)]
        assert df["open"].tolist() == [4.0, 5.0]
        assert df["volume"].tolist() == [0, 0]

    def test_price_bars(self):
        bars = [PriceBar(date(2024, 1, 3), 1, 2, 0.5, 1.5, 100), PriceBar(date(2024, 1, 2), 1, 1, 1, 1, 10)]
        df = normalize_price_data(bars)
        assert df["close"].tolist() == [1.0, 1.5]
        assert bars_from_frame(df)[1] == bars[0]

    def test_empty(self):
        assert normalize_price_data([]).empty


class TestLoadCsv:

    def test_uppercase_columns(self, tmp_path):
        path = tmp_path / "AAPL.csv"
        path.write_text(
            "Date,Open,High,Low,Close,Volume\n"
            "2024-01-03,11,12,10,11.5,2000\n"
            "2024-01-02,10,11,9,10.5,1000\n",
            encoding="utf-8",
        )
        df = load_price_csv(path)
        assert df["date"].tolist() == [date(2024, 1, 2), date(2024, 1, 3)]
        assert df["close"].tolist() == [10.5, 11.5]


class TestInMemoryDataProvider:

    @pytest.fixture
    def provider(self, make_prices):
        return InMemoryDataProvider({"AAPL": make_prices([float(i) for i in range(1, 11)])})

    def test_fetch_range(self, provider):
        # 2022-01-03(월)부터 영업일 10개
        df = provider.fetch("AAPL", date(2022, 1, 4), date(2022, 1, 6))
        assert df["close"].tolist() == [2.0, 3.0, 4.0]
        assert df.index.tolist() == [0, 1, 2]

    def test_unknown_ticker_is_empty(self, provider):
        df = provider.fetch("MSFT", date(2022, 1, 1), date(2022, 12, 31))
        assert df.empty
        assert list(df.columns) == PRICE_COLUMNS

    def test_unsupported_interval(self, provider):
        with pytest.raises(InvalidParameterError) as exc:
            provider.fetch("AAPL", date(2022, 1, 1), date(2022, 12, 31), interval="hourly")
        assert exc.value.parameter == "interval"

    def test_load_and_list(self, provider, make_prices):
        provider.load_data("MSFT", make_prices([1.0, 2.0]))
        assert provider.get_tickers() == ["AAPL", "MSFT"]
        assert isinstance(provider.fetch("MSFT", date(2022, 1, 1), date(2022, 1, 31)), pd.DataFrame)
