"""성과 지표 테스트: 경계값과 거래 기반 지표."""

from datetime import date

import numpy as np
import pytest

from horizon_quant.backtest.metrics import (
    BacktestMetrics,
    calculate_cagr,
    calculate_max_drawdown,
    calculate_metrics,
    calculate_sharpe_ratio,
    daily_returns,
    years_between,
)
from horizon_quant.data.portfolio import TradeRecord


def sell(pnl: float) -> TradeRecord:
    return TradeRecord(date=date(2024, 1, 2), type="SELL", price=10.0, quantity=1, value=10.0, realized_pnl=pnl)


def buy() -> TradeRecord:
    return TradeRecord(date=date(2024, 1, 1), type="BUY", price=10.0, quantity=1, value=10.0, commission=0.5)


class TestMaxDrawdown:

    def test_half_drop(self):
        assert calculate_max_drawdown([100, 50, 100]) == pytest.approx(-0.5)

    def test_monotone_increase_is_zero(self):
        assert calculate_max_drawdown([100, 101, 105, 110]) == 0.0

    def test_empty_is_zero(self):
        assert calculate_max_drawdown([]) == 0.0

    def test_deepest_drop_from_running_peak(self):
        assert calculate_max_drawdown([100, 120, 90, 130, 104]) == pytest.approx(-0.25)


class TestSharpe:

    def test_flat_series_is_zero(self):
        assert calculate_sharpe_ratio([100, 100, 100, 100]) == 0.0

    def test_too_few_values(self):
        assert calculate_sharpe_ratio([100]) == 0.0
        assert calculate_sharpe_ratio([100, 110]) == 0.0

    def test_annualized_population_std(self):
        values = [100, 110, 99, 108.9]
        returns = np.array([0.1, -0.1, 0.1])
        expected = returns.mean() / returns.std() * np.sqrt(252)
        assert calculate_sharpe_ratio(values) == pytest.approx(expected)

    def test_daily_returns(self):
        assert daily_returns([100, 110, 99]).tolist() == pytest.approx([0.1, -0.1])


class TestCagr:

    def test_two_years_of_ten_percent(self):
        assert calculate_cagr(100, 121, 2.0) == pytest.approx(0.1)

    def test_zero_period(self):
        assert calculate_cagr(100, 150, 0.0) == 0.0

    def test_calendar_years(self):
        assert years_between(date(2020, 1, 1), date(2022, 1, 1)) == pytest.approx(731 / 365.25)


class TestCalculateMetrics:

    def test_trade_statistics(self):
        trades = [buy(), sell(200.0), buy(), sell(-100.0), buy(), sell(300.0), buy(), sell(50.0)]
        metrics = calculate_metrics(trades, [10_000, 10_450], 10_000)
        assert metrics.total_trades == 4
        assert metrics.profitable_trades == 3
        assert metrics.losing_trades == 1
        assert metrics.win_rate == pytest.approx(0.75)
        assert metrics.average_return == pytest.approx(450 / 4 / 10_000)
        assert metrics.avg_profit == pytest.approx(550 / 3)
        assert metrics.avg_loss == pytest.approx(-100.0)
        assert metrics.max_consecutive_wins == 2
        assert metrics.max_consecutive_losses == 1
        assert metrics.total_commission == pytest.approx(2.0)
        assert metrics.final_value == 10_450
        assert metrics.total_return == pytest.approx(0.045)

    def test_no_sells(self):
        metrics = calculate_metrics([buy()], [10_000, 10_100], 10_000)
        assert metrics.total_trades == 0
        assert metrics.win_rate == 0.0
        assert metrics.average_return == 0.0

    def test_empty_run_keeps_capital(self):
        metrics = calculate_metrics([], [], 10_000)
        assert metrics.final_value == 10_000
        assert metrics.total_return == 0.0
        assert metrics.max_drawdown == 0.0

    def test_cagr_uses_dates(self):
        metrics = calculate_metrics([], [100, 121], 100, start_date=date(2020, 1, 1), end_date=date(2022, 1, 1))
        assert metrics.cagr == pytest.approx(1.21 ** (365.25 / 731) - 1)

    def test_to_dict_field_names(self):
        data = BacktestMetrics().to_dict()
        for key in (
            "totalReturn", "cagr", "sharpeRatio", "maxDrawdown", "winRate", "totalTrades",
            "profitableTrades", "averageReturn", "finalValue", "initialCapital",
        ):
            assert key in data

    def test_summary_renders(self):
        text = BacktestMetrics(total_return=0.1234, initial_capital=10_000, final_value=11_234).summary()
        assert "12.34%" in text
