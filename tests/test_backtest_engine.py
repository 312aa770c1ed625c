"""백테스트 엔진 테스트: warm-up, 파라미터 검증, 미래 데이터 차단, 잔고 보존, 종료 청산."""

import numpy as np
import pytest

from horizon_quant.backtest.engine import (
    FORCE_CLOSE_REASON,
    BacktestRequest,
    BacktestSimulator,
    SimulationState,
    run_backtest,
    run_comparison,
)
from horizon_quant.core.data_provider import bars_from_frame
from horizon_quant.core.errors import InsufficientDataError, InvalidParameterError, UnknownStrategyError
from horizon_quant.strategies.signal_engine import StrategyEngine

TRADING_COSTS = {"commission_rate": 0.001, "slippage_rate": 0.0005}


def assert_balanced(snapshot, initial_capital):
    left = snapshot.cash + snapshot.shares * snapshot.avg_cost + snapshot.commission_paid
    assert left == pytest.approx(initial_capital + snapshot.realized_pnl)


class TestWarmup:

    @pytest.mark.parametrize("n", [204, 205])
    def test_too_short_fails(self, make_prices, n):
        simulator = BacktestSimulator("T", make_prices(list(np.linspace(100, 200, n))), "trend_following")
        assert simulator.required_warmup_days == 205
        with pytest.raises(InsufficientDataError) as exc:
            simulator.run()
        assert exc.value.required == 206
        assert exc.value.available == n
        assert simulator.state is SimulationState.FAILED
        assert simulator.result is None

    def test_first_bar_after_warmup_is_simulated(self, make_prices):
        df = make_prices(list(np.linspace(100, 200, 206)))
        result = BacktestSimulator("T", df, "trend_following").run()
        assert len(result.daily_values) == 1
        assert result.start_date == df["date"].iloc[-1]


class TestParameters:

    def test_unknown_strategy_at_construction(self, random_walk_prices):
        with pytest.raises(UnknownStrategyError):
            BacktestSimulator("T", random_walk_prices, "moon_shot")

    @pytest.mark.parametrize("kwargs, parameter", [
        ({"initial_capital": 0}, "initial_capital"),
        ({"initial_capital": -100}, "initial_capital"),
        ({"position_size_percent": 0}, "position_size_percent"),
        ({"position_size_percent": 100.5}, "position_size_percent"),
        ({"commission_rate": -0.01}, "commission_rate"),
        ({"commission_rate": 1.0}, "commission_rate"),
        ({"slippage_rate": "0.1"}, "slippage_rate"),
        ({"slippage_rate": float("nan")}, "slippage_rate"),
    ])
    def test_invalid_values(self, random_walk_prices, kwargs, parameter):
        with pytest.raises(InvalidParameterError) as exc:
            BacktestSimulator("T", random_walk_prices, "mean_reversion", **kwargs)
        assert exc.value.parameter == parameter

    def test_full_position_size_allowed(self, random_walk_prices):
        simulator = BacktestSimulator("T", random_walk_prices, "mean_reversion", position_size_percent=100)
        assert simulator.position_size_percent == 100.0


class TestTrendReversal:

    def test_simulation_starts_after_warmup(self, make_prices):
        df = make_prices(list(np.linspace(100, 200, 210)))
        result = BacktestSimulator("T", df, "trend_following").run()
        assert result.start_date == df["date"].iloc[205]
        assert [s.date for s in result.daily_values][0] == df["date"].iloc[205]

    def test_single_round_trip(self, trend_reversal_prices):
        simulator = BacktestSimulator("TREND", trend_reversal_prices, "trend_following")
        result = simulator.run()
        closes = trend_reversal_prices["close"].tolist()
        dates = trend_reversal_prices["date"].tolist()

        assert simulator.state is SimulationState.COMPLETED
        assert result.start_date == dates[205]
        assert result.end_date == dates[-1]
        assert len(result.daily_values) == 300 - 205

        buy, sell = result.trades
        assert (buy.type, buy.date, buy.quantity) == ("BUY", dates[205], 27)
        assert buy.price == pytest.approx(closes[205])
        assert buy.reason.endswith("(uptrend aligned)")
        assert (sell.type, sell.date) == ("SELL", dates[257])
        assert sell.price == pytest.approx(192.0)
        assert sell.reason.endswith("(trend broken)")
        assert sell.realized_pnl == pytest.approx(27 * (192.0 - closes[205]))

        metrics = result.metrics
        assert metrics.total_trades == 1
        assert metrics.win_rate == 1.0
        assert metrics.total_return > 0
        assert metrics.final_value == pytest.approx(10_000 + 27 * (192.0 - closes[205]))
        assert metrics.max_drawdown <= 0

    def test_price_bars_input(self, trend_reversal_prices):
        from_frame = BacktestSimulator("T", trend_reversal_prices, "trend_following").run()
        from_bars = BacktestSimulator("T", bars_from_frame(trend_reversal_prices), "trend_following").run()
        assert from_bars.trades == from_frame.trades

    def test_rerun_is_identical(self, trend_reversal_prices):
        simulator = BacktestSimulator("T", trend_reversal_prices, "trend_following")
        assert simulator.run() == simulator.run()


class TestForceClose:

    def test_open_position_closed_on_last_bar(self, make_prices):
        df = make_prices(list(np.linspace(100, 250, 260)))
        result = BacktestSimulator("UP", df, "trend_following").run()
        last = result.trades[-1]
        assert last.type == "SELL"
        assert last.reason == FORCE_CLOSE_REASON
        assert last.date == df["date"].iloc[-1]
        assert result.daily_values[-1].shares == 0
        assert result.daily_values[-1].date == df["date"].iloc[-1]
        assert len(result.daily_values) == 260 - 205

    def test_last_bar_invalid_uses_last_valid_close(self, make_prices):
        closes = list(np.linspace(100, 250, 260))
        closes[-1] = float("nan")
        df = make_prices(closes)
        simulator = BacktestSimulator("UP", df, "trend_following")
        result = simulator.run()
        assert simulator.skipped_dates == [df["date"].iloc[-1]]
        assert result.trades[-1].date == df["date"].iloc[-2]
        assert result.trades[-1].price == pytest.approx(closes[-2])
        assert result.daily_values[-1].date == df["date"].iloc[-2]


class TestNoLookAhead:

    def test_future_bars_do_not_change_past(self, random_walk_prices):
        k = 250
        altered = random_walk_prices.copy()
        altered.loc[k + 1:, "close"] = altered.loc[k + 1:, "close"] * 0.5

        original = BacktestSimulator("T", random_walk_prices, "mean_reversion").run()
        changed = BacktestSimulator("T", altered, "mean_reversion").run()

        cutoff = random_walk_prices["date"].iloc[k]
        before = [s for s in original.daily_values if s.date <= cutoff]
        assert before == [s for s in changed.daily_values if s.date <= cutoff]
        assert [t for t in original.trades if t.date <= cutoff] == [t for t in changed.trades if t.date <= cutoff]


class TestAccounting:

    @pytest.mark.parametrize("strategy", ["mean_reversion", "momentum", "conservative"])
    def test_balance_identity_every_day(self, random_walk_prices, strategy):
        result = BacktestSimulator("T", random_walk_prices, strategy, **TRADING_COSTS).run()
        for snapshot in result.daily_values:
            assert_balanced(snapshot, 10_000)

    @pytest.mark.parametrize("strategy", ["mean_reversion", "momentum"])
    def test_realized_pnl_reconciles(self, random_walk_prices, strategy):
        result = BacktestSimulator("T", random_walk_prices, strategy, **TRADING_COSTS).run()
        realized = sum(t.realized_pnl for t in result.trades if t.is_sell)
        metrics = result.metrics
        assert realized - metrics.total_commission == pytest.approx(metrics.final_value - metrics.initial_capital)

    def test_trade_prices_include_slippage(self, trend_reversal_prices):
        result = BacktestSimulator("T", trend_reversal_prices, "trend_following", **TRADING_COSTS).run()
        closes = trend_reversal_prices["close"].tolist()
        buy, sell = result.trades[:2]
        assert buy.price == pytest.approx(closes[205] * 1.0005)
        assert buy.commission == pytest.approx(buy.value * 0.001)
        assert sell.price == pytest.approx(192.0 * 0.9995)


class TestSkippedDays:

    def test_invalid_close_skips_one_day(self, random_walk_prices):
        df = random_walk_prices.copy()
        df.loc[300, "close"] = float("nan")
        simulator = BacktestSimulator("T", df, "mean_reversion")
        result = simulator.run()
        assert simulator.skipped_dates == [df["date"].iloc[300]]
        assert len(result.daily_values) == len(df) - 25 - 1
        assert df["date"].iloc[300] not in [s.date for s in result.daily_values]

    @pytest.mark.parametrize("error", [
        ZeroDivisionError("boom"),
        OverflowError("boom"),
        ValueError("boom"),
        IndexError("boom"),
    ])
    def test_day_fault_is_contained(self, monkeypatch, random_walk_prices, error):
        bad_date = random_walk_prices["date"].iloc[100]
        original = StrategyEngine.evaluate_closes

        def flaky(self, ticker, closes, as_of=None):
            if as_of == bad_date:
                raise error
            return original(self, ticker, closes, as_of=as_of)

        monkeypatch.setattr(StrategyEngine, "evaluate_closes", flaky)
        simulator = BacktestSimulator("T", random_walk_prices, "mean_reversion")
        simulator.run()
        assert simulator.skipped_dates == [bad_date]
        assert simulator.state is SimulationState.COMPLETED

    def test_library_error_keeps_earlier_trades(self, monkeypatch, trend_reversal_prices):
        bad_date = trend_reversal_prices["date"].iloc[280]
        original = StrategyEngine.evaluate_closes

        def flaky(self, ticker, closes, as_of=None):
            if as_of == bad_date:
                raise ValueError("library blew up")
            return original(self, ticker, closes, as_of=as_of)

        monkeypatch.setattr(StrategyEngine, "evaluate_closes", flaky)
        simulator = BacktestSimulator("T", trend_reversal_prices, "trend_following")
        result = simulator.run()
        assert simulator.skipped_dates == [bad_date]
        assert [t.type for t in result.trades] == ["BUY", "SELL"]
        assert len(result.daily_values) == 300 - 205 - 1


class TestEntryPoints:

    def test_run_backtest_from_mapping(self, trend_reversal_prices):
        result = run_backtest({
            "ticker": "TREND",
            "priceData": trend_reversal_prices,
            "strategyKey": "trend_following",
            "initialCapital": 20_000,
            "positionSizePercent": 25,
        })
        assert result.metrics.initial_capital == 20_000
        assert result.trades[0].quantity == 27

    def test_request_requires_ticker(self):
        with pytest.raises(InvalidParameterError):
            BacktestRequest.from_dict({"priceData": []})

    def test_to_dict(self, trend_reversal_prices):
        data = run_backtest(BacktestRequest("TREND", trend_reversal_prices)).to_dict()
        assert set(data) == {"ticker", "strategyName", "startDate", "endDate", "metrics", "trades", "dailyValues"}
        assert data["strategyName"] == "Trend Following"
        assert data["trades"][1]["realizedPnL"] > 0
        assert data["dailyValues"][0]["date"] == data["startDate"]

    def test_run_comparison(self, random_walk_prices):
        results = run_comparison("T", random_walk_prices)
        assert list(results) == ["trend_following", "mean_reversion", "momentum", "conservative"]

    def test_run_comparison_skips_short_data(self, random_walk_prices):
        results = run_comparison("T", random_walk_prices.head(100), initial_capital=5_000)
        assert "trend_following" not in results
        assert set(results) == {"mean_reversion", "momentum", "conservative"}
        assert all(r.metrics.initial_capital == 5_000 for r in results.values())
