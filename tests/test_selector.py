"""전략 추천표 테스트."""

import pytest

from horizon_quant.core.errors import InvalidParameterError
from horizon_quant.core.trading_strategy import RebalanceFrequency
from horizon_quant.strategies.selector import recommend_frequency, select_strategy


class TestSelectStrategy:

    @pytest.mark.parametrize("horizon, risk, key, confidence", [
        (1, "low", "trend_following", 0.7),
        (1, "medium", "trend_following", 0.7),
        (1, "high", "momentum", 0.8),
        (2, "low", "conservative", 0.8),
        (2, "medium", "mean_reversion", 0.6),
        (2, "high", "trend_following", 0.7),
        (5, "low", "conservative", 0.9),
        (5, "medium", "conservative", 0.9),
        (5, "high", "trend_following", 0.6),
    ])
    def test_table(self, horizon, risk, key, confidence):
        rec = select_strategy(horizon, risk)
        assert rec.strategy_key == key
        assert rec.confidence == pytest.approx(confidence)

    def test_reasoning(self):
        rec = select_strategy(2, "medium")
        assert rec.strategy_name == "Mean Reversion"
        assert rec.reasoning == (
            "Medium-term horizon allows for balanced approach. "
            "Medium risk tolerance suggests balanced approach. "
            "Mean reversion captures short-term price reversals"
        )

    def test_risk_is_case_insensitive(self):
        assert select_strategy(1, "HIGH").strategy_key == "momentum"

    def test_portfolio_size_does_not_change_result(self):
        assert select_strategy(5, "low", portfolio_size=1) == select_strategy(5, "low", portfolio_size=200)

    @pytest.mark.parametrize("horizon, risk, size, parameter", [
        (3, "low", 20, "horizon"),
        (0, "low", 20, "horizon"),
        ("1", "low", 20, "horizon"),
        (1, "extreme", 20, "risk_tolerance"),
        (1, "low", 0, "portfolio_size"),
    ])
    def test_invalid_inputs(self, horizon, risk, size, parameter):
        with pytest.raises(InvalidParameterError) as exc:
            select_strategy(horizon, risk, size)
        assert exc.value.parameter == parameter

    def test_to_dict(self):
        data = select_strategy(1, "high").to_dict()
        assert data == {
            "strategyKey": "momentum",
            "strategyName": "Momentum",
            "rebalanceFrequency": "weekly",
            "confidence": 0.8,
            "reasoning": (
                "Short-term horizon requires active management. "
                "High risk tolerance allows for aggressive strategies. "
                "Momentum strategies capitalize on market momentum"
            ),
        }


class TestRecommendFrequency:

    @pytest.mark.parametrize("key, horizon, expected", [
        ("mean_reversion", 5, RebalanceFrequency.DAILY),
        ("conservative", 1, RebalanceFrequency.MONTHLY),
        ("trend_following", 1, RebalanceFrequency.WEEKLY),
        ("momentum", 2, RebalanceFrequency.WEEKLY),
        ("trend_following", 5, RebalanceFrequency.MONTHLY),
    ])
    def test_rules(self, key, horizon, expected):
        assert recommend_frequency(key, horizon) is expected
