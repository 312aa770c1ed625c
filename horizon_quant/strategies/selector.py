"""
투자자 프로필 → 전략 추천.

[ 역할 ]
    투자 기간(1/2/5년)과 위험 성향(low/medium/high)으로 빌트인 전략 하나를
    고르고, 리밸런싱 주기와 신뢰도, 추천 사유를 돌려준다.
    추천표는 presets.yaml의 selection 섹션 (고정값, 학습 없음).

[ 리밸런싱 주기 ]
    mean_reversion → daily, conservative → monthly
    그 외: 1·2년 weekly, 5년 monthly

[ 호출하는 곳 ]
    - 웹 계층의 온보딩 화면
    - run_backtest.py --recommend
"""

from dataclasses import dataclass
from typing import Any

from horizon_quant.core.errors import InvalidParameterError
from horizon_quant.core.trading_strategy import RebalanceFrequency
from horizon_quant.strategies import BUILTIN_STRATEGIES, SELECTION_RULES

RISK_LEVELS = ("low", "medium", "high")
HORIZONS = tuple(sorted(SELECTION_RULES["table"]))


@dataclass(frozen=True)
class StrategyRecommendation:
    strategy_key: str
    strategy_name: str
    rebalance_frequency: RebalanceFrequency
    confidence: float
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategyKey": self.strategy_key,
            "strategyName": self.strategy_name,
            "rebalanceFrequency": self.rebalance_frequency.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


def _check_horizon(horizon: Any) -> int:
    if isinstance(horizon, bool) or not isinstance(horizon, int) or horizon not in HORIZONS:
        choices = ", ".join(str(h) for h in HORIZONS)
        raise InvalidParameterError(
            f"Investment horizon must be one of {choices} years, got {horizon!r}", parameter="horizon"
        )
    return horizon


def _check_risk(risk_tolerance: Any) -> str:
    risk = str(risk_tolerance).strip().lower()
    if risk not in RISK_LEVELS:
        raise InvalidParameterError(
            f"Risk tolerance must be one of {', '.join(RISK_LEVELS)}, got {risk_tolerance!r}",
            parameter="risk_tolerance",
        )
    return risk


def recommend_frequency(strategy_key: str, horizon: int) -> RebalanceFrequency:
    """전략 + 투자 기간 → 리밸런싱 주기."""
    horizon = _check_horizon(horizon)
    overrides = SELECTION_RULES["frequency_overrides"]
    if strategy_key in overrides:
        return RebalanceFrequency(overrides[strategy_key])
    return RebalanceFrequency(SELECTION_RULES["horizon_frequency"][horizon])


def select_strategy(horizon: int, risk_tolerance: str, portfolio_size: int = 20) -> StrategyRecommendation:
    """투자자 프로필에 맞는 빌트인 전략 추천.

    Args:
        horizon: 투자 기간 (년): 1, 2, 5
        risk_tolerance: "low" / "medium" / "high"
        portfolio_size: 보유 종목 수 (검증만 하고 추천에는 영향 없음)

    Raises:
        InvalidParameterError: 범위를 벗어난 입력
    """
    horizon = _check_horizon(horizon)
    risk = _check_risk(risk_tolerance)
    if isinstance(portfolio_size, bool) or not isinstance(portfolio_size, int) or portfolio_size < 1:
        raise InvalidParameterError(
            f"Portfolio size must be a positive integer, got {portfolio_size!r}", parameter="portfolio_size"
        )

    entry = SELECTION_RULES["table"][horizon][risk]
    key = entry["strategy"]
    reasons = [
        SELECTION_RULES["horizon_reasons"][horizon],
        SELECTION_RULES["risk_reasons"][risk],
        SELECTION_RULES["strategy_reasons"][key],
    ]
    return StrategyRecommendation(
        strategy_key=key,
        strategy_name=BUILTIN_STRATEGIES[key].name,
        rebalance_frequency=recommend_frequency(key, horizon),
        confidence=float(entry["confidence"]),
        reasoning=". ".join(reasons),
    )
