"""
시그널 및 전략 설정 타입 정의.

[ 역할 ]
    전략 계층이 주고받는 데이터 타입을 정의.
    지표별 시그널 → 전략 결합 → 최종 Signal 흐름의 공통 어휘.

[ 주요 타입 ]
    SignalType      - buy / hold / sell
    CombinationRule - 지표 시그널 결합 규칙 (기본: 다수결)
    RebalanceFrequency - daily / weekly / monthly
    StrategyConfig  - 이름 + 지표 설정 목록 + 결합 규칙 (불변)
    IndicatorVote   - 지표 하나의 최신 시그널과 근거
    Signal          - 종목별 최종 판단 (API 계층이 JSON으로 직렬화)

[ 호출하는 곳 ]
    - strategies/__init__.py : presets.yaml → StrategyConfig
    - strategies/signal_engine.py : Signal 생성
    - backtest/engine.py : 매일 Signal을 받아 주문 실행
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from horizon_quant.core.errors import InvalidParameterError
from horizon_quant.indicators.params import IndicatorConfig, IndicatorType

# 크로스 판정에 직전 봉이 필요하므로 최대 지표 기간에 여유를 둔다
WARMUP_BUFFER_DAYS = 5


class SignalType(Enum):
    """지표/전략이 반환하는 시그널 종류."""
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class CombinationRule(Enum):
    """지표 시그널 결합 규칙."""
    MAJORITY_VOTE = "majority_vote"
    UNANIMOUS = "unanimous"
    TREND_ALIGNMENT = "trend_alignment"  # 이동평균 정배열/역배열 판단


class RebalanceFrequency(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def _parse_enum(enum_cls: type[Enum], value: Any, parameter: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise InvalidParameterError(
            f"Invalid {parameter}: {value!r} (choose from {choices})", parameter=parameter
        ) from None


@dataclass(frozen=True)
class StrategyConfig:
    """전략 설정. 빌트인 4종은 presets.yaml, 커스텀은 StrategyRegistry로 생성."""
    name: str
    indicators: tuple[IndicatorConfig, ...]
    rebalance_frequency: RebalanceFrequency = RebalanceFrequency.WEEKLY
    combination_rule: CombinationRule = CombinationRule.MAJORITY_VOTE
    description: str = ""
    entry_rule: str = ""
    exit_rule: str = ""
    confidence_lookback: int | None = None  # 신뢰도 계산에 쓸 최근 시그널 수 (None: 전체)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidParameterError("Strategy name must be a non-empty string", parameter="name")

        indicators = tuple(self.indicators)
        if not indicators:
            raise InvalidParameterError("Strategy requires at least one indicator", parameter="indicators")
        for ind in indicators:
            if not isinstance(ind, IndicatorConfig):
                raise InvalidParameterError(
                    f"indicators must contain IndicatorConfig, got {type(ind).__name__}",
                    parameter="indicators",
                )
        object.__setattr__(self, "indicators", indicators)

        object.__setattr__(
            self, "rebalance_frequency",
            _parse_enum(RebalanceFrequency, self.rebalance_frequency, "rebalance_frequency"),
        )
        object.__setattr__(
            self, "combination_rule",
            _parse_enum(CombinationRule, self.combination_rule, "combination_rule"),
        )

        if self.combination_rule is CombinationRule.TREND_ALIGNMENT:
            kinds = {ind.type for ind in indicators}
            if not kinds <= {IndicatorType.SMA, IndicatorType.EMA}:
                raise InvalidParameterError(
                    "trend_alignment only combines SMA/EMA indicators", parameter="combination_rule"
                )

        lookback = self.confidence_lookback
        if lookback is not None and (isinstance(lookback, bool) or not isinstance(lookback, int) or lookback <= 0):
            raise InvalidParameterError(
                f"confidence_lookback must be a positive integer, got {lookback!r}",
                parameter="confidence_lookback",
            )

    @property
    def required_warmup_days(self) -> int:
        """백테스트 시작 전 필요한 최소 봉 수 = 최대 지표 기간 + 5."""
        return max(ind.params.span for ind in self.indicators) + WARMUP_BUFFER_DAYS

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StrategyConfig":
        """dict(YAML/JSON)에서 생성. rebalanceFrequency 등 camelCase 키도 허용."""
        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return default

        raw_indicators = pick("indicators", default=[])
        indicators = tuple(
            ind if isinstance(ind, IndicatorConfig) else IndicatorConfig.from_dict(ind)
            for ind in raw_indicators
        )
        return cls(
            name=pick("name", default=""),
            indicators=indicators,
            rebalance_frequency=pick("rebalance_frequency", "rebalanceFrequency", "frequency", default="weekly"),
            combination_rule=pick("combination_rule", "combinationRule", default="majority_vote"),
            description=pick("description", default="") or "",
            entry_rule=pick("entry_rule", "entryRule", default="") or "",
            exit_rule=pick("exit_rule", "exitRule", default="") or "",
            confidence_lookback=pick("confidence_lookback", "confidenceLookback"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "indicators": [ind.to_dict() for ind in self.indicators],
            "rebalanceFrequency": self.rebalance_frequency.value,
            "combinationRule": self.combination_rule.value,
            "description": self.description,
            "entryRule": self.entry_rule,
            "exitRule": self.exit_rule,
            "confidenceLookback": self.confidence_lookback,
        }

    def explain(self) -> dict[str, Any]:
        """전략 설명 (UI 노출용)."""
        default_rule = "Majority vote of indicators"
        return {
            "name": self.name,
            "description": self.description or "Custom strategy using technical indicators",
            "indicators": [ind.to_dict() for ind in self.indicators],
            "frequency": self.rebalance_frequency.value,
            "rules": {
                "entry": self.entry_rule or default_rule,
                "exit": self.exit_rule or default_rule,
            },
        }

    def __str__(self) -> str:
        return f"{self.name} Strategy ({self.rebalance_frequency.value} rebalancing)"


@dataclass(frozen=True)
class IndicatorVote:
    """지표 하나의 최신 시그널. Signal.per_indicator_breakdown의 원소."""
    label: str                 # 예: "SMA(50)"
    type: IndicatorType
    signal: SignalType
    stability: float           # 최근 시그널 중 최신 시그널과 같은 비율
    reason: str
    available: bool = True     # False: 데이터 부족으로 hold 대체

    def to_dict(self) -> dict[str, Any]:
        return {
            "indicator": self.label,
            "type": self.type.value,
            "signal": self.signal.value,
            "stability": self.stability,
            "reason": self.reason,
            "available": self.available,
        }


@dataclass(frozen=True)
class Signal:
    """종목별 최종 시그널. 매 평가마다 새로 생성되며 코어는 저장하지 않는다."""
    ticker: str
    signal: SignalType
    confidence: float
    reason: str
    per_indicator_breakdown: tuple[IndicatorVote, ...] = ()
    as_of: date | None = None  # 평가에 사용된 마지막 봉 날짜
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "signal": self.signal.value,
            "confidence": self.confidence,
            "reason": self.reason,
            "perIndicatorBreakdown": [vote.to_dict() for vote in self.per_indicator_breakdown],
            "asOf": self.as_of.isoformat() if self.as_of else None,
            "timestamp": self.timestamp.isoformat(),
        }
