"""
전략 모듈.

[ 빌트인 전략 ]
    presets.yaml에 정의된 4종을 import 시 한 번 로드하여
    BUILTIN_STRATEGIES (읽기 전용 매핑)로 노출.
        trend_following / mean_reversion / momentum / conservative

[ 커스텀 전략 ]
    StrategyRegistry 인스턴스가 소유한다 (모듈 전역 상태 없음).
    웹 계층은 세션/사용자마다 레지스트리를 만들어 쓰면 된다.

        registry = StrategyRegistry()
        registry.create_custom_strategy("My RSI", [{"type": "RSI", "params": {"window": 10}}])
        config = get_strategy("my_rsi", registry)

[ 이름 규칙 ]
    strategy_key("Trend Following") → "trend_following"
    키 또는 표시 이름 모두로 조회 가능. 없는 이름은 UnknownStrategyError
    (기본 전략으로 대체하지 않는다).

[ 호출하는 곳 ]
    - strategies/selector.py : 추천표/리밸런싱 규칙 (SELECTION_RULES)
    - backtest/engine.py : 전략 이름 → StrategyConfig
    - utils/config.py::Config.build_registry()
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from horizon_quant.core.errors import InvalidParameterError, UnknownStrategyError
from horizon_quant.core.trading_strategy import StrategyConfig
from horizon_quant.indicators.params import IndicatorConfig

logger = logging.getLogger("horizon_quant.strategy")

PRESETS_PATH = Path(__file__).with_name("presets.yaml")


def strategy_key(name: str) -> str:
    """표시 이름 → 조회 키. 소문자 + 공백/하이픈은 밑줄."""
    return str(name).strip().lower().replace(" ", "_").replace("-", "_")


def _load_presets(path: Path) -> tuple[Mapping[str, StrategyConfig], Mapping[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    strategies = {
        key: StrategyConfig.from_dict(definition)
        for key, definition in data["strategies"].items()
    }
    return MappingProxyType(strategies), MappingProxyType(data["selection"])


BUILTIN_STRATEGIES, SELECTION_RULES = _load_presets(PRESETS_PATH)


class StrategyRegistry:
    """빌트인 + 커스텀 전략 조회.

    커스텀 전략은 이 인스턴스에만 저장된다. 같은 이름으로 다시 등록하면 교체.
    """

    def __init__(self, strategies: Iterable[StrategyConfig] = ()):
        self._custom: dict[str, StrategyConfig] = {}
        for config in strategies:
            self.register(config)

    def register(self, config: StrategyConfig) -> str:
        """커스텀 전략 등록. 등록된 키 반환.

        Raises:
            InvalidParameterError: 빌트인 전략과 같은 키
        """
        key = strategy_key(config.name)
        if key in BUILTIN_STRATEGIES:
            raise InvalidParameterError(
                f"Strategy name '{config.name}' conflicts with a built-in strategy", parameter="name"
            )
        if key in self._custom:
            logger.debug(f"커스텀 전략 교체: {key}")
        self._custom[key] = config
        return key

    def create_custom_strategy(
        self,
        name: str,
        indicators: Sequence[IndicatorConfig | Mapping[str, Any]],
        rebalance_frequency: str = "weekly",
        combination_rule: str = "majority_vote",
        description: str = "",
        confidence_lookback: int | None = None,
    ) -> StrategyConfig:
        """지표 목록으로 커스텀 전략 생성 + 등록."""
        config = StrategyConfig(
            name=name,
            indicators=tuple(
                ind if isinstance(ind, IndicatorConfig) else IndicatorConfig.from_dict(ind)
                for ind in indicators
            ),
            rebalance_frequency=rebalance_frequency,
            combination_rule=combination_rule,
            description=description,
            confidence_lookback=confidence_lookback,
        )
        self.register(config)
        return config

    def get(self, name: str) -> StrategyConfig:
        """키 또는 표시 이름으로 조회.

        Raises:
            UnknownStrategyError: 등록되지 않은 이름
        """
        key = strategy_key(name)
        if key in BUILTIN_STRATEGIES:
            return BUILTIN_STRATEGIES[key]
        if key in self._custom:
            return self._custom[key]
        raise UnknownStrategyError(name, self.keys())

    def keys(self) -> list[str]:
        return list(BUILTIN_STRATEGIES) + sorted(self._custom)

    def custom_keys(self) -> list[str]:
        return sorted(self._custom)

    def describe(self, name: str) -> dict[str, Any]:
        """전략 설명 (UI/CLI 노출용)."""
        config = self.get(name)
        return {"key": strategy_key(config.name), **config.explain()}

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = strategy_key(name)
        return key in BUILTIN_STRATEGIES or key in self._custom

    def __len__(self) -> int:
        return len(BUILTIN_STRATEGIES) + len(self._custom)


def get_strategy(name: "str | StrategyConfig", registry: StrategyRegistry | None = None) -> StrategyConfig:
    """이름으로 전략 조회. registry가 없으면 빌트인만 검색.
    StrategyConfig를 그대로 넘기면 그대로 반환.

    Raises:
        UnknownStrategyError: 등록되지 않은 이름
    """
    if isinstance(name, StrategyConfig):
        return name
    if registry is not None:
        return registry.get(name)
    key = strategy_key(name)
    if key not in BUILTIN_STRATEGIES:
        raise UnknownStrategyError(name, list(BUILTIN_STRATEGIES))
    return BUILTIN_STRATEGIES[key]


def list_strategies(registry: StrategyRegistry | None = None) -> list[str]:
    """조회 가능한 전략 키 목록 (빌트인 먼저)."""
    if registry is not None:
        return registry.keys()
    return list(BUILTIN_STRATEGIES)
