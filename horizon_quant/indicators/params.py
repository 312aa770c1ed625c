"""
지표 종류 및 지표별 파라미터 정의.

[ 역할 ]
    지표 5종(SMA, EMA, RSI, MACD, 볼린저 밴드)의 파라미터를 타입이 있는
    불변 dataclass로 정의하고, 생성 시점에 한 번만 범위를 검증한다.
    잘못된 값은 보정하지 않고 InvalidParameterError로 즉시 거부.

[ 설정 파일 형식 (presets.yaml / config.yaml) ]
    indicators:
      - type: SMA
        params: {window: 50}
      - type: MACD
        params: {fastPeriod: 12, slowPeriod: 26, signalPeriod: 9}   # camelCase도 허용

[ 호출하는 곳 ]
    - core/trading_strategy.py::StrategyConfig (지표 목록 보관)
    - indicators/engine.py::compute_indicator() (파라미터 타입으로 분기)
"""

import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any

from horizon_quant.core.errors import InvalidParameterError


class IndicatorType(Enum):
    """지원하는 지표 종류."""
    SMA = "SMA"
    EMA = "EMA"
    RSI = "RSI"
    MACD = "MACD"
    BOLLINGER = "BOLLINGER"

    @classmethod
    def parse(cls, value: "str | IndicatorType") -> "IndicatorType":
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper()
        if key == "BOLLINGER_BANDS":
            key = "BOLLINGER"
        try:
            return cls(key)
        except ValueError:
            raise InvalidParameterError(f"Unknown indicator type: {value}", parameter="type") from None


def _positive_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidParameterError(f"{name} must be a positive integer, got {value!r}", parameter=name)


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameterError(f"{name} must be a number, got {value!r}", parameter=name)
    return float(value)


@dataclass(frozen=True)
class SMAParams:
    window: int = 20

    def __post_init__(self):
        _positive_int("window", self.window)

    @property
    def min_bars(self) -> int:
        return self.window

    @property
    def span(self) -> int:
        return self.window

    @property
    def label(self) -> str:
        return f"SMA({self.window})"


@dataclass(frozen=True)
class EMAParams:
    window: int = 12
    alpha: float | None = None  # None이면 2 / (window + 1)

    def __post_init__(self):
        _positive_int("window", self.window)
        if self.alpha is not None:
            alpha = _number("alpha", self.alpha)
            if not 0.0 < alpha <= 1.0:
                raise InvalidParameterError(f"alpha must be in (0, 1], got {self.alpha!r}", parameter="alpha")

    @property
    def min_bars(self) -> int:
        return self.window

    @property
    def span(self) -> int:
        return self.window

    @property
    def label(self) -> str:
        return f"EMA({self.window})"


@dataclass(frozen=True)
class RSIParams:
    window: int = 14
    overbought: float = 70.0
    oversold: float = 30.0

    def __post_init__(self):
        _positive_int("window", self.window)
        overbought = _number("overbought", self.overbought)
        oversold = _number("oversold", self.oversold)
        if not 0.0 <= oversold < overbought <= 100.0:
            raise InvalidParameterError(
                f"RSI thresholds must satisfy 0 <= oversold < overbought <= 100, "
                f"got oversold={oversold:g}, overbought={overbought:g}",
                parameter="oversold",
            )

    @property
    def min_bars(self) -> int:
        # 일간 변화량이 window개 필요
        return self.window + 1

    @property
    def span(self) -> int:
        return self.window

    @property
    def label(self) -> str:
        return f"RSI({self.window})"


@dataclass(frozen=True)
class MACDParams:
    fast_period: int = 12
    slow_period: int = 26
    signal_period: int = 9

    def __post_init__(self):
        _positive_int("fast_period", self.fast_period)
        _positive_int("slow_period", self.slow_period)
        _positive_int("signal_period", self.signal_period)
        if self.fast_period >= self.slow_period:
            raise InvalidParameterError(
                f"fast_period ({self.fast_period}) must be shorter than slow_period ({self.slow_period})",
                parameter="fast_period",
            )

    @property
    def min_bars(self) -> int:
        # slow EMA 유효 구간 + signal line 유효 구간
        return self.slow_period + self.signal_period - 1

    @property
    def span(self) -> int:
        return self.min_bars

    @property
    def label(self) -> str:
        return f"MACD({self.fast_period},{self.slow_period},{self.signal_period})"


@dataclass(frozen=True)
class BollingerParams:
    window: int = 20
    multiplier: float = 2.0

    def __post_init__(self):
        _positive_int("window", self.window)
        if _number("multiplier", self.multiplier) <= 0:
            raise InvalidParameterError(
                f"multiplier must be positive, got {self.multiplier!r}", parameter="multiplier"
            )

    @property
    def min_bars(self) -> int:
        return self.window

    @property
    def span(self) -> int:
        return self.window

    @property
    def label(self) -> str:
        return f"BOLLINGER({self.window},{self.multiplier:g})"


IndicatorParams = SMAParams | EMAParams | RSIParams | MACDParams | BollingerParams

PARAMS_BY_TYPE: dict[IndicatorType, type] = {
    IndicatorType.SMA: SMAParams,
    IndicatorType.EMA: EMAParams,
    IndicatorType.RSI: RSIParams,
    IndicatorType.MACD: MACDParams,
    IndicatorType.BOLLINGER: BollingerParams,
}


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


@dataclass(frozen=True)
class IndicatorConfig:
    """지표 하나의 설정. StrategyConfig.indicators의 원소."""
    type: IndicatorType
    params: IndicatorParams

    def __post_init__(self):
        expected = PARAMS_BY_TYPE[self.type]
        if not isinstance(self.params, expected):
            raise InvalidParameterError(
                f"{self.type.value} expects {expected.__name__}, got {type(self.params).__name__}",
                parameter="params",
            )

    @classmethod
    def create(cls, indicator_type: "str | IndicatorType", params: Mapping[str, Any] | None = None) -> "IndicatorConfig":
        """타입 문자열 + 파라미터 dict로 생성. 키는 snake_case/camelCase 모두 허용.

        Raises:
            InvalidParameterError: 알 수 없는 타입/파라미터 키, 범위 오류
        """
        kind = IndicatorType.parse(indicator_type)
        params_cls = PARAMS_BY_TYPE[kind]
        allowed = {f.name for f in fields(params_cls)}

        kwargs: dict[str, Any] = {}
        for key, value in (params or {}).items():
            name = _snake_case(str(key))  # fastPeriod → fast_period
            if name not in allowed:
                raise InvalidParameterError(
                    f"Unknown parameter '{key}' for {kind.value}", parameter=str(key)
                )
            kwargs[name] = value
        return cls(type=kind, params=params_cls(**kwargs))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IndicatorConfig":
        if "type" not in data:
            raise InvalidParameterError("Indicator config requires 'type'", parameter="type")
        return cls.create(data["type"], data.get("params"))

    @property
    def label(self) -> str:
        return self.params.label

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "params": asdict(self.params)}
