"""
기술적 지표 계산 엔진.

[ 역할 ]
    종가 배열 + IndicatorConfig → IndicatorResult (지표값 + 봉별 시그널).
    지표 종류는 파라미터 dataclass 타입으로 분기 (match 문).

[ 지표별 시그널 규칙 ]
    SMA / EMA  : 종가가 선을 아래→위로 돌파하면 buy, 위→아래면 sell
    RSI        : RSI < oversold → buy, RSI > overbought → sell
    MACD       : MACD선이 시그널선을 상향 돌파 → buy, 하향 돌파 → sell
    BOLLINGER  : 종가 <= 하단 → buy, 종가 >= 상단 → sell
    그 외 hold. 크로스 규칙은 첫 봉에서 항상 hold (직전 봉 없음).

[ 데이터 부족 ]
    최소 봉 수(params.min_bars) 미만이면 InsufficientDataError.
    부분 결과는 반환하지 않는다. 호출자(signal_engine)가 hold로 대체.

[ 호출하는 곳 ]
    - strategies/signal_engine.py::StrategyEngine.evaluate_closes()
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from horizon_quant.core.errors import InsufficientDataError, InvalidParameterError
from horizon_quant.core.trading_strategy import SignalType
from horizon_quant.indicators.math_kernel import (
    exponential_smoothing,
    rolling_mean,
    rolling_std,
)
from horizon_quant.indicators.params import (
    BollingerParams,
    EMAParams,
    IndicatorConfig,
    IndicatorType,
    MACDParams,
    RSIParams,
    SMAParams,
)

# RSI: 상승/하락이 모두 없는 구간의 값 (중립)
RSI_NEUTRAL = 50.0


@dataclass(frozen=True, eq=False)
class IndicatorResult:
    """지표 계산 결과.

    values의 각 배열은 입력의 뒷부분(suffix)에 정렬되어 있다.
    signals[k]는 입력 인덱스 offset + k 봉의 시그널.
    """
    config: IndicatorConfig
    values: dict[str, np.ndarray]
    signals: tuple[SignalType, ...]
    offset: int
    prices: np.ndarray = field(repr=False)  # signals와 같은 길이의 종가

    @property
    def label(self) -> str:
        return self.config.label

    @property
    def latest_signal(self) -> SignalType:
        return self.signals[-1] if self.signals else SignalType.HOLD

    def latest(self, key: str) -> float:
        return float(self.values[key][-1])

    def is_finite(self) -> bool:
        return all(arr.size == 0 or bool(np.isfinite(arr[-1])) for arr in self.values.values())

    def explain(self) -> str:
        """최신 봉 시그널의 근거 문자열 (결정적 포맷)."""
        signal = self.latest_signal
        close = float(self.prices[-1])
        params = self.config.params

        match params:
            case SMAParams() | EMAParams():
                key = "sma" if isinstance(params, SMAParams) else "ema"
                line = self.latest(key)
                if signal is SignalType.BUY:
                    return f"close {close:.2f} crossed above {self.label} {line:.2f}"
                if signal is SignalType.SELL:
                    return f"close {close:.2f} crossed below {self.label} {line:.2f}"
                side = "above" if close > line else "below" if close < line else "at"
                return f"close {close:.2f} {side} {self.label} {line:.2f}, no cross"
            case RSIParams():
                rsi = self.latest("rsi")
                if signal is SignalType.BUY:
                    return f"{self.label} {rsi:.2f} below oversold {params.oversold:g}"
                if signal is SignalType.SELL:
                    return f"{self.label} {rsi:.2f} above overbought {params.overbought:g}"
                return f"{self.label} {rsi:.2f} within {params.oversold:g}-{params.overbought:g}"
            case MACDParams():
                macd = self.latest("macd")
                sig = self.latest("signal")
                if signal is SignalType.BUY:
                    return f"MACD {macd:.4f} crossed above signal line {sig:.4f}"
                if signal is SignalType.SELL:
                    return f"MACD {macd:.4f} crossed below signal line {sig:.4f}"
                return f"MACD {macd:.4f} vs signal line {sig:.4f}, no cross"
            case BollingerParams():
                upper = self.latest("upper")
                lower = self.latest("lower")
                if signal is SignalType.BUY:
                    return f"close {close:.2f} at or below lower band {lower:.2f}"
                if signal is SignalType.SELL:
                    return f"close {close:.2f} at or above upper band {upper:.2f}"
                return f"close {close:.2f} inside bands {lower:.2f}-{upper:.2f}"
        return signal.value

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.config.to_dict(),
            "label": self.label,
            "values": {k: v.tolist() for k, v in self.values.items()},
            "signals": [s.value for s in self.signals],
            "offset": self.offset,
        }


def compute_indicator(closes: Sequence[float] | np.ndarray, config: IndicatorConfig) -> IndicatorResult:
    """지표 하나 계산.

    Args:
        closes: 날짜 오름차순 종가
        config: 지표 설정

    Raises:
        InsufficientDataError: 종가 수 < params.min_bars
    """
    prices = np.asarray(closes, dtype=float)
    params = config.params
    if prices.size < params.min_bars:
        raise InsufficientDataError(params.min_bars, int(prices.size), parameter=config.label)

    match params:
        case SMAParams(window=window):
            line = rolling_mean(prices, window)
            aligned = prices[window - 1:]
            return IndicatorResult(config, {"sma": line}, cross_signals(aligned, line), window - 1, aligned)
        case EMAParams(window=window, alpha=alpha):
            line = exponential_smoothing(prices, window, alpha)
            return IndicatorResult(config, {"ema": line}, cross_signals(prices, line), 0, prices)
        case RSIParams():
            return _compute_rsi(prices, config, params)
        case MACDParams():
            return _compute_macd(prices, config, params)
        case BollingerParams():
            return _compute_bollinger(prices, config, params)
    raise InvalidParameterError(f"Unsupported indicator parameters: {params!r}", parameter="params")


def cross_signals(prices: np.ndarray, line: np.ndarray) -> tuple[SignalType, ...]:
    """prices가 line을 돌파하는 봉에서 buy/sell. 두 배열은 같은 길이."""
    signals = [SignalType.HOLD]
    for i in range(1, len(line)):
        prev_price, prev_line = prices[i - 1], line[i - 1]
        cur_price, cur_line = prices[i], line[i]
        if prev_price <= prev_line and cur_price > cur_line:
            signals.append(SignalType.BUY)
        elif prev_price >= prev_line and cur_price < cur_line:
            signals.append(SignalType.SELL)
        else:
            signals.append(SignalType.HOLD)
    return tuple(signals[:len(line)])


def _compute_rsi(prices: np.ndarray, config: IndicatorConfig, params: RSIParams) -> IndicatorResult:
    # 단순 평균 RS (Wilder 평활 아님)
    deltas = np.diff(prices)
    avg_gain = rolling_mean(np.clip(deltas, 0.0, None), params.window)
    avg_loss = rolling_mean(np.clip(-deltas, 0.0, None), params.window)

    rs = np.divide(avg_gain, avg_loss, out=np.zeros_like(avg_gain), where=avg_loss > 0)
    rsi = np.where(
        avg_loss > 0,
        100.0 - 100.0 / (1.0 + rs),
        np.where(avg_gain > 0, 100.0, RSI_NEUTRAL),
    )

    signals = []
    for value in rsi:
        if value < params.oversold:
            signals.append(SignalType.BUY)
        elif value > params.overbought:
            signals.append(SignalType.SELL)
        else:
            signals.append(SignalType.HOLD)

    offset = params.window
    return IndicatorResult(config, {"rsi": rsi}, tuple(signals), offset, prices[offset:])


def _compute_macd(prices: np.ndarray, config: IndicatorConfig, params: MACDParams) -> IndicatorResult:
    fast = exponential_smoothing(prices, params.fast_period)
    slow = exponential_smoothing(prices, params.slow_period)

    # slow EMA가 window만큼 쌓인 봉부터 유효
    macd_line = (fast - slow)[params.slow_period - 1:]
    signal_line = exponential_smoothing(macd_line, params.signal_period)

    # signal line도 signal_period - 1 봉 이후부터 유효 → histogram이 그만큼 짧다
    start = params.signal_period - 1
    histogram = macd_line[start:] - signal_line[start:]
    signals = cross_signals(macd_line[start:], signal_line[start:])

    offset = params.slow_period - 1 + start
    values = {"macd": macd_line, "signal": signal_line, "histogram": histogram}
    return IndicatorResult(config, values, signals, offset, prices[offset:])


def _compute_bollinger(prices: np.ndarray, config: IndicatorConfig, params: BollingerParams) -> IndicatorResult:
    middle = rolling_mean(prices, params.window)
    sigma = rolling_std(prices, params.window)
    upper = middle + params.multiplier * sigma
    lower = middle - params.multiplier * sigma
    aligned = prices[params.window - 1:]

    signals = []
    for price, low, high, width in zip(aligned, lower, upper, sigma):
        if width <= 0:
            # 밴드 폭 0 (가격 변동 없음): 판단 불가
            signals.append(SignalType.HOLD)
        elif price <= low:
            signals.append(SignalType.BUY)
        elif price >= high:
            signals.append(SignalType.SELL)
        else:
            signals.append(SignalType.HOLD)

    values = {"upper": upper, "middle": middle, "lower": lower}
    return IndicatorResult(config, values, tuple(signals), params.window - 1, aligned)


def available_indicators() -> list[dict[str, Any]]:
    """지원 지표 목록 (UI 노출용)."""
    names = {
        IndicatorType.SMA: "Simple Moving Average",
        IndicatorType.EMA: "Exponential Moving Average",
        IndicatorType.RSI: "Relative Strength Index",
        IndicatorType.MACD: "MACD",
        IndicatorType.BOLLINGER: "Bollinger Bands",
    }
    defaults = {
        IndicatorType.SMA: SMAParams().window,
        IndicatorType.EMA: EMAParams().window,
        IndicatorType.RSI: RSIParams().window,
        IndicatorType.MACD: MACDParams().slow_period,
        IndicatorType.BOLLINGER: BollingerParams().window,
    }
    return [
        {"type": kind.value, "name": names[kind], "defaultWindow": defaults[kind]}
        for kind in IndicatorType
    ]
