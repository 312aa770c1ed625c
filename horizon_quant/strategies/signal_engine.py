"""
전략 시그널 엔진.

[ 역할 ]
    StrategyConfig의 지표들을 계산하고, 결합 규칙으로 최종 buy/hold/sell과
    신뢰도, 근거 문자열을 만든다.

[ 시그널 생성 흐름 ]
    evaluate(ticker, price_data)
        1. normalize_price_data()로 날짜 정렬 → 종가 배열
        2. 지표별 compute_indicator()
           → 데이터 부족이면 해당 지표는 hold (available=False)
        3. 결합 규칙
           majority_vote   : 최다 득표 시그널. 동률이면 무조건 hold
           unanimous       : 모든 지표가 같으면 그 시그널, 아니면 hold
           trend_alignment : 종가 > 최단기선 + 이동평균 정배열 → buy,
                             종가 < 최단기선 또는 역배열 → sell
        4. 신뢰도 = 지표별 (최근 시그널 중 최신 시그널과 같은 비율)의 평균
        5. 근거 = 최종 시그널과 같은 지표들의 설명을 "; "로 연결

[ 호출하는 곳 ]
    - backtest/engine.py : 매 봉마다 evaluate_closes() (그 날까지의 종가만 전달)
    - run_backtest.py --signal : generate_signals()
"""

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import date
from itertools import combinations
from typing import Any

import numpy as np

from horizon_quant.core.data_provider import normalize_price_data
from horizon_quant.core.errors import ComputationFault, InsufficientDataError
from horizon_quant.core.trading_strategy import (
    CombinationRule,
    IndicatorVote,
    Signal,
    SignalType,
    StrategyConfig,
)
from horizon_quant.indicators.engine import IndicatorResult, compute_indicator
from horizon_quant.indicators.params import IndicatorType
from horizon_quant.strategies import StrategyRegistry, get_strategy, list_strategies

logger = logging.getLogger("horizon_quant.strategy")

ERROR_REASON = "Error calculating signal"


class StrategyEngine:
    """전략 하나를 종목별 시그널로 평가.

    상태가 없으므로 같은 인스턴스를 여러 종목/여러 날짜에 재사용해도 된다.
    """

    def __init__(self, config: StrategyConfig):
        self.config = config

    def evaluate(self, ticker: str, price_data: Any) -> Signal:
        """가격 시계열 전체로 최신 봉의 시그널 계산.

        Raises:
            InvalidParameterError: 날짜 중복 등 잘못된 가격 데이터
            ComputationFault: 종가에 NaN/inf/0 이하 값이 있음
        """
        df = normalize_price_data(price_data)
        as_of = df["date"].iloc[-1] if not df.empty else None
        return self.evaluate_closes(ticker, df["close"].to_numpy(dtype=float), as_of=as_of)

    def evaluate_closes(
        self,
        ticker: str,
        closes: Sequence[float] | np.ndarray,
        as_of: date | None = None,
    ) -> Signal:
        """날짜 오름차순 종가 배열로 마지막 봉의 시그널 계산."""
        prices = np.asarray(closes, dtype=float)
        if prices.size and not (np.all(np.isfinite(prices)) and np.all(prices > 0)):
            raise ComputationFault(f"Invalid close price in {ticker} history")

        lookback = self.config.confidence_lookback
        votes: list[IndicatorVote] = []
        results: list[IndicatorResult | None] = []
        histories: list[Sequence[SignalType]] = []

        for indicator in self.config.indicators:
            try:
                result = compute_indicator(prices, indicator)
            except InsufficientDataError as e:
                logger.debug(f"[{ticker}] {indicator.label} 데이터 부족 → hold ({e})")
                votes.append(IndicatorVote(
                    label=indicator.label,
                    type=indicator.type,
                    signal=SignalType.HOLD,
                    stability=1.0,
                    reason=f"insufficient data (need {e.required} bars, have {e.available})",
                    available=False,
                ))
                results.append(None)
                histories.append((SignalType.HOLD,))
                continue

            if not result.is_finite():
                raise ComputationFault(f"{indicator.label} produced a non-finite value for {ticker}")

            history = result.signals[-lookback:] if lookback else result.signals
            votes.append(IndicatorVote(
                label=indicator.label,
                type=indicator.type,
                signal=result.latest_signal,
                stability=_stability(history),
                reason=result.explain(),
            ))
            results.append(result)
            histories.append(history)

        match self.config.combination_rule:
            case CombinationRule.TREND_ALIGNMENT:
                final, reason = trend_alignment(results, votes)
            case CombinationRule.UNANIMOUS:
                final = unanimous_vote([v.signal for v in votes])
                reason = build_reason(final, votes)
            case _:
                final = majority_vote([v.signal for v in votes])
                reason = build_reason(final, votes)

        return Signal(
            ticker=ticker,
            signal=final,
            confidence=calculate_confidence(histories),
            reason=reason,
            per_indicator_breakdown=tuple(votes),
            as_of=as_of,
        )

    def generate_signals(self, price_series_by_ticker: Mapping[str, Any]) -> dict[str, Signal]:
        """여러 종목 시그널 생성. 한 종목의 계산 오류는 그 종목만 hold (신뢰도 0)."""
        signals: dict[str, Signal] = {}
        for ticker, price_data in price_series_by_ticker.items():
            try:
                signals[ticker] = self.evaluate(ticker, price_data)
            except ComputationFault as e:
                logger.warning(f"[{ticker}] 시그널 계산 실패, hold로 대체: {e}")
                signals[ticker] = Signal(
                    ticker=ticker,
                    signal=SignalType.HOLD,
                    confidence=0.0,
                    reason=ERROR_REASON,
                )
        return signals


def _stability(history: Sequence[SignalType]) -> float:
    if not history:
        return 0.0
    latest = history[-1]
    return sum(1 for s in history if s is latest) / len(history)


def majority_vote(signals: Sequence[SignalType]) -> SignalType:
    """다수결. 최다 득표가 유일할 때만 그 시그널, 동률(투표 없음 포함)은 hold."""
    counts = Counter(signals)
    if not counts:
        return SignalType.HOLD
    ranked = counts.most_common()
    if len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
        return SignalType.HOLD
    return ranked[0][0]


def unanimous_vote(signals: Sequence[SignalType]) -> SignalType:
    """모든 지표가 같은 시그널일 때만 그 시그널."""
    if signals and all(s is signals[0] for s in signals):
        return signals[0]
    return SignalType.HOLD


def calculate_confidence(histories: Sequence[Sequence[SignalType]]) -> float:
    """지표별 시그널 이력에서 최신 시그널과 같은 비율의 평균 (0~1)."""
    if not histories:
        return 0.0
    return float(np.mean([_stability(h) for h in histories]))


def build_reason(final: SignalType, votes: Sequence[IndicatorVote]) -> str:
    """최종 시그널과 같은 지표들의 설명. 없으면 기본 문구."""
    parts = [
        f"{vote.label} shows {vote.signal.value} signal ({vote.reason})"
        for vote in votes
        if vote.signal is final
    ]
    if not parts:
        return f"No clear signals from indicators, defaulting to {final.value}"
    return "; ".join(parts)


def _line_value(result: IndicatorResult) -> float:
    return result.latest("sma" if result.config.type is IndicatorType.SMA else "ema")


def trend_alignment(
    results: Sequence[IndicatorResult | None],
    votes: Sequence[IndicatorVote],
) -> tuple[SignalType, str]:
    """이동평균 배열로 추세 판단.

    buy  : 종가 > 최단기선 이고 모든 선이 단기 > 장기 순으로 정렬
    sell : 종가 < 최단기선 이거나 단기선이 장기선 아래에 있는 쌍이 하나라도 있음
    hold : 그 외, 또는 계산 못 한 선이 있음
    """
    missing = [vote for vote, result in zip(votes, results) if result is None]
    if missing:
        detail = ", ".join(f"{vote.label}: {vote.reason}" for vote in missing)
        return SignalType.HOLD, f"Trend lines unavailable ({detail}), defaulting to hold"

    lines = sorted(
        ((r.label, _line_value(r), r.config.params.window) for r in results),
        key=lambda item: item[2],
    )
    close = float(results[0].prices[-1])
    short_label, short_value, _ = lines[0]

    inverted = [
        f"{a_label} {a_value:.2f} below {b_label} {b_value:.2f}"
        for (a_label, a_value, _), (b_label, b_value, _) in combinations(lines, 2)
        if a_value < b_value
    ]
    stacked = all(a[1] > b[1] for a, b in zip(lines, lines[1:]))

    if close > short_value and stacked:
        chain = " above ".join(f"{label} {value:.2f}" for label, value, _ in lines)
        return SignalType.BUY, f"close {close:.2f} above {chain} (uptrend aligned)"

    if close < short_value or inverted:
        parts = []
        if close < short_value:
            parts.append(f"close {close:.2f} below {short_label} {short_value:.2f}")
        parts.extend(inverted)
        return SignalType.SELL, "; ".join(parts) + " (trend broken)"

    return SignalType.HOLD, f"close {close:.2f} vs {short_label} {short_value:.2f}, trend not aligned"


def summarize_signals(signals: Mapping[str, Signal] | Sequence[Signal]) -> dict[str, Any]:
    """시그널 분포 요약."""
    items = list(signals.values()) if isinstance(signals, Mapping) else list(signals)
    total = len(items)
    counts = Counter(s.signal for s in items)
    return {
        "total": total,
        "buy": counts[SignalType.BUY],
        "sell": counts[SignalType.SELL],
        "hold": counts[SignalType.HOLD],
        "averageConfidence": float(np.mean([s.confidence for s in items])) if items else 0.0,
        "buyRatio": counts[SignalType.BUY] / total if total else 0.0,
        "sellRatio": counts[SignalType.SELL] / total if total else 0.0,
    }


def compare_strategies(
    price_series_by_ticker: Mapping[str, Any],
    strategy_names: Sequence[str] | None = None,
    registry: StrategyRegistry | None = None,
) -> dict[str, dict[str, Any]]:
    """같은 종목들에 여러 전략을 적용해 시그널 분포를 비교.

    Returns:
        {전략 키: {"signals": {ticker: Signal.to_dict()}, "summary": summarize_signals()}}
    """
    names = list(strategy_names) if strategy_names else list_strategies(registry)
    comparison: dict[str, dict[str, Any]] = {}
    for name in names:
        config = get_strategy(name, registry)
        signals = StrategyEngine(config).generate_signals(price_series_by_ticker)
        comparison[name] = {
            "signals": {ticker: signal.to_dict() for ticker, signal in signals.items()},
            "summary": summarize_signals(signals),
        }
    return comparison
