"""
지표 계산용 수치 함수 모음.

[ 역할 ]
    모든 지표가 공통으로 쓰는 순수 함수 (상태/IO 없음).
    입력은 float 시퀀스, 출력은 numpy 배열 또는 float.

[ 정렬 규칙 ]
    rolling_mean / rolling_std : 길이 n - window + 1 (앞쪽 warm-up 제거)
    exponential_smoothing      : 길이 n (warm-up 제거 없음, values[0]으로 시작)
    → EMA 기반 지표(MACD)는 이 비대칭을 전제로 인덱스를 맞춘다.

[ 호출하는 곳 ]
    - indicators/engine.py (SMA/EMA/RSI/MACD/볼린저 밴드)
    - backtest/metrics.py (샤프 비율의 표준편차)
"""

from collections.abc import Sequence

import numpy as np
import pandas as pd

from horizon_quant.core.errors import InvalidParameterError


def _as_array(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=float)


def _check_window(window: int) -> None:
    if isinstance(window, bool) or not isinstance(window, (int, np.integer)) or window <= 0:
        raise InvalidParameterError(f"window must be a positive integer, got {window!r}", parameter="window")


def mean(values: Sequence[float] | np.ndarray) -> float:
    """산술 평균. 빈 입력은 0."""
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def rolling_mean(values: Sequence[float] | np.ndarray, window: int) -> np.ndarray:
    """이동평균. i >= window-1 인 각 위치에서 직전 window개의 평균.

    pandas rolling은 값이 일정한 구간에서 정확히 그 값을 돌려준다.
    """
    _check_window(window)
    arr = _as_array(values)
    if arr.size < window:
        return np.empty(0)
    return pd.Series(arr).rolling(window=window).mean().to_numpy()[window - 1:]


def rolling_std(values: Sequence[float] | np.ndarray, window: int) -> np.ndarray:
    """이동 모표준편차 (N으로 나눔). rolling_mean과 같은 정렬."""
    _check_window(window)
    arr = _as_array(values)
    if arr.size < window:
        return np.empty(0)
    return pd.Series(arr).rolling(window=window).std(ddof=0).to_numpy()[window - 1:]


def exponential_smoothing(
    values: Sequence[float] | np.ndarray,
    window: int,
    alpha: float | None = None,
) -> np.ndarray:
    """지수평활 (재귀형).

    ema[0] = values[0]
    ema[i] = values[i] * alpha + ema[i-1] * (1 - alpha),  alpha 기본값 2 / (window + 1)

    출력 길이 = 입력 길이.
    """
    _check_window(window)
    smoothing = 2.0 / (window + 1) if alpha is None else float(alpha)
    if not 0.0 < smoothing <= 1.0:
        raise InvalidParameterError(f"alpha must be in (0, 1], got {alpha!r}", parameter="alpha")

    arr = _as_array(values)
    if arr.size == 0:
        return np.empty(0)
    return pd.Series(arr).ewm(alpha=smoothing, adjust=False).mean().to_numpy()


def std_dev(values: Sequence[float] | np.ndarray, mean_value: float | None = None) -> float:
    """모표준편차. mean_value를 주면 그 값을 평균으로 사용. 빈 입력은 0."""
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    center = float(arr.mean()) if mean_value is None else float(mean_value)
    return float(np.sqrt(np.mean((arr - center) ** 2)))


def correlation(x: Sequence[float] | np.ndarray, y: Sequence[float] | np.ndarray) -> float:
    """피어슨 상관계수. 길이 불일치/빈 입력/분산 0이면 0 (예외 없음)."""
    xa = _as_array(x)
    ya = _as_array(y)
    if xa.size == 0 or xa.shape != ya.shape:
        return 0.0

    dx = xa - xa.mean()
    dy = ya - ya.mean()
    denominator = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))
    if denominator == 0 or not np.isfinite(denominator):
        return 0.0
    return float(np.sum(dx * dy) / denominator)
