"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    백테스트 결과(거래기록 + 일별 자산가치)를 받아 성과 지표를 계산.
    calculate_metrics() 함수가 핵심. 비율 지표는 모두 소수 (0.1 = 10%).

[ 계산하는 지표 ]
    - 총 수익률 / CAGR (달력 기준 365.25일 = 1년)
    - 샤프 비율 (무위험 수익률 0, 일별 수익률 모표준편차, × √252)
    - MDD (최대 낙폭, 음수)
    - 승률, 평균 수익률, 평균 수익/손실
    - 연속 승/패, 누적 수수료

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestSimulator.run() 완료 시 호출

[ 입력 데이터 ]
    - trade_history: data/portfolio.py::Portfolio.trade_history (매도 거래만 분석)
    - daily_values: engine.py에서 매일 기록한 총 자산 리스트
"""

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any

import numpy as np

from horizon_quant.data.portfolio import TradeRecord
from horizon_quant.indicators.math_kernel import mean, std_dev

TRADING_DAYS_PER_YEAR = 252
DAYS_PER_YEAR = 365.25

# to_dict()에서 쓰는 API 필드명
_WIRE_NAMES = {
    "total_return": "totalReturn",
    "cagr": "cagr",
    "sharpe_ratio": "sharpeRatio",
    "max_drawdown": "maxDrawdown",
    "win_rate": "winRate",
    "total_trades": "totalTrades",
    "profitable_trades": "profitableTrades",
    "average_return": "averageReturn",
    "final_value": "finalValue",
    "initial_capital": "initialCapital",
    "losing_trades": "losingTrades",
    "avg_profit": "avgProfit",
    "avg_loss": "avgLoss",
    "max_consecutive_wins": "maxConsecutiveWins",
    "max_consecutive_losses": "maxConsecutiveLosses",
    "total_commission": "totalCommission",
}


@dataclass
class BacktestMetrics:
    """백테스트 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    total_return: float = 0.0         # 총 수익률 (final / initial - 1)
    cagr: float = 0.0                 # 연환산 수익률
    sharpe_ratio: float = 0.0         # 샤프 비율 (높을수록 좋음, 1 이상 양호)
    max_drawdown: float = 0.0         # 최대 낙폭 MDD (0 이하)
    win_rate: float = 0.0             # 승률
    total_trades: int = 0             # 매도 거래 횟수
    profitable_trades: int = 0        # 수익 거래 수
    average_return: float = 0.0       # 매도 1회당 실현 손익 / 초기 자금
    final_value: float = 0.0          # 최종 자산
    initial_capital: float = 0.0      # 초기 자금
    losing_trades: int = 0            # 손실(0 포함) 거래 수
    avg_profit: float = 0.0           # 수익 거래 평균 이익
    avg_loss: float = 0.0             # 손실 거래 평균 손실
    max_consecutive_wins: int = 0     # 최대 연속 수익
    max_consecutive_losses: int = 0   # 최대 연속 손실
    total_commission: float = 0.0     # 누적 수수료

    def to_dict(self) -> dict[str, Any]:
        return {_WIRE_NAMES[k]: v for k, v in asdict(self).items()}

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            "백테스트 성과 리포트",
            "=" * 50,
            f"초기 자금:       {self.initial_capital:>12,.2f}",
            f"최종 자산:       {self.final_value:>12,.2f}",
            f"총 수익률:       {self.total_return * 100:>11.2f}%",
            f"연환산 수익률:    {self.cagr * 100:>11.2f}%",
            f"샤프 비율:       {self.sharpe_ratio:>12.2f}",
            f"최대 낙폭(MDD):  {self.max_drawdown * 100:>11.2f}%",
            "-" * 50,
            f"총 거래 횟수:    {self.total_trades:>12d}",
            f"승률:            {self.win_rate * 100:>11.2f}%",
            f"수익 거래:       {self.profitable_trades:>12d}",
            f"손실 거래:       {self.losing_trades:>12d}",
            f"평균 수익률:     {self.average_return * 100:>11.2f}%",
            f"평균 수익:       {self.avg_profit:>12,.2f}",
            f"평균 손실:       {self.avg_loss:>12,.2f}",
            f"총 수수료:       {self.total_commission:>12,.2f}",
            "-" * 50,
            f"최대 연속 수익:  {self.max_consecutive_wins:>12d}",
            f"최대 연속 손실:  {self.max_consecutive_losses:>12d}",
            "=" * 50,
        ]
        return "\n".join(lines)


def years_between(start_date: date, end_date: date) -> float:
    """두 날짜 사이의 달력 기준 연수."""
    return (end_date - start_date).days / DAYS_PER_YEAR


def calculate_total_return(initial_capital: float, final_value: float) -> float:
    if initial_capital <= 0:
        return 0.0
    return (final_value - initial_capital) / initial_capital


def calculate_cagr(initial_capital: float, final_value: float, years: float) -> float:
    """(최종/초기)^(1/년수) - 1. 기간이 0 이하이면 0."""
    if years <= 0 or initial_capital <= 0 or final_value <= 0:
        return 0.0
    return (final_value / initial_capital) ** (1 / years) - 1


def daily_returns(values: Sequence[float]) -> np.ndarray:
    """일별 수익률. 전일 가치가 0 이하인 날은 제외."""
    arr = np.asarray(values, dtype=float)
    if arr.size < 2:
        return np.empty(0)
    prev, cur = arr[:-1], arr[1:]
    valid = prev > 0
    return (cur[valid] - prev[valid]) / prev[valid]


def calculate_sharpe_ratio(values: Sequence[float]) -> float:
    """연환산 샤프 비율. 수익률이 2개 미만이거나 변동이 없으면 0."""
    returns = daily_returns(values)
    if returns.size < 2:
        return 0.0
    sigma = std_dev(returns)
    if sigma == 0:
        return 0.0
    return mean(returns) / sigma * np.sqrt(TRADING_DAYS_PER_YEAR)


def calculate_max_drawdown(values: Sequence[float]) -> float:
    """고점 대비 최대 하락률 (0 이하). 빈 입력은 0."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    peaks = np.maximum.accumulate(arr)
    drawdowns = np.divide(arr - peaks, peaks, out=np.zeros_like(arr), where=peaks > 0)
    return float(min(drawdowns.min(), 0.0))


def calculate_metrics(
    trade_history: Sequence[TradeRecord],
    daily_values: Sequence[float],
    initial_capital: float,
    start_date: date | None = None,
    end_date: date | None = None,
    final_value: float | None = None,
) -> BacktestMetrics:
    """성과 지표 계산. engine.py에서 백테스트 완료 후 호출됨.

    Args:
        trade_history: Portfolio.trade_history (매수+매도 전체)
        daily_values: 일별 총 자산 리스트 (현금 + 보유 수량 × 종가)
        initial_capital: 초기 자금
        start_date: 첫 시뮬레이션 봉 날짜 (CAGR 기간 계산)
        end_date: 마지막 봉 날짜
        final_value: 최종 자산. 없으면 daily_values[-1], 그것도 없으면 초기 자금
    """
    if final_value is None:
        final_value = float(daily_values[-1]) if len(daily_values) else float(initial_capital)

    metrics = BacktestMetrics(initial_capital=float(initial_capital), final_value=float(final_value))

    # ─── 수익률 계산 ─────────────────────────────────────────────────────
    metrics.total_return = calculate_total_return(initial_capital, final_value)
    if start_date is not None and end_date is not None:
        metrics.cagr = calculate_cagr(initial_capital, final_value, years_between(start_date, end_date))

    # ─── 샤프 비율 / MDD ──────────────────────────────────────────────────
    metrics.sharpe_ratio = float(calculate_sharpe_ratio(daily_values))
    metrics.max_drawdown = calculate_max_drawdown(daily_values)

    metrics.total_commission = float(sum(t.commission for t in trade_history))

    # ─── 거래 기반 지표 (매도 거래만 분석) ─────────────────────────────────
    # 매수는 비용 발생일 뿐, 수익 실현은 매도 시에만 발생
    sell_trades = [t for t in trade_history if t.is_sell]
    metrics.total_trades = len(sell_trades)

    if sell_trades:
        profits = [t.realized_pnl or 0.0 for t in sell_trades]
        winners = [p for p in profits if p > 0]
        losers = [p for p in profits if p <= 0]

        metrics.profitable_trades = len(winners)
        metrics.losing_trades = len(losers)
        metrics.win_rate = len(winners) / len(sell_trades)
        if initial_capital > 0:
            metrics.average_return = sum(profits) / len(sell_trades) / initial_capital

        if winners:
            metrics.avg_profit = sum(winners) / len(winners)
        if losers:
            metrics.avg_loss = sum(losers) / len(losers)

        # 연속 승패
        consecutive_wins = 0
        consecutive_losses = 0
        for p in profits:
            if p > 0:
                consecutive_wins += 1
                consecutive_losses = 0
                metrics.max_consecutive_wins = max(metrics.max_consecutive_wins, consecutive_wins)
            else:
                consecutive_losses += 1
                consecutive_wins = 0
                metrics.max_consecutive_losses = max(metrics.max_consecutive_losses, consecutive_losses)

    return metrics
