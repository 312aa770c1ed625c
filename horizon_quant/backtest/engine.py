"""
백테스팅 엔진 모듈.

[ 역할 ]
    단일 종목의 과거 데이터에 전략을 하루씩 적용하여 가상 매매를 시뮬레이션하고
    성과를 측정. 시스템의 핵심 실행 루프를 담당.

[ 실행 흐름 ]
    BacktestSimulator(...) 생성 시:
        전략 조회 (UnknownStrategyError), 파라미터 검증, 가격 데이터 정규화
    run() 호출 시:
        1. 데이터 길이 > 전략 warm-up 기간 확인 (부족하면 FAILED)
        2. warm-up 직후 봉부터 각 봉에 대해 _simulate_day() 호출
           → 그 날까지의 종가만으로 StrategyEngine.evaluate_closes()
           → 포지션 없음 + BUY 이면 _execute_buy(), 보유 중 + SELL 이면 _execute_sell()
           → DailySnapshot 기록
           (하루치 계산 오류는 경고 로그 후 그 날만 건너뜀)
        3. 남은 포지션은 마지막 종가로 강제 청산 ("End of backtest")
        4. metrics.calculate_metrics()로 성과 지표 계산

[ 상태 ]
    IDLE → RUNNING → COMPLETED
                   ↘ FAILED (루프 밖으로 예외 전파, 부분 결과 없음)

[ 의존성 ]
    - strategies/signal_engine.py::StrategyEngine (시그널)
    - data/portfolio.py::Portfolio (포지션/거래기록 관리)
    - backtest/metrics.py::calculate_metrics() (성과 계산)

[ 호출하는 곳 ]
    - run_backtest.py (진입점), 웹 계층의 백테스트 API
"""

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

import numpy as np

from horizon_quant.backtest.metrics import BacktestMetrics, calculate_metrics
from horizon_quant.core.data_provider import normalize_price_data
from horizon_quant.core.errors import ComputationFault, InsufficientDataError, InvalidParameterError
from horizon_quant.core.trading_strategy import SignalType, StrategyConfig
from horizon_quant.data.portfolio import Portfolio, TradeRecord
from horizon_quant.strategies import StrategyRegistry, get_strategy, list_strategies
from horizon_quant.strategies.signal_engine import StrategyEngine

logger = logging.getLogger("horizon_quant.backtest")

FORCE_CLOSE_REASON = "End of backtest"


class SimulationState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class DailySnapshot:
    """시뮬레이션한 봉 하나의 계좌 상태 (주문 실행 후)."""
    date: date
    cash: float
    shares: int
    avg_cost: float
    price: float              # 그 날 종가
    value: float              # cash + shares * price
    realized_pnl: float       # 누적 실현 손익
    commission_paid: float    # 누적 수수료

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "cash": self.cash,
            "shares": self.shares,
            "avgCost": self.avg_cost,
            "price": self.price,
            "value": self.value,
            "realizedPnL": self.realized_pnl,
            "commissionPaid": self.commission_paid,
        }


@dataclass(frozen=True)
class BacktestResult:
    ticker: str
    strategy_name: str
    start_date: date
    end_date: date
    metrics: BacktestMetrics
    trades: tuple[TradeRecord, ...]
    daily_values: tuple[DailySnapshot, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "strategyName": self.strategy_name,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "metrics": self.metrics.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "dailyValues": [s.to_dict() for s in self.daily_values],
        }


@dataclass(frozen=True)
class BacktestRequest:
    """백테스트 요청. API 계층의 JSON body(camelCase)는 from_dict()로 변환."""
    ticker: str
    price_data: Any = field(repr=False)
    strategy_key: str = "trend_following"
    initial_capital: float = 10_000
    position_size_percent: float = 50.0
    commission_rate: float = 0.0
    slippage_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BacktestRequest":
        def pick(snake: str, camel: str, default: Any = None) -> Any:
            if camel in data:
                return data[camel]
            return data.get(snake, default)

        if "ticker" not in data:
            raise InvalidParameterError("Backtest request requires 'ticker'", parameter="ticker")
        return cls(
            ticker=data["ticker"],
            price_data=pick("price_data", "priceData", []),
            strategy_key=pick("strategy_key", "strategyKey", "trend_following"),
            initial_capital=pick("initial_capital", "initialCapital", 10_000),
            position_size_percent=pick("position_size_percent", "positionSizePercent", 50.0),
            commission_rate=pick("commission_rate", "commissionRate", 0.0),
            slippage_rate=pick("slippage_rate", "slippageRate", 0.0),
        )


def _check_number(name: str, value: Any, low: float, high: float | None, low_inclusive: bool) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidParameterError(f"{name} must be a finite number, got {value!r}", parameter=name)
    too_low = value < low if low_inclusive else value <= low
    too_high = high is not None and value > high
    if too_low or too_high:
        if high is not None:
            bounds = f"{'[' if low_inclusive else '('}{low:g}, {high:g}]"
        else:
            bounds = f"{'>=' if low_inclusive else '>'} {low:g}"
        raise InvalidParameterError(f"{name} out of range {bounds}, got {value!r}", parameter=name)
    return float(value)


def _check_rate(name: str, value: Any) -> float:
    rate = _check_number(name, value, 0.0, None, True)
    if rate >= 1.0:
        raise InvalidParameterError(f"{name} must be below 1, got {value!r}", parameter=name)
    return rate


class BacktestSimulator:
    """단일 종목 백테스트. run()으로 시뮬레이션 실행.

    run()마다 새 Portfolio를 만들므로 같은 인스턴스로 다시 실행해도 결과가 같다.
    """

    def __init__(
        self,
        ticker: str,
        price_data: Any,
        strategy: "str | StrategyConfig",
        initial_capital: float = 10_000,
        position_size_percent: float = 50.0,   # 매수 시 가용 현금 중 투입 비율 (%)
        commission_rate: float = 0.0,          # 매수/매도 수수료율
        slippage_rate: float = 0.0,            # 슬리피지율
        registry: StrategyRegistry | None = None,
    ):
        if not isinstance(ticker, str) or not ticker.strip():
            raise InvalidParameterError("ticker must be a non-empty string", parameter="ticker")
        self.ticker = ticker
        self.initial_capital = _check_number("initial_capital", initial_capital, 0.0, None, False)
        self.position_size_percent = _check_number(
            "position_size_percent", position_size_percent, 0.0, 100.0, False
        )
        self.commission_rate = _check_rate("commission_rate", commission_rate)
        self.slippage_rate = _check_rate("slippage_rate", slippage_rate)

        self.strategy = get_strategy(strategy, registry)
        self.price_data = normalize_price_data(price_data)
        self.engine = StrategyEngine(self.strategy)
        self.state = SimulationState.IDLE

        # run() 실행 후 채워지는 결과
        self.portfolio: Portfolio | None = None
        self.snapshots: list[DailySnapshot] = []
        self.skipped_dates: list[date] = []      # 계산 오류로 건너뛴 날
        self.result: BacktestResult | None = None

    @property
    def required_warmup_days(self) -> int:
        return self.strategy.required_warmup_days

    def run(self) -> BacktestResult:
        """백테스트 실행.

        Raises:
            InsufficientDataError: 데이터가 warm-up 기간 + 1봉보다 짧음
        """
        self.state = SimulationState.RUNNING
        try:
            self.result = self._run()
        except Exception:
            self.state = SimulationState.FAILED
            self.result = None
            raise
        self.state = SimulationState.COMPLETED
        return self.result

    def _run(self) -> BacktestResult:
        df = self.price_data
        n = len(df)
        warmup = self.required_warmup_days
        # warm-up 구간은 지표 계산용, 시뮬레이션은 그 다음 봉부터
        if n <= warmup:
            raise InsufficientDataError(warmup + 1, n)

        self.portfolio = Portfolio(self.ticker, self.initial_capital)
        self.snapshots = []
        self.skipped_dates = []

        dates: list[date] = df["date"].tolist()
        closes = df["close"].to_numpy(dtype=float)
        valid = np.isfinite(closes) & (closes > 0)
        start = warmup

        logger.info(
            f"백테스트 시작: {self.ticker} [{self.strategy.name}] "
            f"{dates[start]} ~ {dates[-1]} ({n - start}일, warm-up {warmup}봉)"
        )

        # 일별 시뮬레이션
        for i in range(start, n):
            try:
                snapshot = self._simulate_day(i, dates, closes, valid)
            except (ComputationFault, ArithmeticError) as e:
                logger.warning(f"[{dates[i]}] 계산 오류로 건너뜀: {e}")
                self.skipped_dates.append(dates[i])
                continue
            self.snapshots.append(snapshot)

        self._close_remaining(dates, closes, valid)

        final_value = self.portfolio.cash + self.portfolio.position.cost_basis
        if self.snapshots:
            final_value = self.snapshots[-1].value

        metrics = calculate_metrics(
            trade_history=self.portfolio.trade_history,
            daily_values=[s.value for s in self.snapshots],
            initial_capital=self.initial_capital,
            start_date=dates[start],
            end_date=dates[-1],
            final_value=final_value,
        )

        logger.info(
            f"백테스트 완료: {self.ticker} [{self.strategy.name}] "
            f"총 수익률 {metrics.total_return * 100:.2f}%, 거래 {metrics.total_trades}회, "
            f"건너뛴 날 {len(self.skipped_dates)}일"
        )
        return BacktestResult(
            ticker=self.ticker,
            strategy_name=self.strategy.name,
            start_date=dates[start],
            end_date=dates[-1],
            metrics=metrics,
            trades=tuple(self.portfolio.trade_history),
            daily_values=tuple(self.snapshots),
        )

    def _simulate_day(self, i: int, dates: Sequence[date], closes: np.ndarray, valid: np.ndarray) -> DailySnapshot:
        """하루 시뮬레이션. 시그널 생성 → 주문 실행 → 스냅샷."""
        current_date = dates[i]
        price = float(closes[i])
        if not valid[i]:
            raise ComputationFault(f"Invalid close price on {current_date}: {price}")

        # 전략에 전달할 데이터: 현재일까지의 종가 (미래 데이터 누출 방지)
        history = closes[: i + 1][valid[: i + 1]]
        try:
            signal = self.engine.evaluate_closes(self.ticker, history, as_of=current_date)
        except ComputationFault:
            raise
        except Exception as e:
            raise ComputationFault(f"Signal evaluation failed on {current_date}: {e}") from e

        if signal.signal is SignalType.BUY and not self.portfolio.has_position:
            self._execute_buy(price, current_date, signal.reason)
        elif signal.signal is SignalType.SELL and self.portfolio.has_position:
            self._execute_sell(price, current_date, signal.reason)

        return self._snapshot(current_date, price)

    def _snapshot(self, current_date: date, price: float) -> DailySnapshot:
        portfolio = self.portfolio
        return DailySnapshot(
            date=current_date,
            cash=portfolio.cash,
            shares=portfolio.position.shares,
            avg_cost=portfolio.position.avg_cost,
            price=price,
            value=portfolio.total_value(price),
            realized_pnl=portfolio.realized_pnl,
            commission_paid=portfolio.commission_paid,
        )

    def _execute_buy(self, price: float, current_date: date, reason: str) -> None:
        """매수 실행. 슬리피지(가격↑) + 수수료 적용 후 portfolio에 반영."""
        exec_price = price * (1 + self.slippage_rate)  # 매수 시 불리하게
        budget = self.portfolio.cash * self.position_size_percent / 100
        quantity = math.floor(budget / (exec_price * (1 + self.commission_rate)))
        if quantity <= 0:
            logger.debug(f"[{current_date}] 매수 시그널, 예산 부족으로 건너뜀 ({budget:,.2f} < {exec_price:,.2f})")
            return

        commission = exec_price * quantity * self.commission_rate
        trade = self.portfolio.execute_buy(
            quantity=quantity,
            price=exec_price,
            commission=commission,
            date=current_date,
            reason=reason,
        )
        if trade:
            logger.debug(f"[{current_date}] 매수: {self.ticker} {quantity}주 @ {exec_price:,.2f} ({reason})")

    def _execute_sell(self, price: float, current_date: date, reason: str) -> None:
        """보유 수량 전량 매도. 슬리피지(가격↓) + 수수료 적용 후 portfolio에 반영."""
        quantity = self.portfolio.position.shares
        exec_price = price * (1 - self.slippage_rate)  # 매도 시 불리하게
        commission = exec_price * quantity * self.commission_rate

        trade = self.portfolio.execute_sell(
            quantity=quantity,
            price=exec_price,
            commission=commission,
            date=current_date,
            reason=reason,
        )
        if trade:
            logger.debug(
                f"[{current_date}] 매도: {self.ticker} {quantity}주 @ {exec_price:,.2f} "
                f"손익 {trade.realized_pnl:+,.2f} ({reason})"
            )

    def _close_remaining(self, dates: Sequence[date], closes: np.ndarray, valid: np.ndarray) -> None:
        """남은 포지션을 마지막 유효 종가로 청산하고 마지막 스냅샷을 갱신."""
        if not self.portfolio.has_position:
            return
        last = int(np.flatnonzero(valid)[-1])
        last_date, last_price = dates[last], float(closes[last])
        self._execute_sell(last_price, last_date, FORCE_CLOSE_REASON)

        snapshot = self._snapshot(last_date, last_price)
        if self.snapshots and self.snapshots[-1].date == last_date:
            self.snapshots[-1] = snapshot
        else:
            self.snapshots.append(snapshot)


def run_backtest(
    request: "BacktestRequest | Mapping[str, Any]",
    registry: StrategyRegistry | None = None,
) -> BacktestResult:
    """요청 하나로 백테스트 실행 (API 계층 진입점)."""
    if not isinstance(request, BacktestRequest):
        request = BacktestRequest.from_dict(request)
    simulator = BacktestSimulator(
        ticker=request.ticker,
        price_data=request.price_data,
        strategy=request.strategy_key,
        initial_capital=request.initial_capital,
        position_size_percent=request.position_size_percent,
        commission_rate=request.commission_rate,
        slippage_rate=request.slippage_rate,
        registry=registry,
    )
    return simulator.run()


def run_comparison(
    ticker: str,
    price_data: Any,
    strategies: Sequence[str] | None = None,
    registry: StrategyRegistry | None = None,
    **kwargs: Any,
) -> dict[str, BacktestResult]:
    """같은 가격 데이터로 여러 전략 백테스트.

    데이터가 warm-up 기간 이하인 전략은 경고 로그 후 결과에서 제외.
    kwargs는 BacktestSimulator에 그대로 전달 (initial_capital 등).
    """
    names = list(strategies) if strategies else list_strategies(registry)
    results: dict[str, BacktestResult] = {}
    for name in names:
        simulator = BacktestSimulator(ticker, price_data, name, registry=registry, **kwargs)
        try:
            results[name] = simulator.run()
        except InsufficientDataError as e:
            logger.warning(f"[{name}] 비교에서 제외: {e}")
    return results
