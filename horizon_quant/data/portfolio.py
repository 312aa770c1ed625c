"""
포트폴리오 관리 모듈.

[ 역할 ]
    단일 종목 백테스트의 현금, 포지션(Position), 거래 기록(TradeRecord)을 관리.
    백테스트 엔진이 매수/매도 실행 시 이 클래스를 통해 상태를 갱신.

[ 주요 클래스 ]
    Position    - 보유 수량/평균 단가. increase/decrease로만 변경
    TradeRecord - 개별 거래 내역 (추가만 가능, 매도 시 실현 손익 포함)
    Portfolio   - 현금 + 포지션 + 거래내역 + 누적 수수료/실현 손익

[ 잔고 항등식 ]
    cash + shares * avg_cost + commission_paid == initial_cash + realized_pnl
    (실현 손익은 수수료 차감 전 금액)

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestSimulator._execute_buy/sell()에서
      portfolio.execute_buy/sell() 호출하여 상태 갱신
    - backtest/metrics.py에서 portfolio.trade_history로 성과 계산
"""

import math
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Any

from horizon_quant.core.errors import InvalidParameterError

# 부동소수점 오차로 현금이 아주 조금 모자라는 경우 허용
CASH_TOLERANCE = 1e-9


def _check_quantity(quantity: Any) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidParameterError(f"Quantity must be a positive integer, got {quantity!r}", parameter="quantity")


def _check_price(price: Any) -> None:
    if not isinstance(price, (int, float)) or not math.isfinite(price) or price <= 0:
        raise InvalidParameterError(f"Price must be a positive finite number, got {price!r}", parameter="price")


@dataclass
class Position:
    """단일 종목 포지션. 롱 전용."""
    ticker: str
    shares: int = 0           # 보유 수량
    avg_cost: float = 0.0     # 평균 매수가 (매수 시마다 가중평균 갱신)
    side: str = "long"

    @property
    def is_empty(self) -> bool:
        return self.shares == 0

    @property
    def cost_basis(self) -> float:
        return self.shares * self.avg_cost

    def market_value(self, price: float) -> float:
        return self.shares * price

    def unrealized_pnl(self, price: float) -> float:
        return (price - self.avg_cost) * self.shares

    def increase(self, quantity: int, price: float) -> None:
        """매수 반영. 평균 단가 가중평균 갱신."""
        _check_quantity(quantity)
        _check_price(price)
        total_cost = self.avg_cost * self.shares + price * quantity
        self.shares += quantity
        self.avg_cost = total_cost / self.shares

    def decrease(self, quantity: int) -> None:
        """매도 반영. 평균 단가는 유지, 전량 매도 시 0으로 초기화."""
        _check_quantity(quantity)
        if quantity > self.shares:
            raise InvalidParameterError(
                f"Cannot sell {quantity} shares of {self.ticker}, holding {self.shares}", parameter="quantity"
            )
        self.shares -= quantity
        if self.shares == 0:
            self.avg_cost = 0.0


@dataclass(frozen=True)
class TradeRecord:
    """개별 거래 기록. metrics.py에서 승률/수익 계산에 사용됨."""
    date: date_type
    type: str                 # "BUY" or "SELL"
    price: float              # 체결 가격 (슬리피지 적용 후)
    quantity: int
    value: float              # price * quantity
    commission: float = 0.0
    realized_pnl: float | None = None  # 매도 시에만 (수수료 차감 전)
    reason: str | None = None          # 시그널 사유

    @property
    def is_sell(self) -> bool:
        return self.type == "SELL"

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat() if hasattr(self.date, "isoformat") else str(self.date),
            "type": self.type,
            "price": self.price,
            "quantity": self.quantity,
            "value": self.value,
            "commission": self.commission,
            "realizedPnL": self.realized_pnl,
            "reason": self.reason,
        }


class Portfolio:
    """포트폴리오 관리 클래스.

    BacktestSimulator가 run() 한 번마다 새로 만들어 소유한다.
    trade_history는 백테스트 종료 후 metrics 계산에 사용됨.
    """

    def __init__(self, ticker: str, initial_cash: float):
        self.ticker = ticker
        self.initial_cash = initial_cash
        self.cash = initial_cash                      # 가용 현금
        self.position = Position(ticker=ticker)
        self.trade_history: list[TradeRecord] = []    # 전체 거래 내역
        self.commission_paid: float = 0.0             # 누적 수수료
        self.realized_pnl: float = 0.0                # 누적 실현 손익 (수수료 차감 전)

    @property
    def has_position(self) -> bool:
        return not self.position.is_empty

    def total_value(self, price: float) -> float:
        """총 자산 (현금 + 보유 수량 × 현재가)."""
        return self.cash + self.position.market_value(price)

    def execute_buy(
        self,
        quantity: int,
        price: float,
        commission: float = 0.0,
        date: date_type | None = None,
        reason: str | None = None,
    ) -> TradeRecord | None:
        """매수 실행. 현금 부족이면 None."""
        _check_quantity(quantity)
        _check_price(price)
        total_cost = price * quantity + commission
        if total_cost - self.cash > CASH_TOLERANCE:
            return None

        self.cash -= total_cost
        self.commission_paid += commission
        self.position.increase(quantity, price)

        trade = TradeRecord(
            date=date,
            type="BUY",
            price=price,
            quantity=quantity,
            value=price * quantity,
            commission=commission,
            reason=reason,
        )
        self.trade_history.append(trade)
        return trade

    def execute_sell(
        self,
        quantity: int,
        price: float,
        commission: float = 0.0,
        date: date_type | None = None,
        reason: str | None = None,
    ) -> TradeRecord | None:
        """매도 실행. 보유 수량 부족이면 None."""
        _check_quantity(quantity)
        _check_price(price)
        if self.position.shares < quantity:
            return None

        realized = (price - self.position.avg_cost) * quantity
        self.cash += price * quantity - commission
        self.commission_paid += commission
        self.realized_pnl += realized
        self.position.decrease(quantity)

        trade = TradeRecord(
            date=date,
            type="SELL",
            price=price,
            quantity=quantity,
            value=price * quantity,
            commission=commission,
            realized_pnl=realized,
            reason=reason,
        )
        self.trade_history.append(trade)
        return trade

    def get_summary(self, price: float | None = None) -> dict[str, Any]:
        """포트폴리오 요약. price를 주면 평가금액 포함."""
        summary = {
            "ticker": self.ticker,
            "initialCash": self.initial_cash,
            "cash": self.cash,
            "shares": self.position.shares,
            "avgCost": self.position.avg_cost,
            "commissionPaid": self.commission_paid,
            "realizedPnL": self.realized_pnl,
            "numTrades": len(self.trade_history),
        }
        if price is not None:
            summary["totalValue"] = self.total_value(price)
            summary["unrealizedPnL"] = self.position.unrealized_pnl(price)
        return summary
