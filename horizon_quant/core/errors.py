"""
코어 예외 정의.

[ 분류 ]
    InsufficientDataError - 지표/시뮬레이터에 필요한 과거 데이터 부족.
                            지표 단계에서는 hold로 대체, 시뮬레이터 준비 단계에서는 치명적.
    InvalidParameterError - 잘못된 지표/백테스트 파라미터. 보정하지 않고 즉시 전달.
    ComputationFault      - 하루치 계산 중 발생한 수치 오류.
                            backtest/engine.py가 해당 일만 건너뛰고 계속 진행.
    UnknownStrategyError  - 등록되지 않은 전략 이름. 기본 전략으로 대체하지 않음.

[ 호출하는 곳 ]
    - indicators/ : 파라미터 검증, 데이터 부족
    - strategies/ : 전략 조회 실패
    - backtest/engine.py : 준비 단계 검증, 일별 오류 처리

[ API 계층 ]
    parameter 속성에 문제가 된 입력 이름을 담아 둔다.
    InsufficientData / InvalidParameter / UnknownStrategy → 4xx,
    루프 밖으로 새어 나간 ComputationFault → 5xx (부분 결과 없음).
"""


class QuantError(Exception):
    """코어 예외의 베이스 클래스."""

    def __init__(self, message: str, parameter: str | None = None):
        super().__init__(message)
        self.parameter = parameter


class InsufficientDataError(QuantError):
    """계산에 필요한 최소 봉 수보다 데이터가 적음."""

    def __init__(self, required: int, available: int, parameter: str | None = "price_data"):
        super().__init__(
            f"Insufficient data: need at least {required} data points, have {available}",
            parameter,
        )
        self.required = required
        self.available = available


class InvalidParameterError(QuantError, ValueError):
    """지표 설정, 백테스트 설정 등 입력값 오류."""


class UnknownStrategyError(QuantError, LookupError):
    """전략 이름 조회 실패."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.available = sorted(available or [])
        message = f"Unknown strategy: '{name}'"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message, parameter="strategy")
        self.name = name


class ComputationFault(QuantError):
    """단일 봉 계산 중 발생한 예기치 않은 수치 오류."""
