"""
=============================================================================
퀀트 시그널 & 백테스트 코어 (Horizon Quant)
=============================================================================

[ 시스템 전체 구조 ]

    run_backtest.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드 (커스텀 전략 포함)
         ├── utils/logger.py        ← 로깅
         │
         ├── indicators/            ← 기술적 지표
         │     ├── math_kernel.py   ← 이동평균/지수평활/표준편차/상관계수
         │     ├── params.py        ← 지표별 파라미터 (불변, 생성 시 검증)
         │     └── engine.py        ← 지표값 + 봉별 시그널 계산
         │
         ├── strategies/            ← 전략 (지표 시그널 결합)
         │     ├── presets.yaml     ← 빌트인 전략 4종 + 추천표
         │     ├── signal_engine.py ← StrategyEngine (buy/hold/sell + 신뢰도 + 근거)
         │     └── selector.py      ← 투자 기간/위험 성향 → 전략 추천
         │
         └── backtest/engine.py     ← 백테스트 시뮬레이터
               │
               ├── data/portfolio.py    ← 포지션/거래기록 관리
               └── backtest/metrics.py  ← 성과 지표 계산


[ 핵심 타입 (core/) ]

    core/errors.py           → 예외 분류 (데이터 부족 / 파라미터 오류 / 계산 오류 / 전략 없음)
    core/data_provider.py    → PriceBar, DataProvider 인터페이스, 가격 데이터 정규화
    core/trading_strategy.py → SignalType, StrategyConfig, Signal


[ 데이터 흐름 ]

    (실시간)  가격 시계열 → IndicatorEngine → StrategyEngine → 종목별 Signal
    (백테스트) BacktestSimulator가 매 봉마다 그 날까지의 종가로 StrategyEngine 호출
               → Portfolio에 매수/매도 반영 → metrics.py가 성과 지표 계산


[ 외부 계층 책임 ]

    사용자/세션, HTTP 라우팅, DB 저장, 시세 수집/캐싱, 모의투자, UI는 이 패키지 밖.
    코어는 완전히 적재된 가격 시계열만 받아 동기적으로 계산한다.
"""

__version__ = "0.1.0"
