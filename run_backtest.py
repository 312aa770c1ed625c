"""
백테스트 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml의 전략, 샘플 데이터)
    python run_backtest.py

    # 전략 지정
    python run_backtest.py --strategy momentum
    python run_backtest.py --strategy "Mean Reversion"

    # 백테스트 파라미터 오버라이드
    python run_backtest.py --strategy conservative -p position_size_percent=30 -p commission_rate=0.001

    # CSV 데이터 사용 (컬럼: date, open, high, low, close, volume)
    python run_backtest.py --csv data/AAPL.csv --ticker AAPL

    # 여러 전략 비교
    python run_backtest.py --compare trend_following momentum conservative

    # 최신 시그널 확인
    python run_backtest.py --signal --strategy mean_reversion

    # 투자자 프로필로 전략 추천 (투자 기간 1/2/5년, 위험 성향 low/medium/high)
    python run_backtest.py --recommend 2 medium --portfolio-size 15

    # 빌트인 + 커스텀 전략 목록 확인
    python run_backtest.py --list
"""

import argparse
import zlib
from datetime import date
from pathlib import Path

import numpy as np
import pandas as pd

from horizon_quant.backtest.engine import BacktestResult, BacktestSimulator, run_comparison
from horizon_quant.core.data_provider import InMemoryDataProvider, load_price_csv
from horizon_quant.core.errors import QuantError
from horizon_quant.strategies import StrategyRegistry, get_strategy
from horizon_quant.strategies.selector import select_strategy
from horizon_quant.strategies.signal_engine import StrategyEngine, summarize_signals
from horizon_quant.utils.config import BacktestConfig, Config
from horizon_quant.utils.logger import setup_logger

DEFAULT_TICKERS = ["AAPL", "MSFT"]


def generate_sample_data(
    ticker: str,
    start_date: date,
    end_date: date,
    initial_price: float = 150.0,
    volatility: float = 0.02,
) -> pd.DataFrame:
    """백테스트용 샘플 주가 데이터 생성 (종목별 고정 시드의 기하 랜덤워크)."""
    rng = np.random.default_rng(zlib.crc32(ticker.encode("utf-8")))

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)

    returns = rng.normal(0.0003, volatility, n)
    prices = initial_price * np.cumprod(1 + returns)

    data = []
    for i, d in enumerate(dates):
        close = prices[i]
        high = close * (1 + abs(rng.normal(0, 0.01)))
        low = close * (1 - abs(rng.normal(0, 0.01)))
        open_price = close * (1 + rng.normal(0, 0.005))
        volume = int(rng.lognormal(14, 1))

        data.append({
            "date": d.date(),
            "open": round(open_price, 2),
            "high": round(high, 2),
            "low": round(low, 2),
            "close": round(close, 2),
            "volume": volume,
        })

    return pd.DataFrame(data)


def parse_param(param_str: str) -> tuple[str, object]:
    """'key=value' 문자열을 파싱하여 (key, value) 반환. 숫자면 자동 변환."""
    key, _, value = param_str.partition("=")
    key = key.strip()
    value = value.strip()

    # 숫자 자동 변환
    try:
        if "." in value or "e" in value.lower():
            return key, float(value)
        return key, int(value)
    except ValueError:
        return key, value


def apply_overrides(backtest: BacktestConfig, params: list[str]) -> dict[str, object]:
    """-p key=value 를 backtest 설정에 반영. 반영된 값 반환."""
    applied = {}
    for p in params:
        key, value = parse_param(p)
        if key not in BacktestConfig.__dataclass_fields__:
            raise SystemExit(f"오류: 알 수 없는 백테스트 파라미터: {key}")
        setattr(backtest, key, value)
        applied[key] = value
    return applied


def load_data(config: Config, csv_path: str | None, ticker: str | None) -> InMemoryDataProvider:
    """CSV 또는 샘플 데이터로 InMemoryDataProvider 구성."""
    provider = InMemoryDataProvider()

    if csv_path:
        name = ticker or Path(csv_path).stem.upper()
        provider.load_data(name, load_price_csv(csv_path))
        print(f"CSV 데이터 로드: {name} ({csv_path})")
        return provider

    start = date.fromisoformat(config.backtest.start_date)
    end = date.fromisoformat(config.backtest.end_date)
    tickers = [ticker] if ticker else (config.strategy.tickers or DEFAULT_TICKERS)

    print("샘플 데이터 생성 중...")
    for name in tickers:
        provider.load_data(name, generate_sample_data(name, start, end))
    return provider


def print_single_result(result: BacktestResult) -> None:
    """단일 전략 결과 출력."""
    print(f"\n[전략: {result.strategy_name}] {result.ticker} ({result.start_date} ~ {result.end_date})")
    print(result.metrics.summary())

    buys = [t for t in result.trades if t.type == "BUY"]
    sells = [t for t in result.trades if t.type == "SELL"]
    print(f"\n총 거래 횟수: {len(result.trades)}")
    print(f"  매수: {len(buys)}회")
    print(f"  매도: {len(sells)}회")

    if sells:
        print("\n최근 매도 거래 (최대 5건):")
        for t in sells[-5:]:
            print(f"  [{t.date}] {t.quantity}주 @ {t.price:,.2f} -> {t.realized_pnl:+,.2f} ({t.reason})")


def print_comparison(ticker: str, results: dict[str, BacktestResult]) -> None:
    """여러 전략 비교 결과 출력."""
    names = list(results.keys())
    col_width = max(16, max(len(n) for n in names) + 2)
    width = 20 + col_width * len(names)

    print(f"\n{'=' * width}")
    print(f"전략 비교 결과 ({ticker})")
    print(f"{'=' * width}")

    header = f"{'':>20}" + "".join(f"{n:>{col_width}}" for n in names)
    print(header)
    print("-" * len(header))

    rows = [
        ("총 수익률", lambda m: f"{m.total_return * 100:.2f}%"),
        ("연환산 수익률", lambda m: f"{m.cagr * 100:.2f}%"),
        ("샤프 비율", lambda m: f"{m.sharpe_ratio:.2f}"),
        ("최대 낙폭(MDD)", lambda m: f"{m.max_drawdown * 100:.2f}%"),
        ("총 거래 횟수", lambda m: f"{m.total_trades}"),
        ("승률", lambda m: f"{m.win_rate * 100:.1f}%"),
        ("평균 수익률", lambda m: f"{m.average_return * 100:.2f}%"),
        ("최종 자산", lambda m: f"{m.final_value:,.2f}"),
        ("총 수수료", lambda m: f"{m.total_commission:,.2f}"),
    ]

    for label, fmt in rows:
        row = f"{label:>20}" + "".join(f"{fmt(results[n].metrics):>{col_width}}" for n in names)
        print(row)

    print(f"{'=' * width}")


def print_recommendation(horizon: int, risk: str, portfolio_size: int) -> None:
    rec = select_strategy(horizon, risk, portfolio_size)
    print(f"\n추천 전략: {rec.strategy_name} ({rec.strategy_key})")
    print(f"  리밸런싱 주기: {rec.rebalance_frequency.value}")
    print(f"  신뢰도: {rec.confidence:.0%}")
    print(f"  사유: {rec.reasoning}")


def print_strategy_list(registry: StrategyRegistry) -> None:
    print("등록된 전략:")
    for key in registry.keys():
        info = registry.describe(key)
        indicators = ", ".join(ind["type"] for ind in info["indicators"])
        print(f"  - {key:<18} {info['name']} [{info['frequency']}] ({indicators})")
        print(f"      {info['description']}")


def main():
    parser = argparse.ArgumentParser(description="퀀트 전략 백테스트 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--strategy", type=str, default=None, help="전략 이름 (config.yaml 대신 지정)")
    parser.add_argument("--ticker", type=str, default=None, help="종목 코드 (config.yaml 대신 지정)")
    parser.add_argument("--csv", type=str, default=None, help="OHLCV CSV 파일 경로")
    parser.add_argument("--sample", action="store_true", help="샘플 데이터로 테스트 (기본값)")
    parser.add_argument("-p", "--param", action="append", default=[], help="백테스트 파라미터 오버라이드 (예: -p commission_rate=0.001)")
    parser.add_argument("--compare", nargs="+", metavar="STRATEGY", help="여러 전략 비교 (예: --compare trend_following momentum)")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    parser.add_argument("--signal", action="store_true", help="최신 봉 기준 시그널 출력")
    parser.add_argument("--recommend", nargs=2, metavar=("HORIZON", "RISK"), help="투자 기간(1/2/5)과 위험 성향으로 전략 추천")
    parser.add_argument("--portfolio-size", type=int, default=20, help="--recommend 시 보유 종목 수")
    args = parser.parse_args()

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        config = Config()

    setup_logger(level=config.log_level, log_dir=config.log_dir)

    try:
        registry = config.build_registry()

        # 전략 목록 출력
        if args.list:
            print_strategy_list(registry)
            return

        # 전략 추천
        if args.recommend:
            horizon, risk = args.recommend
            print_recommendation(int(horizon), risk, args.portfolio_size)
            return

        overrides = apply_overrides(config.backtest, args.param)
        csv_path = None if args.sample else args.csv
        provider = load_data(config, csv_path, args.ticker)
        if csv_path:
            start, end = date.min, date.max
        else:
            start = date.fromisoformat(config.backtest.start_date)
            end = date.fromisoformat(config.backtest.end_date)
        data = {ticker: provider.fetch(ticker, start, end) for ticker in provider.get_tickers()}
        for ticker, df in data.items():
            print(f"  {ticker}: {len(df)}일 데이터")

        strategy_name = args.strategy or config.strategy.name

        # ─── 시그널 모드 ─────────────────────────────────────────────────────
        if args.signal:
            strategy = get_strategy(strategy_name, registry)
            signals = StrategyEngine(strategy).generate_signals(data)
            print(f"\n[전략: {strategy.name}] 최신 시그널")
            for ticker, signal in signals.items():
                print(f"  {ticker:<8} {signal.signal.value.upper():<5} 신뢰도 {signal.confidence:.2f}  ({signal.as_of})")
                print(f"           {signal.reason}")
            summary = summarize_signals(signals)
            print(f"\n  buy {summary['buy']} / hold {summary['hold']} / sell {summary['sell']}, "
                  f"평균 신뢰도 {summary['averageConfidence']:.2f}")
            return

        # ─── 비교 모드 ───────────────────────────────────────────────────────
        if args.compare:
            print(f"\n{len(args.compare)}개 전략 비교 실행...")
            for ticker, df in data.items():
                results = run_comparison(
                    ticker, df, args.compare, registry=registry, **config.backtest.simulator_kwargs()
                )
                if results:
                    print_comparison(ticker, results)
            return

        # ─── 단일 실행 모드 ─────────────────────────────────────────────────
        print(f"\n전략: {strategy_name}")
        if overrides:
            print(f"파라미터 오버라이드: {overrides}")

        for ticker, df in data.items():
            simulator = BacktestSimulator(
                ticker, df, strategy_name, registry=registry, **config.backtest.simulator_kwargs()
            )
            print_single_result(simulator.run())

    except QuantError as e:
        print(f"\n오류: {e}")
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
