"""
주가 데이터 모델 및 데이터 제공자 인터페이스.

[ 역할 ]
    OHLCV(시가/고가/저가/종가/거래량) 데이터의 형태를 정의하고,
    외부 데이터 수집 계층이 구현할 DataProvider 인터페이스를 제공.
    코어는 완전히 적재된 시계열만 받는다 (스트림 X).

[ 구현체 ]
    - InMemoryDataProvider (DataFrame 기반, 테스트/CLI용)
    - 실제 시세 API/캐시 연동은 웹 애플리케이션 쪽 책임

[ 호출하는 곳 ]
    - strategies/signal_engine.py, backtest/engine.py에서
      normalize_price_data()로 입력을 정규화 (날짜 오름차순 정렬, 중복 검사)
    - run_backtest.py에서 load_price_csv() / InMemoryDataProvider 사용
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd

from horizon_quant.core.errors import InvalidParameterError

PRICE_COLUMNS = ["date", "open", "high", "low", "close", "volume"]
SUPPORTED_INTERVALS = ("daily",)


@dataclass(frozen=True)
class PriceBar:
    """단일 봉(캔들) 데이터."""
    date: date
    open: float      # 시가
    high: float      # 고가
    low: float       # 저가
    close: float     # 종가 (지표 계산/체결 가격 기준)
    volume: int = 0  # 거래량

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def normalize_price_data(data: Any) -> pd.DataFrame:
    """가격 데이터를 date 오름차순 DataFrame으로 정규화.

    Args:
        data: DataFrame, PriceBar 시퀀스, 또는 dict 시퀀스

    Returns:
        DataFrame with columns: [date, open, high, low, close, volume]
        (date는 datetime.date, close는 float)

    Raises:
        InvalidParameterError: date/close 컬럼 누락, 날짜 중복
    """
    if isinstance(data, pd.DataFrame):
        df = data.copy()
    elif isinstance(data, Sequence) and not isinstance(data, (str, bytes)):
        rows = [bar.to_dict() if isinstance(bar, PriceBar) else dict(bar) for bar in data]
        df = pd.DataFrame(rows)
    else:
        raise InvalidParameterError(
            f"Unsupported price data type: {type(data).__name__}", parameter="price_data"
        )

    if df.empty:
        return pd.DataFrame(columns=PRICE_COLUMNS)

    df.columns = [str(c).lower() for c in df.columns]
    missing = [c for c in ("date", "close") if c not in df.columns]
    if missing:
        raise InvalidParameterError(
            f"Price data is missing columns: {', '.join(missing)}", parameter="price_data"
        )

    df["date"] = pd.to_datetime(df["date"]).dt.date
    df["close"] = df["close"].astype(float)
    for col in PRICE_COLUMNS:
        if col not in df.columns:
            df[col] = 0 if col == "volume" else df["close"]

    df = df.sort_values("date", kind="mergesort").reset_index(drop=True)
    duplicated = df["date"].duplicated()
    if duplicated.any():
        first = df.loc[duplicated, "date"].iloc[0]
        raise InvalidParameterError(
            f"Duplicate price bar date: {first}", parameter="price_data"
        )
    return df[PRICE_COLUMNS + [c for c in df.columns if c not in PRICE_COLUMNS]]


def bars_from_frame(df: pd.DataFrame) -> list[PriceBar]:
    """정규화된 DataFrame을 PriceBar 리스트로 변환."""
    df = normalize_price_data(df)
    return [
        PriceBar(
            date=row.date,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=int(row.volume),
        )
        for row in df.itertuples(index=False)
    ]


def load_price_csv(path: str | Path) -> pd.DataFrame:
    """CSV 파일에서 OHLCV 로드. 컬럼명은 대소문자 무관."""
    df = pd.read_csv(Path(path))
    return normalize_price_data(df)


class DataProvider(ABC):
    """주가 데이터 제공 추상 클래스.

    시세 수집/캐싱 계층이 이 클래스를 구현한다. 코어는 반환된 데이터를
    그대로 신뢰하되, 사용 전에 다시 날짜순 정렬한다.
    """

    @abstractmethod
    def fetch(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
        interval: str = "daily",
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회.

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]
        """
        ...

    @abstractmethod
    def get_tickers(self) -> list[str]:
        """조회 가능한 종목 코드 목록."""
        ...


class InMemoryDataProvider(DataProvider):
    """미리 적재한 DataFrame에서 데이터를 제공하는 구현체.

    사용법:
        provider = InMemoryDataProvider()
        provider.load_data("AAPL", df)
        df = provider.fetch("AAPL", date(2023, 1, 1), date(2023, 12, 31))
    """

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data: dict[str, pd.DataFrame] = {}  # ticker → OHLCV DataFrame
        for ticker, frame in (data or {}).items():
            self.load_data(ticker, frame)

    def load_data(self, ticker: str, data: Any) -> None:
        """종목 데이터 적재 (정규화 후 저장)."""
        self._data[ticker] = normalize_price_data(data)

    def fetch(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
        interval: str = "daily",
    ) -> pd.DataFrame:
        if interval not in SUPPORTED_INTERVALS:
            raise InvalidParameterError(f"Unsupported interval: {interval}", parameter="interval")
        if ticker not in self._data:
            return pd.DataFrame(columns=PRICE_COLUMNS)

        df = self._data[ticker]
        mask = (df["date"] >= start_date) & (df["date"] <= end_date)
        return df[mask].copy().reset_index(drop=True)

    def get_tickers(self) -> list[str]:
        return list(self._data.keys())
