"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    전략 선택, 백테스트 파라미터, 커스텀 전략, 로깅 설정 등을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    strategy:           → StrategySettings (전략 이름, 종목 목록)
    backtest:           → BacktestConfig (백테스트 파라미터)
    custom_strategies:  → StrategyConfig 목록 (presets.yaml과 같은 형식)
    log_level:          → "INFO" / "DEBUG"
    log_dir:            → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_backtest.py에서 Config.from_yaml()로 로드
    - config.build_registry()로 커스텀 전략이 등록된 StrategyRegistry 생성
    - 시뮬레이터 생성 시 config.backtest의 값을 사용
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from horizon_quant.core.trading_strategy import StrategyConfig
from horizon_quant.strategies import StrategyRegistry


@dataclass
class StrategySettings:
    """전략 선택. config.yaml의 strategy 섹션에 대응."""
    name: str = "trend_following"
    tickers: list[str] = field(default_factory=list)


@dataclass
class BacktestConfig:
    """백테스트 설정. config.yaml의 backtest 섹션에 대응."""
    start_date: str = "2023-01-01"
    end_date: str = "2024-12-31"
    initial_capital: float = 10_000
    position_size_percent: float = 50.0
    commission_rate: float = 0.0
    slippage_rate: float = 0.0

    def simulator_kwargs(self) -> dict[str, Any]:
        """BacktestSimulator 생성 인자."""
        return {
            "initial_capital": self.initial_capital,
            "position_size_percent": self.position_size_percent,
            "commission_rate": self.commission_rate,
            "slippage_rate": self.slippage_rate,
        }


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    strategy: StrategySettings = field(default_factory=StrategySettings)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    custom_strategies: list[dict[str, Any]] = field(default_factory=list)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성. 섹션 안의 모르는 키는 무시."""
        strategy_data = data.get("strategy") or {}
        backtest_data = data.get("backtest") or {}

        strategy = StrategySettings(**{
            k: v for k, v in strategy_data.items()
            if k in StrategySettings.__dataclass_fields__
        })
        backtest = BacktestConfig(**{
            k: v for k, v in backtest_data.items()
            if k in BacktestConfig.__dataclass_fields__
        })

        return cls(
            strategy=strategy,
            backtest=backtest,
            custom_strategies=list(data.get("custom_strategies") or []),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def build_registry(self) -> StrategyRegistry:
        """custom_strategies를 등록한 StrategyRegistry 생성.

        Raises:
            InvalidParameterError: 잘못된 지표 설정, 빌트인과 이름 충돌
        """
        return StrategyRegistry(StrategyConfig.from_dict(definition) for definition in self.custom_strategies)

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False, sort_keys=False)
