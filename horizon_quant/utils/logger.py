"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 백테스트 진행, 매매 실행 내역, 건너뛴 날 등을 기록.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/horizon_quant_20240601.log)

[ 로거 이름 ]
    horizon_quant.backtest  - 시작/완료 INFO, 매매 DEBUG, 건너뛴 날 WARNING
    horizon_quant.strategy  - 지표 데이터 부족 DEBUG, 종목별 계산 실패 WARNING
    → setup_logger("horizon_quant")로 상위 로거만 설정하면 모두 적용된다.

[ 호출하는 곳 ]
    - run_backtest.py에서 setup_logger() 호출
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = "horizon_quant",
    level: str = "INFO",
    log_dir: str = "logs",
    console: bool = True,
    to_file: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록. 이미 설정된 로거는 그대로 반환."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # 파일 핸들러
    if to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y%m%d")
        file_handler = logging.FileHandler(
            log_path / f"{name}_{today}.log",
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # 콘솔 핸들러
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
