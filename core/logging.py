"""
로깅 설정 유틸리티

CLI와 Web 모두에서 사용하는 공통 로깅 설정.
- 콘솔: 지정 스트림 (CLI는 stdout을 JSON 출력에 쓰므로 stderr)
- 파일: TimedRotatingFileHandler (daily), logs/{process}/

사용법:
    from core.logging import setup_logging
    setup_logging("cli", stream=sys.stderr)
    setup_logging("web")
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TextIO

from core.constants import Paths


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_BACKUP_COUNT = 7  # 최대 7일치 파일 유지

# 로그 볼륨이 큰 서드파티 로거 (WARNING으로 조정)
NOISY_LOGGERS = [
    "aiosqlite",  # 쿼리마다 executing/completed 로그
    "httpcore",
    "httpx",
    "asyncio",
]


def get_log_dir(process_name: str) -> Path:
    """프로세스별 로그 디렉토리"""
    if process_name == "cli":
        return Paths.CLI_LOGS_DIR
    if process_name == "web":
        return Paths.WEB_LOGS_DIR
    return Paths.LOGS_DIR


def get_log_file_path(process_name: str) -> Path:
    return get_log_dir(process_name) / f"{process_name}.log"


def setup_logging(
    process_name: str,
    console_level: int = logging.INFO,
    file_level: int = logging.INFO,
    stream: TextIO | None = None,
    log_to_file: bool = True,
) -> logging.Logger:
    """로깅 설정 초기화

    Args:
        process_name: 프로세스 이름 ("cli" 또는 "web")
        console_level: 콘솔 로그 레벨
        file_level: 파일 로그 레벨
        stream: 콘솔 출력 스트림 (기본 stdout)
        log_to_file: 파일 핸들러 사용 여부

    Returns:
        설정된 루트 Logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # 핸들러에서 필터링
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_file = get_log_file_path(process_name)
    if log_to_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=log_file,
            when="midnight",
            interval=1,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"  # cli.log.2026-02-21
        file_handler.setLevel(file_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.debug(
        f"로깅 초기화 완료: {process_name}",
        extra={"log_file": str(log_file) if log_to_file else None},
    )
    return root_logger
