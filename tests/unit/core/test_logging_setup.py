"""
core/logging.py 테스트

콘솔/파일 핸들러 구성, 프로세스별 로그 경로 테스트
"""

import io
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from unittest.mock import patch

import pytest

from core import logging as log_setup
from core.constants import Paths


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogPaths:
    """로그 경로"""

    def test_process_dirs(self) -> None:
        assert log_setup.get_log_dir("cli") == Paths.CLI_LOGS_DIR
        assert log_setup.get_log_dir("web") == Paths.WEB_LOGS_DIR
        assert log_setup.get_log_dir("other") == Paths.LOGS_DIR

    def test_file_name(self) -> None:
        assert log_setup.get_log_file_path("web") == Paths.WEB_LOGS_DIR / "web.log"


class TestSetupLogging:
    """setup_logging"""

    def test_console_only(self) -> None:
        stream = io.StringIO()

        root = log_setup.setup_logging("cli", stream=stream, log_to_file=False)
        logging.getLogger("core.ledger.test").info("hello ledger")

        assert len(root.handlers) == 1
        assert "hello ledger" in stream.getvalue()
        assert "INFO" in stream.getvalue()
        assert "core.ledger.test" in stream.getvalue()

    def test_console_level_filters(self) -> None:
        stream = io.StringIO()

        log_setup.setup_logging("cli", console_level=logging.WARNING, stream=stream, log_to_file=False)
        logging.getLogger("core").info("quiet")
        logging.getLogger("core").warning("loud")

        assert "quiet" not in stream.getvalue()
        assert "loud" in stream.getvalue()

    def test_file_handler(self, tmp_path: Path) -> None:
        log_file = tmp_path / "cli" / "cli.log"

        with patch.object(log_setup, "get_log_file_path", return_value=log_file):
            root = log_setup.setup_logging("cli", stream=io.StringIO())

        file_handlers = [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        assert log_file.parent.exists()

    def test_noisy_loggers_quieted(self) -> None:
        log_setup.setup_logging("web", stream=io.StringIO(), log_to_file=False)

        for name in log_setup.NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_repeated_setup_replaces_handlers(self) -> None:
        log_setup.setup_logging("cli", stream=io.StringIO(), log_to_file=False)
        root = log_setup.setup_logging("cli", stream=io.StringIO(), log_to_file=False)

        assert len(root.handlers) == 1
