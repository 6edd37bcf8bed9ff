"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → 프로젝트 루트)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수"""

    # 환율 기본값 (원본 앱에서 사용하던 값)
    DHS_RATE: Decimal = Decimal("34.24")  # 1 DHS = 34.24 BDT
    USD_RATE: Decimal = Decimal("125")  # 1 USD = 125 BDT (대시보드 환산용)

    REMOTE_BACKEND: str = "sqlite"
    HTTP_TIMEOUT_SEC: float = 10.0

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    CLI_LOGS_DIR: Path = LOGS_DIR / "cli"
    WEB_LOGS_DIR: Path = LOGS_DIR / "web"

    # 설정 파일
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB 파일
    STORE_DB: Path = DATA_DIR / "ledger_store.db"  # 원격 저장소 (SQLite 백엔드)
    CACHE_DB: Path = DATA_DIR / "ledger_cache.db"  # 로컬 캐시


class Collections:
    """원격 저장소 컬렉션 이름

    계정 종류별 컬렉션 1개 + 계정별 거래 하위 컬렉션.
    """

    CUSTOMERS: str = "customers"
    SUPPLIERS: str = "suppliers"
    AGENTS: str = "agents"
    BANKS: str = "banks"
    WALLETS: str = "wallets"

    @staticmethod
    def transactions(collection: str, account_id: str) -> str:
        """계정별 거래 하위 컬렉션 이름 (예: customers/abc/transactions)"""
        return f"{collection}/{account_id}/transactions"


class CacheKeys:
    """로컬 캐시 키"""

    PENDING_WRITES: str = "pending_writes"

    @staticmethod
    def entries(kind: str, account_id: str) -> str:
        """계정별 거래 목록 캐시 키 (예: bank_transactions_abc)"""
        return f"{kind}_transactions_{account_id}"
