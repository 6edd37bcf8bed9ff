"""
설정 로더

config/settings.yaml 로드 및 불변 설정 객체 생성.
파일이 없으면 기본값 사용 (SQLite 원격 저장소 + SQLite 캐시, data/ 아래).
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from core.constants import PROJECT_ROOT, Defaults, Paths


REMOTE_BACKENDS = ("sqlite", "http", "memory")


@dataclass(frozen=True)
class RemoteConfig:
    """원격 저장소 설정

    backend:
    - sqlite: 로컬 SQLite 문서 저장소 (기본, CLI 단독 사용)
    - http: REST 문서 API (base_url 필수)
    - memory: 프로세스 메모리 (테스트/데모)
    """

    backend: str = Defaults.REMOTE_BACKEND
    sqlite_path: Path = Paths.STORE_DB
    base_url: str = ""
    api_token: str = ""
    timeout_sec: float = Defaults.HTTP_TIMEOUT_SEC


@dataclass(frozen=True)
class CacheConfig:
    """로컬 캐시 설정 (backend: sqlite | memory)"""

    backend: str = "sqlite"
    path: Path = Paths.CACHE_DB


@dataclass(frozen=True)
class RatesConfig:
    """기본 환율"""

    dhs_rate: Decimal = Defaults.DHS_RATE
    usd_rate: Decimal = Defaults.USD_RATE


@dataclass(frozen=True)
class NotifierConfig:
    """Slack 알림 설정 (webhook_url이 없으면 알림 비활성)"""

    slack_webhook_url: str = ""
    channel: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.slack_webhook_url)


@dataclass(frozen=True)
class LedgerSettings:
    """전체 설정"""

    remote: RemoteConfig = field(default_factory=RemoteConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    rates: RatesConfig = field(default_factory=RatesConfig)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    web_host: str = Defaults.WEB_HOST
    web_port: int = Defaults.WEB_PORT
    log_level: str = Defaults.LOG_LEVEL


class SettingsLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise SettingsLoadError(f"settings.yaml의 '{name}' 섹션 형식이 잘못되었습니다")
    return value


def _path(value: Any, default: Path) -> Path:
    """상대 경로는 프로젝트 루트 기준 (":memory:"는 그대로)"""
    if not value:
        return default
    if str(value) == ":memory:":
        return Path(":memory:")
    path = Path(str(value))
    return path if path.is_absolute() else PROJECT_ROOT / path


def _rate(value: Any, default: Decimal, name: str) -> Decimal:
    if value is None or value == "":
        return default
    try:
        rate = Decimal(str(value))
    except InvalidOperation as e:
        raise SettingsLoadError(f"환율 형식 오류: {name}={value!r}") from e
    if not rate.is_finite() or rate <= 0:
        raise SettingsLoadError(f"환율은 0보다 커야 합니다: {name}={value!r}")
    return rate


def parse_settings(data: dict[str, Any] | None) -> LedgerSettings:
    """dict → LedgerSettings

    Raises:
        SettingsLoadError: 형식 오류
    """
    if data is None:
        return LedgerSettings()
    if not isinstance(data, dict):
        raise SettingsLoadError("settings.yaml 최상위는 mapping이어야 합니다")

    remote_data = _section(data, "remote")
    backend = str(remote_data.get("backend") or Defaults.REMOTE_BACKEND).lower()
    if backend not in REMOTE_BACKENDS:
        raise SettingsLoadError(
            f"유효하지 않은 remote.backend: '{backend}'. 유효한 값: {list(REMOTE_BACKENDS)}"
        )
    base_url = str(remote_data.get("base_url") or "")
    if backend == "http" and not base_url:
        raise SettingsLoadError("remote.backend가 http이면 remote.base_url이 필요합니다")

    try:
        timeout = float(remote_data.get("timeout_sec") or Defaults.HTTP_TIMEOUT_SEC)
    except (TypeError, ValueError) as e:
        raise SettingsLoadError(f"remote.timeout_sec 형식 오류: {e}") from e

    remote = RemoteConfig(
        backend=backend,
        sqlite_path=_path(remote_data.get("sqlite_path"), Paths.STORE_DB),
        base_url=base_url,
        api_token=str(remote_data.get("api_token") or ""),
        timeout_sec=timeout,
    )

    cache_data = _section(data, "cache")
    cache_backend = str(cache_data.get("backend") or "sqlite").lower()
    if cache_backend not in ("sqlite", "memory"):
        raise SettingsLoadError(f"유효하지 않은 cache.backend: '{cache_backend}'")
    cache = CacheConfig(backend=cache_backend, path=_path(cache_data.get("path"), Paths.CACHE_DB))

    rates_data = _section(data, "rates")
    rates = RatesConfig(
        dhs_rate=_rate(rates_data.get("dhs_rate"), Defaults.DHS_RATE, "dhs_rate"),
        usd_rate=_rate(rates_data.get("usd_rate"), Defaults.USD_RATE, "usd_rate"),
    )

    notifier_data = _section(data, "notifier")
    notifier = NotifierConfig(
        slack_webhook_url=str(notifier_data.get("slack_webhook_url") or ""),
        channel=str(notifier_data.get("channel") or ""),
    )

    web_data = _section(data, "web")
    logging_data = _section(data, "logging")
    try:
        web_port = int(web_data.get("port") or Defaults.WEB_PORT)
    except (TypeError, ValueError) as e:
        raise SettingsLoadError(f"web.port 형식 오류: {e}") from e

    return LedgerSettings(
        remote=remote,
        cache=cache,
        rates=rates,
        notifier=notifier,
        web_host=str(web_data.get("host") or Defaults.WEB_HOST),
        web_port=web_port,
        log_level=str(logging_data.get("level") or Defaults.LOG_LEVEL).upper(),
    )


def load_settings(path: Path | None = None) -> LedgerSettings:
    """settings.yaml 파일 로드

    Args:
        path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        LedgerSettings (파일이 없으면 기본값)

    Raises:
        SettingsLoadError: 파싱 실패 또는 형식 오류
    """
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        return LedgerSettings()

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"settings.yaml 파싱 실패: {e}") from e

    return parse_settings(data)


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)"""

    _instance: "Settings | None" = None
    _settings: LedgerSettings | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._settings is None:
            type(self)._settings = load_settings(settings_path)

    @property
    def ledger(self) -> LedgerSettings:
        assert self._settings is not None
        return self._settings

    @property
    def remote(self) -> RemoteConfig:
        return self.ledger.remote

    @property
    def cache(self) -> CacheConfig:
        return self.ledger.cache

    @property
    def rates(self) -> RatesConfig:
        return self.ledger.rates

    @property
    def notifier(self) -> NotifierConfig:
        return self.ledger.notifier

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._settings = None


def get_settings(settings_path: Path | None = None) -> Settings:
    """Settings 싱글턴 반환"""
    return Settings(settings_path)
