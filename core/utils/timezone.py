"""
타임존 유틸리티

내부 저장: UTC | 거래 일자(date): BDT(Asia/Dhaka, UTC+6) 기준
"""

from datetime import datetime, timedelta, timezone

# 방글라데시 표준시 (UTC+6, 서머타임 없음)
BDT_TZ = timezone(timedelta(hours=6))


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.
    """
    return datetime.now(timezone.utc)


def to_local(dt: datetime) -> datetime:
    """UTC datetime을 BDT로 변환

    Args:
        dt: datetime 객체 (naive면 UTC로 간주)

    Example:
        >>> to_local(datetime(2026, 2, 20, 20, 0, tzinfo=timezone.utc)).day
        21
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(BDT_TZ)


def today_str(now: datetime | None = None) -> str:
    """거래 일자 문자열 (YYYY-MM-DD, BDT 기준)"""
    return to_local(now or now_utc()).strftime("%Y-%m-%d")


def to_iso(dt: datetime) -> str:
    """ISO-8601 문자열 (UTC, 마이크로초 + Z 접미사)

    예: 2026-02-20T16:00:00.123456Z (읽기는 밀리초 형식도 허용)
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_iso(value: str | None) -> datetime | None:
    """ISO-8601 문자열 → UTC datetime

    Z 접미사와 날짜만 있는 값(YYYY-MM-DD)도 허용.

    Returns:
        UTC datetime 또는 None (빈 값/형식 오류)
    """
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_valid_date(value: str) -> bool:
    """YYYY-MM-DD 형식 검사"""
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        return False
    return True
