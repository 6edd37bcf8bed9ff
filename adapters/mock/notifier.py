"""
Mock 알림 서비스

테스트용 Mock Notifier.
INotifier Protocol 준수. DEGRADED 알림 검증에 사용.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass
class NotificationRecord:
    """알림 기록"""

    message: str
    level: str
    extra: dict[str, Any] | None
    timestamp: datetime
    sent: bool


class MockNotifier:
    """Mock 알림 서비스

    발송된 모든 알림을 기록하여 테스트에서 검증 가능.

    사용 예시:
    ```python
    notifier = MockNotifier()
    service = LedgerService(remote, cache, notifier=notifier)

    # 원격 저장 실패 후
    assert notifier.get_warnings()[0].extra["state"] == "DEGRADED"
    ```

    Args:
        should_fail: True면 모든 발송 실패 (알림 실패가 거래를 막지 않는지 확인용)
    """

    def __init__(self, should_fail: bool = False):
        self.should_fail = should_fail
        self.notifications: list[NotificationRecord] = []

    async def send(
        self,
        message: str,
        level: str = "INFO",
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """알림 전송 (기록만)"""
        self.notifications.append(
            NotificationRecord(
                message=message,
                level=level,
                extra=extra,
                timestamp=datetime.now(timezone.utc),
                sent=not self.should_fail,
            )
        )
        return not self.should_fail

    def clear(self) -> None:
        """알림 기록 초기화"""
        self.notifications.clear()

    def get_by_level(self, level: str) -> list[NotificationRecord]:
        """특정 레벨의 알림 조회"""
        return [n for n in self.notifications if n.level == level]

    def get_warnings(self) -> list[NotificationRecord]:
        return self.get_by_level("WARNING")

    def for_mutation(self, mutation_id: str) -> list[NotificationRecord]:
        """특정 mutation 관련 알림 조회"""
        return [
            n for n in self.notifications
            if n.extra is not None and n.extra.get("mutation_id") == mutation_id
        ]

    @property
    def last_notification(self) -> NotificationRecord | None:
        """마지막 알림 조회"""
        return self.notifications[-1] if self.notifications else None
