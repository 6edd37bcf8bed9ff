"""
Mock Notifier 테스트

MockNotifier 테스트.
"""

import pytest

from adapters.interfaces import INotifier
from adapters.mock.notifier import MockNotifier


class TestMockNotifier:
    """MockNotifier 테스트"""

    @pytest.fixture
    def notifier(self) -> MockNotifier:
        return MockNotifier()

    def test_protocol(self, notifier: MockNotifier) -> None:
        assert isinstance(notifier, INotifier)

    @pytest.mark.asyncio
    async def test_send_records_message(self, notifier: MockNotifier) -> None:
        result = await notifier.send("원격 저장 실패", level="WARNING", extra={"mutation_id": "mut-1"})

        record = notifier.notifications[0]
        assert result is True
        assert record.message == "원격 저장 실패"
        assert record.level == "WARNING"
        assert record.sent is True
        assert record.timestamp is not None

    @pytest.mark.asyncio
    async def test_send_fail_mode(self) -> None:
        notifier = MockNotifier(should_fail=True)

        assert await notifier.send("x") is False
        assert notifier.notifications[0].sent is False

    @pytest.mark.asyncio
    async def test_filters(self, notifier: MockNotifier) -> None:
        await notifier.send("a", level="INFO")
        await notifier.send("b", level="WARNING", extra={"mutation_id": "mut-1"})
        await notifier.send("c", level="WARNING", extra={"mutation_id": "mut-2"})

        assert [n.message for n in notifier.get_warnings()] == ["b", "c"]
        assert [n.message for n in notifier.for_mutation("mut-2")] == ["c"]
        assert notifier.last_notification.message == "c"

    @pytest.mark.asyncio
    async def test_clear(self, notifier: MockNotifier) -> None:
        await notifier.send("a")
        notifier.clear()

        assert notifier.notifications == []
        assert notifier.last_notification is None
