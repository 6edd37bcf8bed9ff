"""
Slack Notifier 테스트

SlackNotifier 단위 테스트.
httpx를 모킹하여 실제 네트워크 호출 없이 테스트.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from adapters.interfaces import INotifier
from adapters.slack.notifier import LEVEL_COLOR, LEVEL_EMOJI, SlackNotifier

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


class TestSlackNotifierInit:
    """SlackNotifier 초기화 테스트"""

    def test_implements_inotifier_protocol(self) -> None:
        assert isinstance(SlackNotifier(webhook_url=WEBHOOK), INotifier)

    def test_defaults(self) -> None:
        notifier = SlackNotifier(webhook_url=WEBHOOK)

        assert notifier.channel is None
        assert notifier.username == "RMB Ledger"
        assert notifier.timeout == 10.0

    def test_without_webhook_url_raises(self) -> None:
        with pytest.raises(ValueError, match="webhook_url은 필수입니다"):
            SlackNotifier(webhook_url="")


class TestBuildPayload:
    """페이로드 구성"""

    def test_degraded_warning(self) -> None:
        notifier = SlackNotifier(webhook_url=WEBHOOK, channel="#ledger")

        payload = notifier.build_payload(
            "원격 저장 실패",
            level="WARNING",
            extra={"mutation_id": "mut-1", "pending": 3},
        )

        attachment = payload["attachments"][0]
        assert payload["channel"] == "#ledger"
        assert payload["username"] == "RMB Ledger"
        assert attachment["color"] == LEVEL_COLOR["WARNING"]
        assert attachment["text"].startswith(LEVEL_EMOJI["WARNING"])
        assert "원격 저장 실패" in attachment["text"]
        assert attachment["fields"] == [
            {"title": "mutation_id", "value": "mut-1", "short": True},
            {"title": "pending", "value": "3", "short": True},
        ]
        assert attachment["footer"].endswith("BDT")

    def test_unknown_level_and_no_extra(self) -> None:
        payload = SlackNotifier(webhook_url=WEBHOOK).build_payload("hi", level="DEBUG")

        attachment = payload["attachments"][0]
        assert "channel" not in payload
        assert "fields" not in attachment
        assert attachment["color"] == "#808080"
        assert attachment["text"].startswith(":bell:")


class TestSlackNotifierSend:
    """SlackNotifier.send() 테스트"""

    @pytest.mark.asyncio
    async def test_send_success(self) -> None:
        notifier = SlackNotifier(webhook_url=WEBHOOK)
        mock_response = MagicMock()
        mock_response.status_code = 200

        with patch.object(notifier, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post.return_value = mock_response
            mock_get_client.return_value = mock_client

            result = await notifier.send("테스트 메시지", level="INFO")

            assert result is True
            mock_client.post.assert_called_once()
            assert mock_client.post.call_args.args[0] == WEBHOOK

    @pytest.mark.asyncio
    async def test_send_over_transport(self) -> None:
        """MockTransport로 실제 요청 본문 확인"""
        captured: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content))
            return httpx.Response(200, text="ok")

        async with SlackNotifier(webhook_url=WEBHOOK, transport=httpx.MockTransport(handler)) as notifier:
            assert await notifier.send("pending 2", level="WARNING", extra={"state": "DEGRADED"})

        assert captured[0]["attachments"][0]["fields"][0]["value"] == "DEGRADED"

    @pytest.mark.asyncio
    async def test_non_200_returns_false(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(403, text="invalid_token"))
        notifier = SlackNotifier(webhook_url=WEBHOOK, transport=transport)

        assert await notifier.send("x") is False
        await notifier.close()

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self) -> None:
        notifier = SlackNotifier(webhook_url=WEBHOOK)

        with patch.object(notifier, "_get_client") as mock_get_client:
            mock_client = AsyncMock()
            mock_client.post.side_effect = httpx.TimeoutException("timeout")
            mock_get_client.return_value = mock_client

            assert await notifier.send("x") is False

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        notifier = SlackNotifier(webhook_url=WEBHOOK, transport=httpx.MockTransport(handler))

        assert await notifier.send("x") is False
        await notifier.close()


class TestSlackNotifierClose:
    """클라이언트 종료"""

    @pytest.mark.asyncio
    async def test_close_resets_client(self) -> None:
        notifier = SlackNotifier(webhook_url=WEBHOOK)
        client = await notifier._get_client()

        await notifier.close()

        assert client.is_closed
        assert notifier._client is None

    @pytest.mark.asyncio
    async def test_close_without_client(self) -> None:
        await SlackNotifier(webhook_url=WEBHOOK).close()
