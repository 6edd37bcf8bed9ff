"""
Slack 알림 서비스

Slack Incoming Webhook으로 원격 저장 실패(DEGRADED) 등 운영 알림 전송.
INotifier Protocol 준수. 전송 실패는 로그만 남기고 False 반환 (거래 흐름을 막지 않음).
"""

import logging
from typing import Any

import httpx

from core.utils.timezone import now_utc, to_local

logger = logging.getLogger(__name__)


# 레벨별 이모지 매핑
LEVEL_EMOJI = {
    "INFO": ":white_check_mark:",
    "WARNING": ":warning:",
    "ERROR": ":x:",
    "CRITICAL": ":rotating_light:",
}

# 레벨별 색상 매핑 (Slack attachment color)
LEVEL_COLOR = {
    "INFO": "#36A64F",
    "WARNING": "#FFA500",
    "ERROR": "#FF0000",
    "CRITICAL": "#8B0000",
}


class SlackNotifier:
    """Slack 알림 서비스

    사용 예시:
    ```python
    async with SlackNotifier(webhook_url="https://hooks.slack.com/...") as notifier:
        await notifier.send("원격 저장 실패: pending 3건", level="WARNING",
                            extra={"mutation_id": "mut-..."})
    ```

    Args:
        webhook_url: Slack Incoming Webhook URL
        channel: 채널 오버라이드 (기본값은 Webhook 설정 사용)
        username: 메시지 발송자 이름
        timeout: HTTP 요청 타임아웃 (초)
        transport: httpx 전송 계층 주입 (테스트용 MockTransport)
    """

    def __init__(
        self,
        webhook_url: str,
        channel: str | None = None,
        username: str = "RMB Ledger",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not webhook_url:
            raise ValueError("webhook_url은 필수입니다")

        self.webhook_url = webhook_url
        self.channel = channel
        self.username = username
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP 클라이언트 반환 (lazy initialization)"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """HTTP 클라이언트 종료"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_payload(
        self,
        message: str,
        level: str = "INFO",
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Slack 메시지 페이로드 구성 (extra는 attachment fields)"""
        emoji = LEVEL_EMOJI.get(level, ":bell:")
        attachment: dict[str, Any] = {
            "color": LEVEL_COLOR.get(level, "#808080"),
            "text": f"{emoji} *[{level}]* {message}",
            "footer": f"RMB Ledger | {self._format_timestamp()}",
        }
        if extra:
            attachment["fields"] = [
                {"title": key, "value": str(value), "short": True}
                for key, value in extra.items()
            ]

        payload: dict[str, Any] = {"username": self.username, "attachments": [attachment]}
        if self.channel:
            payload["channel"] = self.channel
        return payload

    async def send(
        self,
        message: str,
        level: str = "INFO",
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """알림 전송

        Returns:
            전송 성공 여부
        """
        payload = self.build_payload(message, level, extra)
        try:
            client = await self._get_client()
            response = await client.post(self.webhook_url, json=payload)
        except httpx.TimeoutException:
            logger.error("Slack 알림 전송 타임아웃")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Slack 알림 전송 HTTP 에러: {e}")
            return False

        if response.status_code == 200:
            logger.debug("Slack 알림 전송 성공")
            return True

        logger.warning(
            "Slack 알림 전송 실패",
            extra={"status": response.status_code, "body": response.text[:200]},
        )
        return False

    def _format_timestamp(self) -> str:
        """현재 시간을 BDT로 포맷"""
        return to_local(now_utc()).strftime("%Y-%m-%d %H:%M:%S BDT")

    async def __aenter__(self) -> "SlackNotifier":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
