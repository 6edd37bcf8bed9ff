"""
HTTP 문서 저장소

REST 문서 API를 httpx로 호출하는 IRemoteStore 구현.

엔드포인트:
- GET    /{collection}        → 문서 목록 (JSON 배열 또는 {"documents": [...]})
- POST   /{collection}        → 문서 추가 (응답 {"id": ...})
- GET    /{collection}/{id}   → 문서 조회 (404 = 없음)
- PUT    /{collection}/{id}   → ID 지정 추가 (전체 교체)
- PATCH  /{collection}/{id}   → 부분 갱신
- DELETE /{collection}/{id}   → 삭제 (404 무시)

재시도 없음. httpx 타임아웃이 유일한 타임아웃.
"""

import logging
from typing import Any, Callable
from urllib.parse import quote

import httpx

from adapters.errors import RemoteStoreError
from adapters.interfaces import ChangeCallback, Document

logger = logging.getLogger(__name__)


class HttpRemoteStore:
    """REST 문서 저장소 클라이언트

    Args:
        base_url: API 베이스 URL (예: https://ledger.example.com/api/v1)
        api_token: Bearer 토큰 (선택)
        timeout: 요청 타임아웃 (초)
        transport: httpx 전송 계층 주입 (테스트용 MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url:
            raise ValueError("base_url은 필수입니다")
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._subscribers: dict[str, list[ChangeCallback]] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP 클라이언트 반환 (lazy initialization)"""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.api_token:
                headers["Authorization"] = f"Bearer {self.api_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """HTTP 클라이언트 종료"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpRemoteStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # IRemoteStore
    # -------------------------------------------------------------------------

    async def list_collection(self, name: str) -> list[Document]:
        response = await self._request("GET", _path(name), operation="list", collection=name)
        body = _json(response, "list", name)
        docs = body.get("documents") if isinstance(body, dict) else body
        if not isinstance(docs, list) or not all(isinstance(doc, dict) for doc in docs):
            raise RemoteStoreError("list failed: unexpected response body", "list", name)
        return [dict(doc) for doc in docs]

    async def get(self, name: str, doc_id: str) -> Document | None:
        response = await self._request(
            "GET", _path(name, doc_id), operation="get", collection=name, doc_id=doc_id, allow_404=True
        )
        if response.status_code == 404:
            return None
        body = _json(response, "get", name, doc_id)
        if not isinstance(body, dict):
            raise RemoteStoreError("get failed: unexpected response body", "get", name, doc_id)
        return {**body, "id": doc_id}

    async def add(self, name: str, fields: Document, doc_id: str | None = None) -> str:
        body = {k: v for k, v in fields.items() if k != "id"}
        if doc_id:
            await self._request("PUT", _path(name, doc_id), json=body, operation="add", collection=name, doc_id=doc_id)
            new_id = doc_id
        else:
            response = await self._request("POST", _path(name), json=body, operation="add", collection=name)
            reply = _json(response, "add", name)
            new_id = str(reply.get("id") or "") if isinstance(reply, dict) else ""
            if not new_id:
                raise RemoteStoreError("add response has no id", "add", name)
        await self._publish(name)
        return new_id

    async def update(self, name: str, doc_id: str, fields: Document) -> None:
        body = {k: v for k, v in fields.items() if k != "id"}
        await self._request("PATCH", _path(name, doc_id), json=body, operation="update", collection=name, doc_id=doc_id)
        await self._publish(name)

    async def delete(self, name: str, doc_id: str) -> None:
        await self._request(
            "DELETE", _path(name, doc_id), operation="delete", collection=name, doc_id=doc_id, allow_404=True
        )
        await self._publish(name)

    def subscribe(self, name: str, on_change: ChangeCallback) -> Callable[[], None]:
        """컬렉션 변경 구독

        서버 푸시는 지원하지 않으며, 이 클라이언트가 쓴 변경 후 목록을 다시 읽어 알림.
        """
        callbacks = self._subscribers.setdefault(name, [])
        callbacks.append(on_change)

        def unsubscribe() -> None:
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    # -------------------------------------------------------------------------
    # 내부
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        collection: str,
        doc_id: str | None = None,
        json: Any = None,
        allow_404: bool = False,
    ) -> httpx.Response:
        """API 요청 실행

        Raises:
            RemoteStoreError: 네트워크 오류, 타임아웃, 4xx/5xx 응답
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise RemoteStoreError(f"{operation} timed out", operation, collection, doc_id) from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{operation} failed: {e}", operation, collection, doc_id) from e

        if response.status_code == 404 and allow_404:
            return response
        if response.status_code >= 400:
            logger.warning(
                "Remote store request failed",
                extra={
                    "method": method,
                    "path": path,
                    "status": response.status_code,
                    "body": response.text[:200],
                },
            )
            raise RemoteStoreError(
                f"{operation} failed: HTTP {response.status_code}",
                operation,
                collection,
                doc_id,
            )
        return response

    async def _publish(self, name: str) -> None:
        if not self._subscribers.get(name):
            return
        try:
            docs = await self.list_collection(name)
        except RemoteStoreError as e:
            logger.warning(f"Subscriber refresh failed: {e}", extra={"collection": name})
            return
        for callback in list(self._subscribers.get(name, [])):
            callback(docs)


def _path(collection: str, doc_id: str | None = None) -> str:
    """컬렉션 이름/문서 ID → URL 경로 (세그먼트별 인코딩)"""
    segments = [quote(part, safe="") for part in collection.split("/") if part]
    if doc_id is not None:
        segments.append(quote(doc_id, safe=""))
    return "/" + "/".join(segments)


def _json(response: httpx.Response, operation: str, collection: str, doc_id: str | None = None) -> Any:
    """응답 본문 JSON 파싱 (JSON이 아니면 RemoteStoreError)"""
    try:
        return response.json()
    except ValueError as e:
        logger.warning(
            "Remote store returned non-JSON body",
            extra={"operation": operation, "collection": collection, "body": response.text[:200]},
        )
        raise RemoteStoreError(f"{operation} failed: invalid JSON response", operation, collection, doc_id) from e
