"""
HTTP 문서 저장소 테스트

httpx.MockTransport로 REST 엔드포인트를 흉내내어
HttpRemoteStore의 요청 형식, 응답 처리, 에러 변환 테스트
"""

import json
from decimal import Decimal

import httpx
import pytest

from adapters.errors import RemoteStoreError
from adapters.mock.local_cache import InMemoryLocalCache
from adapters.remote.rest_store import HttpRemoteStore, _path
from core.ledger.entry import Account
from core.ledger.sync import DataSource, SyncLayer
from core.types import AccountKind

BASE_URL = "https://ledger.example.com/api/v1"


class FakeDocumentApi:
    """메모리 문서 API (MockTransport 핸들러)"""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_status: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, text="server error")

        path = request.url.path.removeprefix("/api/v1/")
        parts = path.split("/")
        # 짝수 세그먼트 = 문서 경로, 홀수 = 컬렉션 경로
        if len(parts) % 2 == 0:
            collection, doc_id = "/".join(parts[:-1]), parts[-1]
        else:
            collection, doc_id = "/".join(parts), None
        docs = self.collections.setdefault(collection, {})

        if request.method == "GET" and doc_id is None:
            return httpx.Response(200, json=[{**v, "id": k} for k, v in docs.items()])
        if request.method == "GET":
            if doc_id not in docs:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=docs[doc_id])
        if request.method == "POST":
            new_id = f"gen-{len(docs) + 1}"
            docs[new_id] = json.loads(request.content)
            return httpx.Response(201, json={"id": new_id})
        if request.method == "PUT":
            docs[doc_id] = json.loads(request.content)
            return httpx.Response(200, json={"id": doc_id})
        if request.method == "PATCH":
            docs.setdefault(doc_id, {}).update(json.loads(request.content))
            return httpx.Response(200, json={"id": doc_id})
        if request.method == "DELETE":
            if docs.pop(doc_id, None) is None:
                return httpx.Response(404)
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def api() -> FakeDocumentApi:
    return FakeDocumentApi()


@pytest.fixture
def store(api: FakeDocumentApi) -> HttpRemoteStore:
    return HttpRemoteStore(BASE_URL, api_token="secret", transport=httpx.MockTransport(api.handler))


class TestPath:
    """URL 경로 구성"""

    def test_collection(self) -> None:
        assert _path("customers") == "/customers"

    def test_subcollection_document(self) -> None:
        assert _path("customers/c1/transactions", "tx-1") == "/customers/c1/transactions/tx-1"

    def test_segments_quoted(self) -> None:
        assert _path("banks", "a/b c") == "/banks/a%2Fb%20c"


class TestHttpRemoteStore:
    """HttpRemoteStore 테스트"""

    def test_base_url_required(self) -> None:
        with pytest.raises(ValueError):
            HttpRemoteStore("")

    @pytest.mark.asyncio
    async def test_add_with_id_uses_put(self, store: HttpRemoteStore, api: FakeDocumentApi) -> None:
        doc_id = await store.add("banks", {"name": "City Bank", "balance": "100", "id": "x"}, doc_id="b1")

        request = api.requests[-1]
        assert doc_id == "b1"
        assert request.method == "PUT"
        assert request.url.path == "/api/v1/banks/b1"
        assert request.headers["Authorization"] == "Bearer secret"
        assert json.loads(request.content) == {"name": "City Bank", "balance": "100"}

    @pytest.mark.asyncio
    async def test_add_without_id_uses_post(self, store: HttpRemoteStore, api: FakeDocumentApi) -> None:
        doc_id = await store.add("banks", {"name": "City Bank"})

        assert doc_id == "gen-1"
        assert api.requests[-1].method == "POST"

    @pytest.mark.asyncio
    async def test_update_and_get(self, store: HttpRemoteStore, api: FakeDocumentApi) -> None:
        await store.add("banks", {"name": "City Bank", "balance": "100"}, doc_id="b1")

        await store.update("banks", "b1", {"balance": "150"})

        assert api.requests[-1].method == "PATCH"
        assert await store.get("banks", "b1") == {"name": "City Bank", "balance": "150", "id": "b1"}

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: HttpRemoteStore) -> None:
        assert await store.get("banks", "nope") is None

    @pytest.mark.asyncio
    async def test_list_array_response(self, store: HttpRemoteStore) -> None:
        await store.add("customers/c1/transactions", {"type": "order"}, doc_id="tx-1")

        docs = await store.list_collection("customers/c1/transactions")
        assert docs == [{"type": "order", "id": "tx-1"}]

    @pytest.mark.asyncio
    async def test_list_wrapped_response(self) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"documents": [{"id": "b1", "name": "A"}]})
        )
        store = HttpRemoteStore(BASE_URL, transport=transport)

        assert await store.list_collection("banks") == [{"id": "b1", "name": "A"}]
        await store.close()

    @pytest.mark.asyncio
    async def test_delete_tolerates_404(self, store: HttpRemoteStore) -> None:
        await store.add("banks", {"name": "A"}, doc_id="b1")

        await store.delete("banks", "b1")
        await store.delete("banks", "b1")

        assert await store.list_collection("banks") == []

    @pytest.mark.asyncio
    async def test_server_error_wrapped(self, store: HttpRemoteStore, api: FakeDocumentApi) -> None:
        api.fail_status = 503

        with pytest.raises(RemoteStoreError) as exc_info:
            await store.update("banks", "b1", {"balance": "1"})

        assert exc_info.value.operation == "update"
        assert exc_info.value.collection == "banks"
        assert exc_info.value.doc_id == "b1"
        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        store = HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(handler))

        with pytest.raises(RemoteStoreError, match="list failed"):
            await store.list_collection("banks")

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        store = HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(handler))

        with pytest.raises(RemoteStoreError, match="timed out"):
            await store.add("banks", {"name": "A"}, doc_id="b1")

    @pytest.mark.asyncio
    async def test_post_without_id_in_response(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(201, json={}))
        store = HttpRemoteStore(BASE_URL, transport=transport)

        with pytest.raises(RemoteStoreError, match="no id"):
            await store.add("banks", {"name": "A"})

    @pytest.mark.asyncio
    async def test_subscribe_after_own_write(self, store: HttpRemoteStore) -> None:
        seen: list[list[str]] = []
        store.subscribe("banks", lambda docs: seen.append([d["id"] for d in docs]))

        await store.add("banks", {"name": "A"}, doc_id="b1")

        assert seen == [["b1"]]

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self, api: FakeDocumentApi) -> None:
        async with HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(api.handler)) as store:
            await store.list_collection("banks")
            client = store._client

        assert client.is_closed


def captive_portal(request: httpx.Request) -> httpx.Response:
    """JSON이 아닌 200 응답 (프록시/캡티브 포털)"""
    return httpx.Response(200, text="<html>captive portal</html>")


class TestMalformedResponses:
    """JSON이 아니거나 형식이 다른 응답"""

    @pytest.mark.asyncio
    async def test_list_non_json(self) -> None:
        store = HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(captive_portal))

        with pytest.raises(RemoteStoreError, match="invalid JSON") as exc_info:
            await store.list_collection("banks")
        assert exc_info.value.operation == "list"
        assert exc_info.value.collection == "banks"

    @pytest.mark.asyncio
    async def test_get_non_json(self) -> None:
        store = HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(captive_portal))

        with pytest.raises(RemoteStoreError) as exc_info:
            await store.get("banks", "b1")
        assert exc_info.value.operation == "get"
        assert exc_info.value.doc_id == "b1"

    @pytest.mark.asyncio
    async def test_post_non_json(self) -> None:
        store = HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(captive_portal))

        with pytest.raises(RemoteStoreError, match="add failed"):
            await store.add("banks", {"name": "A"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"error": "nope"}, "text", [1, 2], {"documents": "x"}])
    async def test_list_unexpected_shape(self, body) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        store = HttpRemoteStore(BASE_URL, transport=transport)

        with pytest.raises(RemoteStoreError, match="unexpected response body"):
            await store.list_collection("banks")

    @pytest.mark.asyncio
    async def test_get_unexpected_shape(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["b1"]))
        store = HttpRemoteStore(BASE_URL, transport=transport)

        with pytest.raises(RemoteStoreError, match="unexpected response body"):
            await store.get("banks", "b1")

    @pytest.mark.asyncio
    async def test_sync_falls_back_to_cache(self) -> None:
        """JSON이 아닌 응답이면 SyncLayer는 캐시 사용"""
        store = HttpRemoteStore(BASE_URL, transport=httpx.MockTransport(captive_portal))
        sync = SyncLayer(store, InMemoryLocalCache())
        cached = Account("b1", AccountKind.BANK, "City Bank", balance=Decimal("500"), initial_balance=Decimal("500"))
        await sync.mirror_accounts(AccountKind.BANK, [cached])

        accounts, source = await sync.load_accounts(AccountKind.BANK)

        assert source == DataSource.CACHE
        assert [a.account_id for a in accounts] == ["b1"]
        assert accounts[0].balance == Decimal("500")
