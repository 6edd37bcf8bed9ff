"""
Mock 원격 저장소

테스트용 메모리 문서 저장소.
IRemoteStore Protocol 준수, 실패 주입 지원.
"""

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from adapters.errors import RemoteStoreError
from adapters.interfaces import ChangeCallback, Document

WRITE_OPERATIONS: frozenset[str] = frozenset({"add", "update", "delete"})


@dataclass
class RemoteCall:
    """호출 기록"""

    operation: str
    collection: str
    doc_id: str | None = None
    fields: dict[str, Any] | None = None
    succeeded: bool = True


@dataclass
class MockStoreState:
    """Mock 상태 (메모리 내 저장)"""

    # collection -> {doc_id: fields} (dict 순서 = 등록 순서)
    collections: dict[str, dict[str, Document]] = field(default_factory=dict)

    # 시뮬레이션 옵션
    fail_reads: bool = False
    fail_writes: bool = False
    # 남은 성공 쓰기 횟수 (0이 되면 이후 쓰기 실패, None이면 제한 없음)
    writes_before_failure: int | None = None
    # 특정 컬렉션 쓰기만 실패
    fail_collections: set[str] = field(default_factory=set)


class InMemoryRemoteStore:
    """Mock 원격 저장소

    사용 예시:
    ```python
    store = InMemoryRemoteStore()

    store.fail_writes_after(1)  # 첫 쓰기만 성공
    ...
    store.heal()                # 이후 모든 쓰기 성공
    ```
    """

    def __init__(self, state: MockStoreState | None = None):
        self.state = state or MockStoreState()
        self.calls: list[RemoteCall] = []
        self._subscribers: dict[str, list[ChangeCallback]] = {}

    # -------------------------------------------------------------------------
    # IRemoteStore
    # -------------------------------------------------------------------------

    async def list_collection(self, name: str) -> list[Document]:
        self._check_read("list", name)
        docs = self.state.collections.get(name, {})
        return [{**copy.deepcopy(fields), "id": doc_id} for doc_id, fields in docs.items()]

    async def get(self, name: str, doc_id: str) -> Document | None:
        self._check_read("get", name, doc_id)
        fields = self.state.collections.get(name, {}).get(doc_id)
        if fields is None:
            return None
        return {**copy.deepcopy(fields), "id": doc_id}

    async def add(self, name: str, fields: Document, doc_id: str | None = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        self._check_write("add", name, doc_id, fields)
        clean = {k: v for k, v in copy.deepcopy(fields).items() if k != "id"}
        self.state.collections.setdefault(name, {})[doc_id] = clean
        self._publish(name)
        return doc_id

    async def update(self, name: str, doc_id: str, fields: Document) -> None:
        self._check_write("update", name, doc_id, fields)
        docs = self.state.collections.setdefault(name, {})
        current = docs.get(doc_id, {})
        current.update({k: v for k, v in copy.deepcopy(fields).items() if k != "id"})
        docs[doc_id] = current
        self._publish(name)

    async def delete(self, name: str, doc_id: str) -> None:
        self._check_write("delete", name, doc_id, None)
        self.state.collections.get(name, {}).pop(doc_id, None)
        self._publish(name)

    def subscribe(self, name: str, on_change: ChangeCallback) -> Callable[[], None]:
        callbacks = self._subscribers.setdefault(name, [])
        callbacks.append(on_change)

        def unsubscribe() -> None:
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    # -------------------------------------------------------------------------
    # 실패 주입
    # -------------------------------------------------------------------------

    def fail_all_writes(self) -> None:
        """이후 모든 쓰기 실패"""
        self.state.fail_writes = True

    def fail_writes_after(self, successes: int) -> None:
        """successes 번 성공 후 쓰기 실패"""
        self.state.writes_before_failure = successes

    def fail_reads(self, enabled: bool = True) -> None:
        """읽기 실패 설정"""
        self.state.fail_reads = enabled

    def heal(self) -> None:
        """모든 실패 주입 해제"""
        self.state.fail_reads = False
        self.state.fail_writes = False
        self.state.writes_before_failure = None
        self.state.fail_collections.clear()

    def _check_read(self, operation: str, name: str, doc_id: str | None = None) -> None:
        if self.state.fail_reads:
            self.calls.append(RemoteCall(operation, name, doc_id, succeeded=False))
            raise RemoteStoreError("Mock read failure", operation, name, doc_id)
        self.calls.append(RemoteCall(operation, name, doc_id))

    def _check_write(self, operation: str, name: str, doc_id: str | None, fields: Document | None) -> None:
        failed = self.state.fail_writes or name in self.state.fail_collections
        if not failed and self.state.writes_before_failure is not None:
            if self.state.writes_before_failure <= 0:
                failed = True
            else:
                self.state.writes_before_failure -= 1

        self.calls.append(RemoteCall(operation, name, doc_id, copy.deepcopy(fields), succeeded=not failed))
        if failed:
            raise RemoteStoreError("Mock write failure", operation, name, doc_id)

    def _publish(self, name: str) -> None:
        callbacks = self._subscribers.get(name, [])
        if not callbacks:
            return
        docs = [{**copy.deepcopy(f), "id": i} for i, f in self.state.collections.get(name, {}).items()]
        for callback in list(callbacks):
            callback(docs)

    # -------------------------------------------------------------------------
    # 테스트 헬퍼 메서드
    # -------------------------------------------------------------------------

    def document(self, name: str, doc_id: str) -> Document | None:
        """저장된 문서 직접 조회 (호출 기록 없음)"""
        fields = self.state.collections.get(name, {}).get(doc_id)
        return copy.deepcopy(fields) if fields is not None else None

    def put_document(self, name: str, doc_id: str, fields: Document) -> None:
        """문서 직접 저장 (다른 기기의 쓰기 시뮬레이션)"""
        self.state.collections.setdefault(name, {})[doc_id] = copy.deepcopy(fields)

    @property
    def write_calls(self) -> list[RemoteCall]:
        """쓰기 호출 기록"""
        return [c for c in self.calls if c.operation in WRITE_OPERATIONS]

    @property
    def failed_writes(self) -> list[RemoteCall]:
        """실패한 쓰기 호출 기록"""
        return [c for c in self.write_calls if not c.succeeded]
