"""
어댑터 인터페이스 정의

Protocol 기반으로 정의하여 의존성 주입 및 Mock 교체 가능.
모든 구현체는 이 Protocol을 준수해야 함.

문서 값은 JSON 직렬화 가능한 평면 dict (Decimal은 문자열).
"""

from typing import Any, Callable, Protocol, runtime_checkable

Document = dict[str, Any]

# 컬렉션 변경 콜백 (변경 후 전체 문서 목록)
ChangeCallback = Callable[[list[Document]], None]


@runtime_checkable
class IRemoteStore(Protocol):
    """원격 문서 저장소 인터페이스 (권위 있는 원본)

    컬렉션 이름은 "customers" 또는 "customers/{id}/transactions" 형식.
    실패 시 adapters.errors.RemoteStoreError 발생.
    """

    async def list_collection(self, name: str) -> list[Document]:
        """컬렉션 전체 조회

        Returns:
            문서 목록 (각 문서에 "id" 포함, 등록 순서)
        """
        ...

    async def get(self, name: str, doc_id: str) -> Document | None:
        """문서 조회 (없으면 None, "id" 포함)"""
        ...

    async def add(self, name: str, fields: Document, doc_id: str | None = None) -> str:
        """문서 추가

        doc_id를 지정하면 같은 ID로 재전송해도 문서가 하나만 유지됨 (덮어쓰기).

        Returns:
            문서 ID
        """
        ...

    async def update(self, name: str, doc_id: str, fields: Document) -> None:
        """문서 부분 갱신 (없는 문서면 생성)"""
        ...

    async def delete(self, name: str, doc_id: str) -> None:
        """문서 삭제 (없는 문서면 무시)"""
        ...

    def subscribe(self, name: str, on_change: ChangeCallback) -> Callable[[], None]:
        """컬렉션 변경 구독

        Returns:
            구독 해제 함수
        """
        ...


@runtime_checkable
class ILocalCache(Protocol):
    """로컬 key-value 캐시 인터페이스

    값(blob)은 JSON 직렬화 가능한 객체.
    실패 시 adapters.errors.CacheError 발생.
    """

    async def get(self, key: str) -> Any | None:
        """값 조회 (없으면 None)"""
        ...

    async def put(self, key: str, blob: Any) -> None:
        """값 저장 (덮어쓰기)"""
        ...

    async def delete(self, key: str) -> None:
        """값 삭제"""
        ...


@runtime_checkable
class INotifier(Protocol):
    """알림 서비스 인터페이스

    원격 저장 실패(DEGRADED) 등 운영자 확인이 필요한 상황을 외부 서비스로 전송.
    """

    async def send(
        self,
        message: str,
        level: str = "INFO",
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """알림 전송

        Args:
            message: 알림 메시지
            level: 알림 레벨 (INFO, WARNING, ERROR, CRITICAL)
            extra: 추가 데이터 (선택)

        Returns:
            전송 성공 여부
        """
        ...
