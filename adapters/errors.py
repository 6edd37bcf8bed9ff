"""
어댑터 에러 정의

저장소 구현체(SQLite, HTTP, Mock)는 자신의 예외를 이 에러로 감싸서 발생.
SyncLayer가 이를 RemoteWriteFailure / 캐시 경고로 변환.
"""


class AdapterError(Exception):
    """어댑터 에러 기본 클래스"""
    pass


class RemoteStoreError(AdapterError):
    """원격 저장소 읽기/쓰기 실패

    Args:
        message: 에러 메시지
        operation: 실패한 작업 (list, get, add, update, delete)
        collection: 대상 컬렉션
        doc_id: 대상 문서 ID
    """

    def __init__(
        self,
        message: str,
        operation: str = "",
        collection: str = "",
        doc_id: str | None = None,
    ):
        self.operation = operation
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(message)


class CacheError(AdapterError):
    """로컬 캐시 읽기/쓰기 실패

    Args:
        message: 에러 메시지
        key: 대상 키
    """

    def __init__(self, message: str, key: str = ""):
        self.key = key
        super().__init__(message)
