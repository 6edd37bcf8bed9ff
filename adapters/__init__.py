"""
어댑터 레이어

외부 서비스(원격 문서 저장소, 로컬 캐시, 알림)와의 연동을 담당.
Protocol 기반 인터페이스로 Mock 교체 가능.
"""

from adapters.errors import AdapterError, CacheError, RemoteStoreError
from adapters.interfaces import (
    ILocalCache,
    INotifier,
    IRemoteStore,
)

__all__ = [
    # Interfaces
    "IRemoteStore",
    "ILocalCache",
    "INotifier",
    # Errors
    "AdapterError",
    "RemoteStoreError",
    "CacheError",
]
