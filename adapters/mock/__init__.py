"""
Mock 어댑터

테스트용 Mock 구현체 제공.
Protocol 준수하여 실제 구현체와 교체 가능.
"""

from adapters.mock.local_cache import InMemoryLocalCache
from adapters.mock.notifier import MockNotifier
from adapters.mock.remote_store import InMemoryRemoteStore, MockStoreState

__all__ = [
    "InMemoryLocalCache",
    "InMemoryRemoteStore",
    "MockNotifier",
    "MockStoreState",
]
