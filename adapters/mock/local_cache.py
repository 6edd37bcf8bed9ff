"""
Mock 로컬 캐시

테스트용 메모리 key-value 캐시.
ILocalCache Protocol 준수, 실패 주입 지원.
"""

import copy
import json
from typing import Any

from adapters.errors import CacheError


class InMemoryLocalCache:
    """Mock 로컬 캐시

    저장 시 JSON 직렬화를 거쳐 실제 캐시와 같은 제약(Decimal 불가 등)을 확인.

    Args:
        fail_reads: True면 모든 읽기 실패
        fail_writes: True면 모든 쓰기 실패
    """

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False):
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.data: dict[str, Any] = {}
        self.write_count = 0

    async def get(self, key: str) -> Any | None:
        if self.fail_reads:
            raise CacheError("Mock cache read failure", key)
        value = self.data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def put(self, key: str, blob: Any) -> None:
        if self.fail_writes:
            raise CacheError("Mock cache write failure", key)
        try:
            self.data[key] = json.loads(json.dumps(blob))
        except (TypeError, ValueError) as e:
            raise CacheError(f"cache value not serializable: {e}", key) from e
        self.write_count += 1

    async def delete(self, key: str) -> None:
        if self.fail_writes:
            raise CacheError("Mock cache delete failure", key)
        self.data.pop(key, None)
