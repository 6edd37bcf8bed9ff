"""
원격 문서 저장소 어댑터

REST 문서 API(httpx) 연동.
"""

from adapters.remote.rest_store import HttpRemoteStore

__all__ = [
    "HttpRemoteStore",
]
