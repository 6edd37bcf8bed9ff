"""
데이터베이스 어댑터

SQLite WAL 모드 연결 관리, 문서 저장소, 로컬 캐시.
"""

from adapters.db.document_store import SQLiteDocumentStore
from adapters.db.local_cache import SQLiteLocalCache
from adapters.db.sqlite_adapter import (
    SQLiteAdapter,
    create_connection,
    get_db_path,
    init_schema,
)

__all__ = [
    "SQLiteAdapter",
    "SQLiteDocumentStore",
    "SQLiteLocalCache",
    "create_connection",
    "get_db_path",
    "init_schema",
]
