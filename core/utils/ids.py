"""
ID 유틸리티

거래/계정 ID는 클라이언트에서 쓰기 전에 생성.
이중 기입 시 양쪽 linked_entry_id를 원격 저장 전에 확정하고,
같은 ID로 재전송(outbox 재시도)해도 문서가 중복되지 않도록 함.

규칙: {prefix}-{uuid4 hex}
"""

import uuid

ENTRY_PREFIX: str = "tx"
ACCOUNT_PREFIX: str = "acc"
MUTATION_PREFIX: str = "mut"


def _make_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def new_entry_id() -> str:
    """거래 ID 생성

    Example:
        >>> new_entry_id()
        'tx-9f1c2b7e4a0d4d1f8e3b6c5a2d1e0f9a'
    """
    return _make_id(ENTRY_PREFIX)


def new_account_id() -> str:
    """계정 ID 생성"""
    return _make_id(ACCOUNT_PREFIX)


def new_mutation_id() -> str:
    """Mutation ID 생성 (로깅/결과 추적용)"""
    return _make_id(MUTATION_PREFIX)


def has_prefix(value: str, prefix: str) -> bool:
    """ID가 주어진 접두사로 생성되었는지 확인

    원본 앱에서 옮겨온 문서는 접두사 없는 ID를 가질 수 있음.

    Args:
        value: 검사할 ID
        prefix: 접두사 (ENTRY_PREFIX 등)

    Returns:
        접두사 일치 및 접두사 뒤 내용 존재 여부
    """
    if not value:
        return False
    head = f"{prefix}-"
    return value.startswith(head) and len(value) > len(head)
