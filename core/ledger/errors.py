"""
Ledger 에러 정의

모든 에러는 요청 단위로 복구 가능 (프로세스 종료 없음).
code는 CLI/Web 응답의 구조화된 에러 코드로 사용.
"""

from typing import Any


class LedgerError(Exception):
    """Ledger 에러 기본 클래스

    Args:
        message: 에러 메시지
        **details: 추가 컨텍스트 (account_id, entry_id 등)
    """

    code: str = "LedgerError"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """구조화된 에러 (응답용)"""
        return {
            "code": self.code,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()},
        }


class ValidationError(LedgerError):
    """필수 필드 누락 / 숫자가 아닌 값 / 알 수 없는 거래 유형"""

    code = "ValidationError"


class InsufficientBalance(LedgerError):
    """bank/wallet 출금 시 잔액 부족"""

    code = "InsufficientBalance"


class InvalidRate(LedgerError):
    """나눗셈이 필요한 곳의 0 이하 환율"""

    code = "InvalidRate"


class AccountNotFound(LedgerError):
    """존재하지 않는 계정"""

    code = "AccountNotFound"


class EntryNotFound(LedgerError):
    """존재하지 않는 거래"""

    code = "EntryNotFound"


class RemoteWriteFailure(LedgerError):
    """로컬 반영 후 원격 저장 실패

    경고로만 전달됨. 로컬/캐시 상태는 유지되고 미전송 쓰기는 outbox에 보관.
    """

    code = "RemoteWriteFailure"


class LinkedEntryMissing(LedgerError):
    """연쇄 삭제 시 연결된 상대 거래를 찾지 못함

    로그만 남기고 원래 거래 삭제는 계속 진행.
    """

    code = "LinkedEntryMissing"
