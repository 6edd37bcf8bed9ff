"""
API 라우트 패키지

각 기능별 라우터 모듈:
- health: 헬스 체크
- accounts: 계정 관리, 잔액 조회
- entries: 단일 계정 거래 기록/수정/삭제
- postings: 이중 기입 (주문, 결제 수령)
- sync: refresh, 미전송 쓰기 조회
- dashboard: 순자산 요약
"""
