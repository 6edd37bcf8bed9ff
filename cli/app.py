"""
헤드리스 CLI

각 명령은 JSON 객체 하나를 stdout에 출력 (로그는 stderr).

종료 코드:
- 0: 성공 (DEGRADED 포함, 로컬 반영 완료)
- 1: 거부 (검증 실패, 잔액 부족, 없는 계정 등)
- 2: 사용법 오류 (인자 오류, 설정 파일 오류)

사용 예:
    python -m cli create-account bank --name "City Bank" --initial-balance 100
    python -m cli post-entry bank acc-... withdraw --amount 150
    python -m cli dual-post-order --customer acc-... --supplier acc-... \\
        --rmb 1000 --customer-rate 16.5 --supplier-rate 7.2
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from adapters.factory import open_runtime
from core.config.loader import SettingsLoadError, load_settings
from core.domain.state_machines import MutationState
from core.ledger.errors import LedgerError
from core.ledger.pipeline import MutationResult
from core.ledger.records import account_view, dec_str, entry_view
from core.ledger.service import LedgerService
from core.logging import setup_logging
from core.types import AccountKind

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_USAGE = 2

KINDS = [kind.value for kind in AccountKind]


class UsageError(Exception):
    """CLI 인자 오류 (종료 코드 2)"""

    pass


def parse_fields(pairs: list[str] | None) -> dict[str, str]:
    """--field KEY=VALUE 목록 → dict

    Raises:
        UsageError: '=' 없는 항목
    """
    fields: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise UsageError(f"--field는 KEY=VALUE 형식이어야 합니다: {pair!r}")
        fields[key.strip()] = value
    return fields


def _entry_fields(args: argparse.Namespace) -> dict[str, Any]:
    fields: dict[str, Any] = parse_fields(args.field)
    for name in ("amount", "rate", "description", "date"):
        value = getattr(args, name, None)
        if value is not None:
            fields[name] = value
    return fields


def _add_entry_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--field", action="append", metavar="KEY=VALUE", help="입력 필드 (반복 가능)")
    parser.add_argument("--amount", help="금액 (amount)")
    parser.add_argument("--rate", help="환율 (rate)")
    parser.add_argument("--description", help="메모")
    parser.add_argument("--date", help="거래 일자 YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rmb-ledger", description="RMB Ledger CLI")
    parser.add_argument("--config", type=Path, default=None, help="settings.yaml 경로")
    parser.add_argument("--log-level", default=None, help="콘솔 로그 레벨 (기본: 설정값)")
    parser.add_argument("--no-log-file", action="store_true", help="파일 로그 비활성화")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-account", help="계정 생성")
    p.add_argument("kind", choices=KINDS)
    p.add_argument("--name", required=True)
    p.add_argument("--contact", default="")
    p.add_argument("--initial-balance", default="0")
    p.add_argument("--supplier-type", choices=["RMB", "USDT"], default=None)

    p = sub.add_parser("update-account", help="계정 이름/연락처 수정")
    p.add_argument("kind", choices=KINDS)
    p.add_argument("account_id")
    p.add_argument("--name")
    p.add_argument("--contact")

    p = sub.add_parser("delete-account", help="계정 삭제")
    p.add_argument("kind", choices=KINDS)
    p.add_argument("account_id")

    p = sub.add_parser("list-accounts", help="계정 목록")
    p.add_argument("kind", choices=KINDS)

    p = sub.add_parser("post-entry", help="거래 기록")
    p.add_argument("kind", choices=KINDS)
    p.add_argument("account_id")
    p.add_argument("type")
    _add_entry_options(p)

    p = sub.add_parser("edit-entry", help="거래 수정")
    p.add_argument("kind", choices=KINDS)
    p.add_argument("account_id")
    p.add_argument("entry_id")
    _add_entry_options(p)

    p = sub.add_parser("delete-entry", help="거래 삭제")
    p.add_argument("kind", choices=KINDS)
    p.add_argument("account_id")
    p.add_argument("entry_id")

    p = sub.add_parser("dual-post-order", help="주문 (customer order + supplier bill)")
    p.add_argument("--customer", required=True)
    p.add_argument("--supplier", required=True)
    p.add_argument("--rmb", required=True)
    p.add_argument("--customer-rate", required=True)
    p.add_argument("--supplier-rate", required=True)
    p.add_argument("--notes", default="")
    p.add_argument("--date", default=None)

    p = sub.add_parser("dual-post-payment", help="결제 수령 (bank credit + customer payment)")
    p.add_argument("--customer", required=True)
    p.add_argument("--bank", required=True)
    p.add_argument("--amount", required=True)
    p.add_argument("--notes", default="")
    p.add_argument("--date", default=None)

    p = sub.add_parser("get-balance", help="잔액 조회")
    p.add_argument("kind", choices=KINDS)
    p.add_argument("account_id")

    p = sub.add_parser("list-entries", help="거래 목록")
    p.add_argument("kind", choices=KINDS)
    p.add_argument("account_id")

    p = sub.add_parser("refresh", help="미전송 쓰기 재전송 + 원격 재조정")
    p.add_argument("--kind", choices=KINDS, default=None)

    p = sub.add_parser("dashboard", help="순자산 요약")
    p.add_argument("--usd-rate", default=None)

    return parser


def _mutation_output(result: MutationResult) -> tuple[dict[str, Any], int]:
    code = EXIT_REJECTED if result.state == MutationState.REJECTED else EXIT_OK
    return result.to_dict(), code


async def execute(args: argparse.Namespace, service: LedgerService) -> tuple[dict[str, Any], int]:
    """명령 실행

    Returns:
        (출력 JSON 객체, 종료 코드)

    Raises:
        UsageError: 인자 오류
    """
    command = args.command
    try:
        if command == "create-account":
            return _mutation_output(await service.create_account(
                args.kind,
                args.name,
                contact=args.contact,
                initial_balance=args.initial_balance,
                supplier_type=args.supplier_type,
            ))
        if command == "update-account":
            return _mutation_output(await service.update_account(
                args.kind, args.account_id, name=args.name, contact=args.contact,
            ))
        if command == "delete-account":
            return _mutation_output(await service.delete_account(args.kind, args.account_id))
        if command == "list-accounts":
            accounts = await service.list_accounts(args.kind)
            return {"kind": args.kind, "accounts": [account_view(a) for a in accounts]}, EXIT_OK
        if command == "post-entry":
            return _mutation_output(await service.post_entry(
                args.kind, args.account_id, args.type, _entry_fields(args),
            ))
        if command == "edit-entry":
            fields = _entry_fields(args)
            if not fields:
                raise UsageError("수정할 필드가 없습니다 (--field KEY=VALUE)")
            return _mutation_output(await service.edit_entry(
                args.kind, args.account_id, args.entry_id, fields,
            ))
        if command == "delete-entry":
            return _mutation_output(await service.delete_entry(args.kind, args.account_id, args.entry_id))
        if command == "dual-post-order":
            return _mutation_output(await service.create_order(
                args.customer,
                args.supplier,
                args.rmb,
                args.customer_rate,
                args.supplier_rate,
                notes=args.notes,
                date=args.date,
            ))
        if command == "dual-post-payment":
            return _mutation_output(await service.receive_payment(
                args.customer, args.bank, args.amount, notes=args.notes, date=args.date,
            ))
        if command == "get-balance":
            account = await service.get_account(args.kind, args.account_id)
            return {
                "kind": args.kind,
                "account_id": args.account_id,
                "balance": dec_str(account.balance),
                "balance_display": account_view(account)["balance_display"],
                "currency": account.currency,
            }, EXIT_OK
        if command == "list-entries":
            entries = await service.list_entries(args.kind, args.account_id)
            return {
                "kind": args.kind,
                "account_id": args.account_id,
                "entries": [entry_view(e) for e in entries],
            }, EXIT_OK
        if command == "refresh":
            report = await service.refresh(args.kind)
            return report.to_dict(), EXIT_OK
        if command == "dashboard":
            summary = await service.dashboard(args.usd_rate)
            return summary.to_dict(), EXIT_OK
    except LedgerError as e:
        logger.info(f"Command rejected: {e.message}", extra={"command": command, "code": e.code})
        return {"error": e.to_dict()}, EXIT_REJECTED

    raise UsageError(f"알 수 없는 명령: {command}")


def _emit(payload: dict[str, Any], out: TextIO) -> None:
    out.write(json.dumps(payload, ensure_ascii=False, indent=2))
    out.write("\n")


async def _run(args: argparse.Namespace, out: TextIO) -> int:
    try:
        settings = load_settings(args.config)
    except SettingsLoadError as e:
        _emit({"error": {"code": "ConfigError", "message": str(e), "details": {}}}, out)
        return EXIT_USAGE

    level = (args.log_level or settings.log_level).upper()
    setup_logging(
        "cli",
        console_level=logging.getLevelName(level),
        stream=sys.stderr,
        log_to_file=not args.no_log_file,
    )

    async with open_runtime(settings) as service:
        try:
            payload, code = await execute(args, service)
        except UsageError as e:
            _emit({"error": {"code": "UsageError", "message": str(e), "details": {}}}, out)
            return EXIT_USAGE
    _emit(payload, out)
    return code


def main(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    """CLI 진입점

    Returns:
        종료 코드
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse 사용법 오류 (--help는 0)
        return int(e.code or 0)
    return asyncio.run(_run(args, out or sys.stdout))
