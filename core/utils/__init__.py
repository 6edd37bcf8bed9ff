"""
유틸리티 패키지

ID 생성, 타임존 처리 등 공통 유틸리티
"""

from core.utils.ids import new_account_id, new_entry_id, new_mutation_id
from core.utils.timezone import (
    BDT_TZ,
    is_valid_date,
    now_utc,
    parse_iso,
    to_iso,
    to_local,
    today_str,
)

__all__ = [
    "new_account_id",
    "new_entry_id",
    "new_mutation_id",
    "BDT_TZ",
    "is_valid_date",
    "now_utc",
    "parse_iso",
    "to_iso",
    "to_local",
    "today_str",
]
