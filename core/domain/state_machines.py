"""
State Machines

잔액 변경 요청(Mutation)의 상태 전이 관리.
검증 → 로컬 반영 → 원격 저장 → 캐시 저장 순서를 명시적 상태로 표현.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class StateMachineError(Exception):
    """상태 전이 오류"""
    pass


class MutationState(str, Enum):
    """Mutation 상태

    전이 규칙:
    - PENDING → VALIDATING: 계정 잠금 획득 후 검증 시작
    - VALIDATING → APPLYING: 검증 통과
    - VALIDATING → REJECTED: 검증 실패 (변경 없음)
    - APPLYING → PERSISTING_REMOTE: 로컬 잔액/거래 반영 완료
    - APPLYING → REJECTED: 로컬 반영 직전 거부 (변경 없음)
    - PERSISTING_REMOTE → PERSISTING_CACHE: 원격 저장 성공
    - PERSISTING_REMOTE → DEGRADED: 원격 저장 실패 (로컬 상태 유지, outbox 보관)
    - PERSISTING_CACHE → COMMITTED: 캐시 저장 완료 (캐시 실패도 경고와 함께 COMMITTED)
    """
    PENDING = "PENDING"
    VALIDATING = "VALIDATING"
    APPLYING = "APPLYING"
    PERSISTING_REMOTE = "PERSISTING_REMOTE"
    PERSISTING_CACHE = "PERSISTING_CACHE"
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"
    DEGRADED = "DEGRADED"


class StateMachine:
    """상태 머신 기본 클래스

    Args:
        initial_state: 초기 상태
        transitions: 허용된 전이 정의 {from_state: [to_states]}
        name: 머신 이름 (로깅용)
    """

    def __init__(
        self,
        initial_state: str | Enum,
        transitions: dict[str, list[str]],
        name: str = "StateMachine",
    ):
        self._state = initial_state.value if isinstance(initial_state, Enum) else initial_state
        self._transitions = transitions
        self._name = name
        self._history: list[tuple[str, str]] = []

    @property
    def state(self) -> str:
        """현재 상태"""
        return self._state

    def can_transition(self, to_state: str | Enum) -> bool:
        """전이 가능 여부 확인"""
        target = to_state.value if isinstance(to_state, Enum) else to_state
        return target in self._transitions.get(self._state, [])

    def transition(self, to_state: str | Enum) -> str:
        """상태 전이

        Args:
            to_state: 목표 상태

        Returns:
            새 상태

        Raises:
            StateMachineError: 허용되지 않은 전이
        """
        target = to_state.value if isinstance(to_state, Enum) else to_state

        if not self.can_transition(target):
            allowed = self._transitions.get(self._state, [])
            raise StateMachineError(
                f"{self._name}: Cannot transition from {self._state} to {target}. "
                f"Allowed: {allowed}"
            )

        old_state = self._state
        self._state = target
        self._history.append((old_state, target))

        logger.debug(f"{self._name}: {old_state} → {target}")

        return target

    @property
    def history(self) -> list[tuple[str, str]]:
        """상태 전이 이력"""
        return self._history.copy()


class MutationStateMachine(StateMachine):
    """Mutation 상태 머신

    Args:
        mutation_id: 로깅용 식별자
    """

    TRANSITIONS: dict[str, list[str]] = {
        "PENDING": ["VALIDATING"],
        "VALIDATING": ["APPLYING", "REJECTED"],
        "APPLYING": ["PERSISTING_REMOTE", "REJECTED"],
        "PERSISTING_REMOTE": ["PERSISTING_CACHE", "DEGRADED"],
        "PERSISTING_CACHE": ["COMMITTED"],
    }

    TERMINAL_STATES: frozenset[str] = frozenset({"COMMITTED", "REJECTED", "DEGRADED"})

    def __init__(
        self,
        initial_state: str | MutationState = MutationState.PENDING,
        mutation_id: str = "",
    ):
        name = f"MutationStateMachine[{mutation_id}]" if mutation_id else "MutationStateMachine"
        super().__init__(
            initial_state=initial_state,
            transitions=self.TRANSITIONS,
            name=name,
        )

    @property
    def is_terminal(self) -> bool:
        """종료 상태 여부"""
        return self._state in self.TERMINAL_STATES

    @property
    def is_success(self) -> bool:
        """로컬 반영 완료 여부 (COMMITTED 또는 DEGRADED)"""
        return self._state in ("COMMITTED", "DEGRADED")

    @property
    def has_local_effect(self) -> bool:
        """로컬 상태가 변경되었는지 여부"""
        return self._state in ("PERSISTING_REMOTE", "PERSISTING_CACHE", "COMMITTED", "DEGRADED")
