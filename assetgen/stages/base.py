"""
Stage Handler Base

모든 스테이지는 타입 입력 → 타입 출력 함수입니다.
Dispatcher가 StageContext를 만들어 전달하며, 스테이지는 서로를 직접 호출하지 않습니다.
"""

import uuid
from dataclasses import dataclass
from typing import ClassVar, Optional, Type

from pydantic import BaseModel

from assetgen.errors import JobCancelled
from assetgen.jobs.store import JobStore


@dataclass
class StageContext:
    """단일 작업 실행 컨텍스트 (워커 전용)"""
    job_id: str
    store: Optional[JobStore] = None
    cost: float = 0.0

    def check_cancelled(self):
        """
        협조적 취소 확인. 알고리즘 단계 사이에서 호출합니다.

        Raises:
            JobCancelled: 취소(또는 타임아웃)가 요청된 경우
        """
        if self.store is not None and self.store.is_cancel_requested(self.job_id):
            raise JobCancelled(f"job {self.job_id} aborted between steps")

    def add_cost(self, amount: float = 1.0):
        """외부 API 호출 비용 누적 (jobs.cost_actual)"""
        self.cost += amount


def new_artifact_id() -> str:
    return uuid.uuid4().hex


class StageHandler:
    """
    스테이지 핸들러 기본 클래스

    Subclasses:
        input_model: 입력 Pydantic 모델
        run(ctx, payload): 출력 Pydantic 모델 반환
        validate(payload): 부작용 전 추가 검증 (enqueue 시점)
    """
    input_model: ClassVar[Type[BaseModel]]
    name: ClassVar[str] = "stage"

    def validate(self, payload: BaseModel):
        pass

    async def run(self, ctx: StageContext, payload: BaseModel) -> BaseModel:
        raise NotImplementedError
