"""
Job Record

파이프라인 작업 단위와 상태/이벤트 정의.
상태/타임스탬프 필드는 Dispatcher(JobStore)만 변경합니다.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class JobType(str, Enum):
    """스테이지 종류 (닫힌 집합)"""
    SEGMENT = "segment"
    STAIN = "stain"
    MESH = "mesh"
    RENDER = "render"
    EXPORT = "export"


class JobStatus(str, Enum):
    """작업 상태"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass
class JobEvent:
    """상태 전이 감사 로그 항목 (append-only)"""
    seq: int
    status: JobStatus
    timestamp: datetime
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "detail": self.detail,
        }


@dataclass
class Job:
    """파이프라인 작업"""
    type: JobType
    input: Dict[str, Any]
    id: str = field(default_factory=new_job_id)
    status: JobStatus = JobStatus.PENDING
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # jobs 테이블 영속 컬럼
    webhook_url: Optional[str] = None
    cost_estimate: Optional[float] = None
    cost_actual: Optional[float] = None

    # 처리 중 취소 요청 (advisory)
    cancel_requested: bool = False
    events: List[JobEvent] = field(default_factory=list)
    # 종료 시 MetricsReporter가 기록
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """외부 대시보드가 폴링하는 영속 필드 형식"""
        return {
            "id": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "input": self.input,
            "output": self.output,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "webhook_url": self.webhook_url,
            "cost_estimate": self.cost_estimate,
            "cost_actual": self.cost_actual,
            "metrics": self.metrics,
            "events": [event.to_dict() for event in self.events],
        }
