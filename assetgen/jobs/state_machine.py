"""
Job State Machine

pending → processing → {completed | failed}

- pending만 초기 상태, completed/failed는 종료 상태
- processing 전이는 pending에서만 허용 (중복 디스패치 방지)
- completed 전이는 processing에서만, output 필수
- failed 전이는 종료 상태가 아닌 모든 상태에서 허용, 에러 문자열 필수
- 모든 전이는 이벤트 로그에 append
"""

from datetime import datetime
from typing import Any, Dict, Optional

from assetgen.errors import InvalidTransition
from assetgen.jobs.models import Job, JobEvent, JobStatus, utcnow


def _append_event(job: Job, status: JobStatus, when: datetime, detail: Optional[str] = None):
    seq = job.events[-1].seq + 1 if job.events else 1
    job.events.append(JobEvent(seq=seq, status=status, timestamp=when, detail=detail))


def record_created(job: Job):
    """생성 이벤트 기록 (pending)"""
    if job.events:
        return
    _append_event(job, JobStatus.PENDING, job.created_at)


def start(job: Job, now: Optional[datetime] = None) -> Job:
    if job.status != JobStatus.PENDING:
        raise InvalidTransition(job.id, job.status.value, JobStatus.PROCESSING.value)

    now = now or utcnow()
    job.status = JobStatus.PROCESSING
    job.started_at = now
    _append_event(job, JobStatus.PROCESSING, now)
    return job


def complete(job: Job, output: Dict[str, Any], now: Optional[datetime] = None) -> Job:
    if job.status != JobStatus.PROCESSING or output is None:
        raise InvalidTransition(job.id, job.status.value, JobStatus.COMPLETED.value)

    now = now or utcnow()
    job.status = JobStatus.COMPLETED
    job.output = output
    job.error = None
    job.completed_at = now
    _append_event(job, JobStatus.COMPLETED, now)
    return job


def fail(job: Job, error: str, now: Optional[datetime] = None) -> Job:
    if job.status.is_terminal or not error or not error.strip():
        raise InvalidTransition(job.id, job.status.value, JobStatus.FAILED.value)

    now = now or utcnow()
    job.status = JobStatus.FAILED
    job.output = None
    job.error = error
    job.completed_at = now
    _append_event(job, JobStatus.FAILED, now, detail=error)
    return job
