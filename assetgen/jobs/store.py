"""
Job Store

작업 레코드 저장소 (in-memory).
프로세스 시작 시 생성되어 Dispatcher와 스테이지에 주입됩니다.

여러 워커가 동시에 접근하는 유일한 공유 자원이므로
모든 조회-전이는 하나의 락 안에서 수행합니다.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from assetgen.errors import InvalidTransition, JobCancelled, JobNotFound
from assetgen.jobs import state_machine
from assetgen.jobs.models import Job, JobStatus, JobType

logger = logging.getLogger(__name__)


class JobStore:
    """
    Thread-safe 작업 저장소

    Usage:
        store = JobStore()
        store.add(job)
        store.claim(job.id)          # pending → processing (원자적)
        store.complete(job.id, {...})
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def add(self, job: Job) -> Job:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job {job.id} already exists")
            state_machine.record_created(job)
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def list(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
    ) -> List[Job]:
        """생성 시각 순 작업 목록"""
        with self._lock:
            jobs = list(self._jobs.values())
        if status is not None:
            jobs = [j for j in jobs if j.status == status]
        if job_type is not None:
            jobs = [j for j in jobs if j.type == job_type]
        return sorted(jobs, key=lambda j: j.created_at)

    # =========================================================================
    # 상태 전이
    # =========================================================================

    def claim(self, job_id: str) -> Job:
        """
        pending 작업을 processing으로 전이합니다.

        두 워커가 동시에 claim하면 하나만 성공하고
        나머지는 InvalidTransition을 받습니다.
        """
        with self._lock:
            job = self.get(job_id)
            return state_machine.start(job)

    def complete(self, job_id: str, output: Dict[str, Any], cost_actual: Optional[float] = None) -> Job:
        with self._lock:
            job = self.get(job_id)
            state_machine.complete(job, output)
            job.cost_actual = cost_actual
            return job

    def fail(self, job_id: str, error: str, cost_actual: Optional[float] = None) -> Job:
        with self._lock:
            job = self.get(job_id)
            state_machine.fail(job, error)
            job.cost_actual = cost_actual
            return job

    def cancel(self, job_id: str) -> Job:
        """
        작업 취소.

        - pending: 즉시 failed (Cancelled)
        - processing: 취소 플래그만 설정 (워커가 단계 사이에서 확인)
        - 종료 상태: InvalidTransition
        """
        with self._lock:
            job = self.get(job_id)
            if job.status == JobStatus.PENDING:
                state_machine.fail(job, str(JobCancelled("cancelled before processing")))
                logger.info(f"[JobStore] Job {job_id} cancelled while pending")
            elif job.status == JobStatus.PROCESSING:
                job.cancel_requested = True
                logger.info(f"[JobStore] Cancellation requested for running job {job_id}")
            else:
                raise InvalidTransition(job_id, job.status.value, "cancelled")
            return job

    def request_cancel(self, job_id: str):
        """타임아웃 등으로 작업 중단을 요청합니다."""
        with self._lock:
            job = self.get(job_id)
            if not job.is_terminal:
                job.cancel_requested = True

    def is_cancel_requested(self, job_id: str) -> bool:
        return self.get(job_id).cancel_requested

    def clear(self):
        with self._lock:
            self._jobs.clear()
