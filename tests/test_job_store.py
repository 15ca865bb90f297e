"""
Tests for assetgen/jobs/store.py

JobStore 단위 테스트:
- 추가/조회/목록
- 원자적 claim (동시 claim 중 하나만 성공)
- 취소 규칙
"""

import threading

import pytest

from assetgen.errors import InvalidTransition, JobNotFound
from assetgen.jobs.models import Job, JobStatus, JobType


def make_job(job_type=JobType.SEGMENT):
    return Job(type=job_type, input={"images": [{"url": "mem://a.png"}]})


class TestAddAndGet:
    """추가 / 조회"""

    def test_add_records_creation_event(self, job_store):
        """추가 시 pending 이벤트 기록"""
        job = job_store.add(make_job())
        assert job.status == JobStatus.PENDING
        assert len(job.events) == 1
        assert job.id in job_store
        assert len(job_store) == 1

    def test_duplicate_id_rejected(self, job_store):
        """같은 ID 중복 추가 불가"""
        job = job_store.add(make_job())
        with pytest.raises(ValueError):
            job_store.add(job)

    def test_get_unknown_raises(self, job_store):
        """없는 작업 조회"""
        with pytest.raises(JobNotFound):
            job_store.get("missing")

    def test_list_filters(self, job_store):
        """status / type 필터"""
        a = job_store.add(make_job(JobType.SEGMENT))
        b = job_store.add(make_job(JobType.RENDER))
        job_store.claim(b.id)

        assert [j.id for j in job_store.list()] == [a.id, b.id]
        assert [j.id for j in job_store.list(status=JobStatus.PROCESSING)] == [b.id]
        assert [j.id for j in job_store.list(job_type=JobType.SEGMENT)] == [a.id]


class TestClaim:
    """pending → processing"""

    def test_claim_once(self, job_store):
        """두 번째 claim은 InvalidTransition"""
        job = job_store.add(make_job())
        job_store.claim(job.id)
        with pytest.raises(InvalidTransition):
            job_store.claim(job.id)

    def test_concurrent_claims_single_winner(self, job_store):
        """여러 스레드가 동시에 claim해도 하나만 성공"""
        job = job_store.add(make_job())
        barrier = threading.Barrier(8)
        wins = []
        losses = []

        def worker():
            barrier.wait()
            try:
                job_store.claim(job.id)
                wins.append(1)
            except InvalidTransition:
                losses.append(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1
        assert len(losses) == 7
        assert job_store.get(job.id).status == JobStatus.PROCESSING


class TestCompleteAndFail:
    """종료 전이"""

    def test_complete_sets_cost(self, job_store):
        job = job_store.add(make_job())
        job_store.claim(job.id)
        job_store.complete(job.id, {"id": "out"}, cost_actual=2.0)
        stored = job_store.get(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.output == {"id": "out"}
        assert stored.cost_actual == 2.0

    def test_fail_sets_error(self, job_store):
        job = job_store.add(make_job())
        job_store.claim(job.id)
        job_store.fail(job.id, "UpstreamError: down")
        stored = job_store.get(job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error == "UpstreamError: down"
        assert stored.output is None


class TestCancel:
    """취소 규칙"""

    def test_cancel_pending_fails_immediately(self, job_store):
        """pending 취소 → failed (Cancelled)"""
        job = job_store.add(make_job())
        job_store.cancel(job.id)
        stored = job_store.get(job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error.startswith("Cancelled")

    def test_cancelled_pending_cannot_be_claimed(self, job_store):
        """취소된 작업은 처리되지 않음"""
        job = job_store.add(make_job())
        job_store.cancel(job.id)
        with pytest.raises(InvalidTransition):
            job_store.claim(job.id)

    def test_cancel_processing_sets_flag(self, job_store):
        """processing 취소 → 플래그만 설정"""
        job = job_store.add(make_job())
        job_store.claim(job.id)
        job_store.cancel(job.id)
        assert job_store.get(job.id).status == JobStatus.PROCESSING
        assert job_store.is_cancel_requested(job.id)

    def test_cancel_terminal_rejected(self, job_store):
        """종료 작업 취소 불가"""
        job = job_store.add(make_job())
        job_store.claim(job.id)
        job_store.complete(job.id, {"id": "x"})
        with pytest.raises(InvalidTransition):
            job_store.cancel(job.id)

    def test_request_cancel_ignores_terminal(self, job_store):
        """종료 작업에 대한 중단 요청은 무시"""
        job = job_store.add(make_job())
        job_store.claim(job.id)
        job_store.fail(job.id, "boom")
        job_store.request_cancel(job.id)
        assert not job_store.is_cancel_requested(job.id)
