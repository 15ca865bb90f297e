"""
Metrics & Outcome Reporter

종료된 작업마다 처리 시간, 대기 시간, 리소스 사용량을 기록하고
작업 타입별 집계(processing_statistics)를 유지합니다.
"""

import logging
import resource
import sys
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Optional

from assetgen.config import HAS_TORCH
from assetgen.jobs.models import Job, JobStatus, JobType

if HAS_TORCH:
    import torch

logger = logging.getLogger(__name__)


@dataclass
class StageStats:
    """작업 타입별 누적 통계"""
    completed: int = 0
    failed: int = 0
    total_duration_seconds: float = 0.0
    total_queue_seconds: float = 0.0
    max_duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return self.completed + self.failed

    @property
    def average_duration_seconds(self) -> float:
        if self.processed == 0:
            return 0.0
        return self.total_duration_seconds / self.processed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": self.completed,
            "failed": self.failed,
            "total_duration_seconds": round(self.total_duration_seconds, 3),
            "average_duration_seconds": round(self.average_duration_seconds, 3),
            "max_duration_seconds": round(self.max_duration_seconds, 3),
            "average_queue_seconds": round(
                self.total_queue_seconds / self.processed if self.processed else 0.0, 3
            ),
        }


def peak_rss_mb() -> float:
    """프로세스 최대 RSS (MB). Linux는 KB, macOS는 byte 단위"""
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform == "darwin":
        return peak / 1024 / 1024
    return peak / 1024


def cuda_peak_mb() -> Optional[float]:
    if not HAS_TORCH or not torch.cuda.is_available():
        return None
    return torch.cuda.max_memory_allocated() / 1024 / 1024


class MetricsReporter:
    """
    Usage:
        reporter = MetricsReporter()
        reporter.record(job)       # 종료된 작업마다
        reporter.snapshot()        # /stats
    """

    def __init__(self, history_size: int = 100):
        self._lock = threading.Lock()
        self._stats: Dict[str, StageStats] = {t.value: StageStats() for t in JobType}
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=history_size)

    def record(self, job: Job) -> Dict[str, Any]:
        """
        종료된 작업의 메트릭을 계산해 job.metrics에 기록하고 집계에 반영합니다.

        Raises:
            ValueError: 아직 종료되지 않은 작업
        """
        if not job.is_terminal:
            raise ValueError(f"job {job.id} is not terminal (status={job.status.value})")

        duration = job.duration_seconds or 0.0
        queue_wait = None
        if job.started_at is not None:
            queue_wait = (job.started_at - job.created_at).total_seconds()

        metrics = {
            "duration_seconds": round(duration, 3),
            "queue_seconds": round(queue_wait, 3) if queue_wait is not None else None,
            "peak_rss_mb": round(peak_rss_mb(), 2),
            "cuda_peak_mb": cuda_peak_mb(),
        }

        with self._lock:
            stats = self._stats[job.type.value]
            if job.status == JobStatus.COMPLETED:
                stats.completed += 1
            else:
                stats.failed += 1
            stats.total_duration_seconds += duration
            stats.total_queue_seconds += queue_wait or 0.0
            stats.max_duration_seconds = max(stats.max_duration_seconds, duration)
            self._recent.append({
                "job_id": job.id,
                "type": job.type.value,
                "status": job.status.value,
                **metrics,
            })

        job.metrics = metrics
        logger.info(
            f"[Reporter] job={job.id} type={job.type.value} status={job.status.value} "
            f"duration={metrics['duration_seconds']}s rss={metrics['peak_rss_mb']}MB"
        )
        return metrics

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            by_type = {name: stats.to_dict() for name, stats in self._stats.items()}
            operation_counts = {name: stats.completed for name, stats in self._stats.items()}
            total_processed = sum(stats.processed for stats in self._stats.values())
            recent = list(self._recent)

        return {
            "total_processed": total_processed,
            "operation_counts": operation_counts,
            "by_type": by_type,
            "recent": recent,
            "peak_rss_mb": round(peak_rss_mb(), 2),
            "cuda_peak_mb": cuda_peak_mb(),
        }

    def reset(self):
        with self._lock:
            self._stats = {t.value: StageStats() for t in JobType}
            self._recent.clear()
