"""
GPU Pool Manager

GPU를 쓰는 스테이지(mesh, render) 작업에 디바이스를 임대(lease)합니다.

- 라운드로빈 순서로 비어 있는 GPU 선택
- 한 GPU는 한 번에 한 작업만 점유 (async context manager)
- 반환 시 대기 중인 작업을 깨움 (asyncio.Condition)
- 주기적 프로브 실패가 누적된 GPU는 배정 대상에서 제외
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from assetgen.config import HAS_TORCH, Config

if HAS_TORCH:
    import torch

logger = logging.getLogger(__name__)

# 대기 중 리스 재시도 간격 (실패 카운트 리셋 등 notify 없는 변화 반영)
RECHECK_INTERVAL = 1.0


def cuda_ready() -> bool:
    return HAS_TORCH and torch.cuda.is_available()


def probe_device(device_id: int) -> float:
    """작은 텐서를 할당해 디바이스 동작을 확인하고 현재 할당량(MB)을 반환. 실패 시 RuntimeError"""
    with torch.cuda.device(device_id):
        probe = torch.zeros(1, device=f"cuda:{device_id}")
        del probe
        torch.cuda.empty_cache()
    return torch.cuda.memory_allocated(device_id) / 1024 / 1024


def device_memory_mb(device_id: int) -> float:
    return torch.cuda.get_device_properties(device_id).total_memory / 1024 / 1024


@dataclass
class GPUSlot:
    """풀 안의 GPU 한 장"""
    device_id: int
    leased: bool = False
    job_id: Optional[str] = None
    memory_used_mb: float = 0.0
    memory_total_mb: float = 0.0
    checked_at: Optional[float] = None
    failures: int = 0
    jobs_served: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": not self.leased,
            "job_id": self.job_id,
            "memory_used_mb": round(self.memory_used_mb, 2),
            "memory_total_mb": round(self.memory_total_mb, 2),
            "failures": self.failures,
            "jobs_served": self.jobs_served,
        }


class GPUPoolManager:
    """
    Usage:
        pool = GPUPoolManager(gpu_ids=[0, 1])

        async with pool.lease(job_id=job.id) as gpu_id:
            # 컨텍스트 동안 gpu_id는 이 작업 전용
            ...
    """

    def __init__(
        self,
        gpu_ids: Optional[List[int]] = None,
        max_failures: int = 3,
        probe_interval: float = 30.0,
        wait_timeout: float = 300.0,
    ):
        """
        Args:
            gpu_ids: 사용할 GPU ID 목록 (None이면 Config.get_available_gpus())
            max_failures: 프로브 실패가 이 횟수에 도달한 GPU는 제외
            probe_interval: 같은 GPU를 다시 프로브하기까지의 간격 (초)
            wait_timeout: 리스 대기 최대 시간 (초)
        """
        if gpu_ids is None:
            gpu_ids = Config.get_available_gpus()

        self.gpu_ids = list(gpu_ids)
        self.max_failures = max_failures
        self.probe_interval = probe_interval
        self.wait_timeout = wait_timeout

        self._slots: Dict[int, GPUSlot] = {gpu_id: GPUSlot(device_id=gpu_id) for gpu_id in self.gpu_ids}
        if cuda_ready():
            for slot in self._slots.values():
                try:
                    slot.memory_total_mb = device_memory_mb(slot.device_id)
                except RuntimeError as e:
                    logger.warning(f"[GPUPool] Could not read properties of GPU {slot.device_id}: {e}")

        self._cursor = 0
        self._changed = asyncio.Condition()

        logger.info(f"[GPUPool] {len(self.gpu_ids)} GPU(s) in pool: {self.gpu_ids}")

    @property
    def enabled(self) -> bool:
        return bool(self.gpu_ids)

    def slot(self, gpu_id: int) -> GPUSlot:
        return self._slots[gpu_id]

    def _usable(self, slot: GPUSlot) -> bool:
        return not slot.leased and slot.failures < self.max_failures

    async def _probe(self, slot: GPUSlot) -> bool:
        if not cuda_ready():
            return True

        now = time.monotonic()
        if slot.checked_at is not None and now - slot.checked_at < self.probe_interval:
            return True

        try:
            slot.memory_used_mb = await asyncio.to_thread(probe_device, slot.device_id)
        except RuntimeError as e:
            slot.failures += 1
            logger.warning(f"[GPUPool] GPU {slot.device_id} probe failed ({slot.failures}/{self.max_failures}): {e}")
            return False

        slot.checked_at = now
        return True

    async def _try_lease(self, job_id: Optional[str]) -> Optional[int]:
        count = len(self.gpu_ids)
        for offset in range(count):
            position = (self._cursor + offset) % count
            slot = self._slots[self.gpu_ids[position]]
            if not self._usable(slot) or not await self._probe(slot):
                continue

            slot.leased = True
            slot.job_id = job_id
            self._cursor = (position + 1) % count
            return slot.device_id
        return None

    async def acquire(self, job_id: Optional[str] = None) -> int:
        """
        GPU 하나를 임대합니다. 모두 사용 중이면 반환될 때까지 대기합니다.

        Raises:
            RuntimeError: 풀이 비어 있거나 wait_timeout 안에 임대하지 못함
        """
        if not self.gpu_ids:
            raise RuntimeError("No GPUs available in pool")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_timeout

        async with self._changed:
            while True:
                gpu_id = await self._try_lease(job_id)
                if gpu_id is not None:
                    logger.debug(f"[GPUPool] GPU {gpu_id} leased to job {job_id}")
                    return gpu_id

                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise RuntimeError(f"Timeout waiting for GPU (waited {self.wait_timeout:.1f}s)")
                try:
                    await asyncio.wait_for(self._changed.wait(), min(remaining, RECHECK_INTERVAL))
                except asyncio.TimeoutError:
                    pass

    async def release(self, gpu_id: int):
        slot = self._slots.get(gpu_id)
        if slot is None or not slot.leased:
            return

        async with self._changed:
            logger.debug(f"[GPUPool] GPU {gpu_id} returned by job {slot.job_id}")
            slot.leased = False
            slot.job_id = None
            slot.jobs_served += 1
            self._changed.notify()

    @asynccontextmanager
    async def lease(self, job_id: Optional[str] = None):
        """작업 동안 GPU를 점유. 예외가 나도 반환됩니다."""
        gpu_id = await self.acquire(job_id)
        try:
            yield gpu_id
        finally:
            await self.release(gpu_id)

    def get_status(self) -> Dict[str, Any]:
        """/gpu-status 응답"""
        return {
            "total_gpus": len(self.gpu_ids),
            "available_gpus": sum(1 for slot in self._slots.values() if self._usable(slot)),
            "gpus": {gpu_id: slot.to_dict() for gpu_id, slot in self._slots.items()},
        }

    def reset_failures(self, gpu_id: int):
        if gpu_id in self._slots:
            self._slots[gpu_id].failures = 0

    def is_available(self, gpu_id: int) -> bool:
        slot = self._slots.get(gpu_id)
        return slot is not None and self._usable(slot)
