"""
Job Dispatcher

작업 타입별 큐와 워커 풀로 작업을 처리합니다.

흐름:
    enqueue(type, input) → 검증 → pending 작업 생성 → 타입별 큐
    워커: claim(pending→processing) → 핸들러 실행 (타임아웃) → completed / failed
    종료 시: 메트릭 기록 → 완료 future 해제 → webhook 전송

실패한 작업은 자동 재시도하지 않습니다. 재시도는 새 작업으로 요청합니다.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

import pydantic

from assetgen.config import Config
from assetgen.dispatcher.callback import send_job_callback
from assetgen.dispatcher.reporter import MetricsReporter
from assetgen.errors import (
    InvalidTransition,
    JobCancelled,
    JobTimeout,
    UnknownJobType,
    ValidationError,
    describe_error,
)
from assetgen.gpu.gpu_pool_manager import GPUPoolManager
from assetgen.jobs.models import Job, JobType
from assetgen.jobs.store import JobStore
from assetgen.stages.base import StageContext, StageHandler

logger = logging.getLogger(__name__)


def _format_validation_error(job_type: JobType, error: pydantic.ValidationError) -> str:
    details = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "input"
        details.append(f"{location}: {item.get('msg')}")
    return f"Invalid {job_type.value} input: " + "; ".join(details)


class Dispatcher:
    """
    작업 디스패처

    Usage:
        dispatcher = Dispatcher(store, build_handlers(artifacts, vision))
        await dispatcher.start()
        job_id = await dispatcher.enqueue("stain", {...})
        job = await dispatcher.wait_for(job_id)
        await dispatcher.shutdown()
    """

    def __init__(
        self,
        store: JobStore,
        handlers: Dict[JobType, StageHandler],
        reporter: Optional[MetricsReporter] = None,
        gpu_pool: Optional[GPUPoolManager] = None,
        concurrency: Optional[Dict[str, int]] = None,
        timeouts: Optional[Dict[str, float]] = None,
        send_callbacks: bool = True,
    ):
        missing = [t.value for t in JobType if t not in handlers]
        if missing:
            raise ValueError(f"No handler registered for job types: {missing}")

        self.store = store
        self.handlers = dict(handlers)
        self.reporter = reporter or MetricsReporter()
        self.gpu_pool = gpu_pool
        self.concurrency = {t.value: Config.get_concurrency(t.value) for t in JobType}
        self.concurrency.update(concurrency or {})
        self.timeouts = dict(Config.STAGE_TIMEOUTS)
        self.timeouts.update(timeouts or {})
        self.send_callbacks = send_callbacks

        self._queues: Dict[JobType, asyncio.Queue] = {t: asyncio.Queue() for t in JobType}
        self._workers: List[asyncio.Task] = []
        self._futures: Dict[str, asyncio.Future] = {}
        self._background: Set[asyncio.Task] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self):
        if self._running:
            return
        for job_type in JobType:
            for index in range(max(1, self.concurrency[job_type.value])):
                task = asyncio.create_task(
                    self._worker_loop(job_type, index),
                    name=f"worker-{job_type.value}-{index}",
                )
                self._workers.append(task)
        self._running = True
        logger.info(
            f"[Dispatcher] Started workers: "
            + ", ".join(f"{t.value}={self.concurrency[t.value]}" for t in JobType)
        )

    async def shutdown(self):
        """워커 종료. 처리 중이던 작업은 Cancelled로 실패 처리됩니다."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._running = False
        logger.info("[Dispatcher] Shut down")

    # =========================================================================
    # Public operations
    # =========================================================================

    async def enqueue(
        self,
        job_type: Any,
        input: Dict[str, Any],
        webhook_url: Optional[str] = None,
    ) -> str:
        """
        작업을 검증하고 pending 상태로 등록합니다.

        Raises:
            UnknownJobType: 알 수 없는 작업 타입
            ValidationError: 입력이 스테이지 입력 모델과 맞지 않음
        """
        try:
            job_type = JobType(job_type)
        except ValueError:
            raise UnknownJobType(job_type)

        handler = self.handlers[job_type]
        try:
            payload = handler.input_model.model_validate(input or {})
        except pydantic.ValidationError as e:
            raise ValidationError(_format_validation_error(job_type, e))
        handler.validate(payload)

        job = Job(
            type=job_type,
            input=payload.model_dump(mode="json"),
            webhook_url=webhook_url,
            cost_estimate=Config.STAGE_COST_ESTIMATE.get(job_type.value, 0.0),
        )
        self.store.add(job)
        self._future_for(job.id)
        self._queues[job_type].put_nowait(job.id)

        logger.info(f"[Dispatcher] Enqueued job={job.id} type={job_type.value}")
        return job.id

    def get_status(self, job_id: str) -> Job:
        return self.store.get(job_id)

    async def wait_for(self, job_id: str, timeout: Optional[float] = None) -> Job:
        """
        작업이 종료 상태가 될 때까지 대기합니다.

        Raises:
            JobNotFound: 존재하지 않는 작업
            asyncio.TimeoutError: timeout 초과 (작업 자체는 계속 진행)
        """
        job = self.store.get(job_id)
        if job.is_terminal:
            return job
        future = self._future_for(job_id)
        return await asyncio.wait_for(asyncio.shield(future), timeout)

    def cancel(self, job_id: str) -> Job:
        """
        pending 작업은 즉시 failed(Cancelled), processing 작업은 취소 플래그 설정.

        Raises:
            JobNotFound, InvalidTransition (이미 종료된 작업)
        """
        job = self.store.cancel(job_id)
        if job.is_terminal:
            self._on_terminal(job)
        return job

    def queue_sizes(self) -> Dict[str, int]:
        return {t.value: self._queues[t].qsize() for t in JobType}

    # =========================================================================
    # Workers
    # =========================================================================

    def _future_for(self, job_id: str) -> asyncio.Future:
        future = self._futures.get(job_id)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            self._futures[job_id] = future
        return future

    async def _worker_loop(self, job_type: JobType, index: int):
        queue = self._queues[job_type]
        logger.debug(f"[Dispatcher] Worker {job_type.value}-{index} ready")
        while True:
            job_id = await queue.get()
            try:
                await self.process(job_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"[Dispatcher] Worker {job_type.value}-{index} error on job={job_id}")
            finally:
                queue.task_done()

    async def process(self, job_id: str) -> Optional[Job]:
        """
        단일 작업 실행: claim → 핸들러 → 종료 전이.

        이미 다른 워커가 claim했거나 취소된 작업이면 None.
        """
        try:
            job = self.store.claim(job_id)
        except InvalidTransition as e:
            logger.info(f"[Dispatcher] Skipping job={job_id}: {e}")
            return None

        handler = self.handlers[job.type]
        ctx = StageContext(job_id=job.id, store=self.store)
        timeout = self.timeouts.get(job.type.value)
        logger.info(f"[Dispatcher] Processing job={job.id} type={job.type.value} timeout={timeout}s")

        try:
            payload = handler.input_model.model_validate(job.input)
            output = await self._run_handler(job, handler, ctx, payload, timeout)
            result = self.store.complete(job.id, output.model_dump(mode="json"), cost_actual=ctx.cost)
            self._on_terminal(result)
        except JobTimeout as e:
            # 스레드에서 돌던 알고리즘은 다음 단계 경계에서 멈춤
            self.store.request_cancel(job.id)
            result = self._fail(job.id, str(e), ctx)
        except asyncio.CancelledError:
            self.store.request_cancel(job.id)
            self._fail(job.id, str(JobCancelled("dispatcher shut down")), ctx)
            raise
        except Exception as e:
            logger.warning(f"[Dispatcher] job={job.id} failed: {describe_error(e)}")
            result = self._fail(job.id, describe_error(e), ctx)

        return result

    async def _run_handler(self, job: Job, handler: StageHandler, ctx: StageContext, payload, timeout):
        if job.type.value in Config.GPU_STAGES and self.gpu_pool is not None and self.gpu_pool.enabled:
            async with self.gpu_pool.lease(job_id=job.id) as gpu_id:
                logger.info(f"[Dispatcher] job={job.id} running on GPU {gpu_id}")
                return await self._run_with_deadline(job, handler.run(ctx, payload), timeout)
        return await self._run_with_deadline(job, handler.run(ctx, payload), timeout)

    async def _run_with_deadline(self, job: Job, coro, timeout: Optional[float]):
        """
        핸들러를 타임아웃 안에서 실행합니다.

        디스패처 자신의 기한이 지난 경우에만 JobTimeout. 핸들러 내부에서
        올라온 TimeoutError는 일반 예외로 그대로 전파됩니다.
        """
        task = asyncio.create_task(coro, name=f"job-{job.id}")
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise

        if task not in done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise JobTimeout(timeout)
        return task.result()

    def _fail(self, job_id: str, error: str, ctx: StageContext) -> Job:
        job = self.store.fail(job_id, error, cost_actual=ctx.cost)
        self._on_terminal(job)
        return job

    def _on_terminal(self, job: Job):
        try:
            self.reporter.record(job)
        except ValueError as e:
            logger.warning(f"[Dispatcher] Could not record metrics for job={job.id}: {e}")

        future = self._futures.pop(job.id, None)
        if future is not None and not future.done():
            future.set_result(job)

        if self.send_callbacks and job.webhook_url:
            task = asyncio.create_task(send_job_callback(job))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

        logger.info(f"[Dispatcher] job={job.id} {job.status.value}" + (f": {job.error}" if job.error else ""))
