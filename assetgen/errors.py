"""
Pipeline Errors

작업 파이프라인 예외 계층:
- ValidationError: 입력 형식/범위 오류 (processing 진입 전 실패)
- UpstreamError: 외부 서비스/도구 실패
- InvalidTransition: 상태 머신 계약 위반
- JobTimeout / JobCancelled: 시간 초과 / 협조적 취소
"""

from typing import Optional


class PipelineError(Exception):
    """모든 파이프라인 예외의 기본 클래스"""


# ============================================================================
# Validation
# ============================================================================

class ValidationError(PipelineError):
    """잘못된 입력 (재시도하지 않음)"""


class InvalidFrameCount(ValidationError):
    def __init__(self, frame_count: int):
        self.frame_count = frame_count
        super().__init__(f"InvalidFrameCount: frame_count must be >= 2 (got {frame_count})")


class UnknownJobType(ValidationError):
    def __init__(self, job_type):
        self.job_type = job_type
        super().__init__(f"UnknownJobType: {job_type!r}")


# ============================================================================
# Upstream
# ============================================================================

class UpstreamError(PipelineError):
    """외부 vision/generation 서비스 또는 외부 도구 실패"""


class NoComponentsDetected(UpstreamError):
    def __init__(self, image_count: int):
        self.image_count = image_count
        super().__init__(
            f"NoComponentsDetected: no components found in {image_count} image(s)"
        )


class ReconstructionFailed(UpstreamError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"ReconstructionFailed: {reason}")


class MeshNotFound(UpstreamError):
    def __init__(self, mesh_id: str):
        self.mesh_id = mesh_id
        super().__init__(f"MeshNotFound: mesh artifact {mesh_id} does not exist")


# ============================================================================
# State machine / runtime
# ============================================================================

class InvalidTransition(PipelineError):
    def __init__(self, job_id: str, current, target):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(
            f"InvalidTransition: job {job_id} cannot move from {current} to {target}"
        )


class JobNotFound(PipelineError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class JobTimeout(PipelineError):
    def __init__(self, seconds: Optional[float] = None):
        self.seconds = seconds
        if seconds is None:
            super().__init__("Timeout: stage exceeded its time limit")
        else:
            super().__init__(f"Timeout: stage exceeded {seconds:.0f}s")


class JobCancelled(PipelineError):
    def __init__(self, detail: str = "cancellation requested"):
        super().__init__(f"Cancelled: {detail}")


def describe_error(exc: BaseException) -> str:
    """
    실패한 작업에 저장할 에러 문자열을 만듭니다.

    PipelineError는 메시지 그대로, 그 외 예외는 "{클래스명}: {메시지}" 형식.
    """
    if isinstance(exc, PipelineError):
        text = str(exc)
    else:
        text = f"{type(exc).__name__}: {exc}"
    return text.strip() or type(exc).__name__
