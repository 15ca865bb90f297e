"""
Pydantic Request/Response Models
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Job Models
# ============================================================================

class EnqueueJobRequest(BaseModel):
    """작업 등록 요청. input은 타입별 스테이지 모델로 검증됨"""
    type: str
    input: Dict[str, Any] = Field(default_factory=dict)
    webhook_url: Optional[str] = None


class EnqueueJobResponse(BaseModel):
    job_id: str
    status: str


class JobEventResponse(BaseModel):
    seq: int
    status: str
    timestamp: str
    detail: Optional[str] = None


class JobResponse(BaseModel):
    """영속 작업 레코드 형식"""
    id: str
    type: str
    status: str
    input: Dict[str, Any]
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: str
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    webhook_url: Optional[str] = None
    cost_estimate: Optional[float] = None
    cost_actual: Optional[float] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)
    events: List[JobEventResponse] = Field(default_factory=list)


class JobListResponse(BaseModel):
    jobs: List[JobResponse]
    total: int
