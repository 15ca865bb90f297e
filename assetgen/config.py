import os
from typing import Dict, List, Optional

try:
    import torch
    HAS_TORCH = True
except ImportError:
    HAS_TORCH = False


class Config:
    # 그래픽 사용 유무
    DEVICE = "cuda" if HAS_TORCH and torch.cuda.is_available() else "cpu"

    # --- Multi-GPU Configuration ---
    # 사용할 GPU ID 목록 (None이면 자동 감지)
    GPU_IDS: Optional[List[int]] = None

    # GPU를 점유하는 스테이지 (mesh, render)
    GPU_STAGES = ("mesh", "render")

    # --- Worker Pools ---
    # 스테이지 타입별 동시 처리 워커 수
    # GPU 스테이지는 가속기 수에 맞추고, CPU 스테이지는 더 높게 잡음
    STAGE_CONCURRENCY: Dict[str, int] = {
        "segment": 4,
        "stain": 4,
        "mesh": 1,
        "render": 1,
        "export": 2,
    }

    # 스테이지별 타임아웃 (초)
    STAGE_TIMEOUTS: Dict[str, float] = {
        "segment": 120.0,
        "stain": 300.0,
        "mesh": 1800.0,
        "render": 900.0,
        "export": 300.0,
    }

    # 외부 API 호출 단위 비용 (jobs.cost_estimate)
    STAGE_COST_ESTIMATE: Dict[str, float] = {
        "segment": 1.0,
        "stain": 0.0,
        "mesh": 5.0,
        "render": 0.0,
        "export": 0.0,
    }

    # --- Stain Recolor ---
    # 조명 분리용 대형 가우시안 (sigma, 이미지 짧은 변 대비 비율)
    SHADING_SIGMA_RATIO = 0.08
    SHADING_SIGMA_MIN = 8.0
    # 나뭇결 추출용 소형 가우시안
    GRAIN_KERNEL = 5
    # 노멀맵 강도
    NORMAL_STRENGTH = 4.0
    # 러프니스 지역 분산 윈도우
    ROUGHNESS_KERNEL = 7
    # AO 블러 (sigma, 이미지 짧은 변 대비 비율)
    AO_SIGMA_RATIO = 0.03

    # --- Turntable Render ---
    DEFAULT_FRAME_COUNT = 36
    DEFAULT_RENDER_SIZE = 512
    DEFAULT_FPS = 12
    GIF_SCALE = 0.5
    CAMERA_ELEVATION_DEG = 20.0
    CAMERA_DISTANCE = 2.5
    CAMERA_FOV_DEG = 40.0
    BACKGROUND_COLOR = (245, 245, 245)

    # --- Mesh / Export ---
    PRIMARY_MESH_FORMAT = "glb"
    AR_MESH_FORMAT = "usdz"
    EXPORT_FORMATS = ("glb", "gltf", "obj", "ply", "stl")

    # 외부 도구 명령 템플릿 ({images}, {output}, {input} 치환)
    SFM_COMMAND = os.environ.get(
        "ASSETGEN_SFM_COMMAND",
        "meshroom_batch --input {images} --output {output}",
    )
    USDZ_COMMAND = os.environ.get(
        "ASSETGEN_USDZ_COMMAND",
        "usd_from_gltf {input} {output}",
    )
    TOOL_TIMEOUT = 1500

    # --- External Vision Service ---
    VISION_API_URL = os.environ.get("ASSETGEN_VISION_API_URL", "http://localhost:8000")
    VISION_TIMEOUT = 60

    # --- Callback ---
    CALLBACK_TIMEOUT_SECONDS = 30
    CALLBACK_RETRY_COUNT = 2

    @staticmethod
    def get_available_gpus() -> List[int]:
        """
        사용 가능한 GPU ID 목록을 반환합니다.

        Returns:
            GPU ID 리스트
        """
        if Config.GPU_IDS is not None:
            return Config.GPU_IDS

        if HAS_TORCH and torch.cuda.is_available():
            return list(range(torch.cuda.device_count()))

        return []

    @staticmethod
    def get_concurrency(stage: str) -> int:
        """스테이지 워커 수. GPU 스테이지는 GPU 수를 넘지 않음"""
        limit = Config.STAGE_CONCURRENCY.get(stage, 1)
        if stage in Config.GPU_STAGES:
            gpus = Config.get_available_gpus()
            if gpus:
                limit = min(limit, len(gpus))
        return max(1, limit)
