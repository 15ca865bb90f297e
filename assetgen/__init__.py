# AssetGen - Furniture Photo Asset Pipeline
"""
AssetGen Module

가구 사진 → 카탈로그/AR용 에셋 생성 파이프라인

Job Types:
    1. segment: 부품/재질 탐지 + 바이너리 마스크
    2. stain:   나뭇결 보존 스테인 리컬러 + PBR 텍스처 (albedo/normal/roughness/ao)
    3. mesh:    단일 이미지 → 3D 또는 다중 이미지 photogrammetry (glb, usdz)
    4. render:  360° 턴테이블 (mp4 + GIF + 썸네일)
    5. export:  메시 포맷 변환 (glb, gltf, obj, ply, stl)

Directory Structure:
    assetgen/
    ├── jobs/             # Job 모델, 상태 머신, 저장소
    ├── dispatcher/       # 타입별 워커 풀, 메트릭, webhook
    ├── stages/           # 스테이지 핸들러 (타입 입력 → 타입 출력)
    ├── imaging/          # 이미지/지오메트리 알고리즘
    ├── reconstruction/   # 외부 SfM / 포맷 변환 도구
    ├── storage/          # Artifact Store
    ├── vision/           # 외부 vision/generation API 클라이언트
    ├── gpu/              # GPU 풀
    └── config.py         # 설정

Usage:
    from assetgen import Dispatcher, JobStore, build_handlers

    dispatcher = Dispatcher(JobStore(), build_handlers(artifacts, vision))
    await dispatcher.start()
    job_id = await dispatcher.enqueue("stain", {...})
"""

__version__ = "1.0.0"

from .dispatcher import Dispatcher, MetricsReporter
from .jobs import Job, JobStatus, JobStore, JobType
from .stages import build_handlers

__all__ = [
    'Dispatcher',
    'MetricsReporter',
    'Job',
    'JobStatus',
    'JobStore',
    'JobType',
    'build_handlers',
]
