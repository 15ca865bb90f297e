"""
Pipeline Stages

각 JobType마다 정확히 하나의 핸들러가 대응합니다.
"""

from typing import Dict, Optional

from assetgen.jobs.models import JobType
from assetgen.reconstruction.mesh_tools import MeshConverter, PhotogrammetryRunner
from assetgen.storage.artifact_store import ArtifactStore
from assetgen.vision.client import VisionClient

from .base import StageContext, StageHandler
from .export import ExportStage
from .mesh import MeshStage
from .render import RenderStage
from .segmentation import SegmentationStage
from .stain import StainStage


def build_handlers(
    artifacts: ArtifactStore,
    vision: VisionClient,
    runner: Optional[PhotogrammetryRunner] = None,
    converter: Optional[MeshConverter] = None,
) -> Dict[JobType, StageHandler]:
    """JobType → 핸들러 테이블"""
    converter = converter or MeshConverter()
    return {
        JobType.SEGMENT: SegmentationStage(artifacts, vision),
        JobType.STAIN: StainStage(artifacts),
        JobType.MESH: MeshStage(artifacts, vision, runner=runner, converter=converter),
        JobType.RENDER: RenderStage(artifacts),
        JobType.EXPORT: ExportStage(artifacts, converter=converter),
    }


__all__ = [
    'StageContext',
    'StageHandler',
    'SegmentationStage',
    'StainStage',
    'MeshStage',
    'RenderStage',
    'ExportStage',
    'build_handlers',
]
