"""
Segmentation Stage

Image Set → 부품/재질 Detection 목록.
각 region마다 바이너리 마스크 PNG(0/255)를 생성해 업로드합니다.
"""

import logging
import math
from typing import Any, List

from assetgen.errors import NoComponentsDetected
from assetgen.imaging.image_ops import ImageUtils
from assetgen.imaging.masks import clamp_bbox, rasterize_bbox_mask
from assetgen.stages.base import StageContext, StageHandler
from assetgen.stages.schemas import Detection, SegmentInput, SegmentOutput
from assetgen.storage.artifact_store import ArtifactStore
from assetgen.vision.client import VisionClient

logger = logging.getLogger(__name__)


def unique_labels(detections: List[Detection]) -> List[str]:
    """첫 등장 순서를 유지한 라벨 중복 제거 (대소문자 구분)"""
    return list(dict.fromkeys(d.label for d in detections))


def clamp_confidence(value: Any) -> float:
    """비전 서비스 신뢰도를 [0, 1]로 보정. 누락/비숫자/NaN은 0.0"""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(confidence):
        return 0.0
    return min(1.0, max(0.0, confidence))


class SegmentationStage(StageHandler):
    name = "segment"
    input_model = SegmentInput

    def __init__(self, artifacts: ArtifactStore, vision: VisionClient):
        self.artifacts = artifacts
        self.vision = vision

    async def run(self, ctx: StageContext, payload: SegmentInput) -> SegmentOutput:
        detections: List[Detection] = []

        for image_index, source in enumerate(payload.images):
            ctx.check_cancelled()
            data = await self.artifacts.get(source.url)
            image = ImageUtils.decode_image(data)
            width, height = image.size

            regions = await self.vision.detect_components(data)
            ctx.add_cost(1.0)

            for region_index, region in enumerate(regions):
                label = region.get("label")
                material = region.get("material")
                if not payload.detect_materials:
                    material = None
                if not payload.detect_components:
                    # 재질 전용 모드: 재질이 있는 region만, 재질명을 라벨로 사용
                    if not material:
                        continue
                    label = material
                if not label:
                    continue

                bbox = clamp_bbox(region["bbox"], width, height)
                mask = rasterize_bbox_mask(bbox, width, height)
                mask_url = await self.artifacts.put(
                    f"segment/{ctx.job_id}/mask_{image_index:03d}_{region_index:03d}.png",
                    ImageUtils.encode_png(mask),
                    "image/png",
                )

                detections.append(Detection(
                    image_index=image_index,
                    image_url=source.url,
                    label=str(label),
                    confidence=clamp_confidence(region.get("confidence")),
                    material=material,
                    bbox=list(bbox),
                    mask_url=mask_url,
                ))

        if not detections:
            raise NoComponentsDetected(len(payload.images))

        components = unique_labels(detections)
        logger.info(
            f"[Segmentation] job={ctx.job_id} images={len(payload.images)} "
            f"detections={len(detections)} components={components}"
        )
        return SegmentOutput(
            detections=detections,
            components=components,
            image_count=len(payload.images),
        )
