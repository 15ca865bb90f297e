"""
Tests for assetgen/stages/segmentation.py

세그멘테이션 스테이지:
- region마다 마스크 PNG 업로드
- 라벨 중복 제거 (첫 등장 순서)
- 전체 Image Set에서 탐지 0건 → NoComponentsDetected
- 범위 밖 / 누락된 신뢰도 보정
"""

import io

import numpy as np
import pytest
from PIL import Image

from assetgen.errors import NoComponentsDetected, UpstreamError
from assetgen.stages.base import StageContext
from assetgen.stages.schemas import SegmentInput
from assetgen.stages.segmentation import SegmentationStage, clamp_confidence, unique_labels
from conftest import FakeVisionClient


def seed_images(artifacts, png, count=1):
    urls = []
    for i in range(count):
        url = f"mem://uploads/photo_{i}.png"
        artifacts.blobs[url] = png
        urls.append(url)
    return urls


class TestSegmentationStage:
    """SegmentationStage.run"""

    @pytest.mark.asyncio
    async def test_detections_with_masks(self, artifacts, fake_vision, wood_png):
        """region마다 Detection + 원본 크기 마스크"""
        urls = seed_images(artifacts, wood_png)
        stage = SegmentationStage(artifacts, fake_vision)
        payload = SegmentInput(images=[{"url": u} for u in urls])

        out = await stage.run(StageContext(job_id="job1"), payload)

        assert [d.label for d in out.detections] == ["leg", "seat"]
        assert out.components == ["leg", "seat"]
        assert out.image_count == 1

        mask = np.array(Image.open(io.BytesIO(artifacts.blobs[out.detections[0].mask_url])))
        assert mask.shape == (48, 64)
        assert set(np.unique(mask)) <= {0, 255}
        assert mask[10, 10] == 255

    @pytest.mark.asyncio
    async def test_components_deduplicated_in_order(self, artifacts, wood_png):
        """여러 이미지의 같은 라벨은 한 번만 (첫 등장 순서)"""
        vision = FakeVisionClient(regions=lambda call: [
            {"label": "seat" if call == 1 else "leg", "bbox": [0, 0, 5, 5], "confidence": 0.7},
            {"label": "back", "bbox": [1, 1, 6, 6], "confidence": 0.6},
        ])
        urls = seed_images(artifacts, wood_png, count=2)
        stage = SegmentationStage(artifacts, vision)

        out = await stage.run(StageContext(job_id="j"), SegmentInput(images=[{"url": u} for u in urls]))

        assert out.components == ["seat", "back", "leg"]
        assert len(out.detections) == 4
        assert vision.detect_calls == 2

    @pytest.mark.asyncio
    async def test_no_detections_raises(self, artifacts, wood_png):
        """탐지 0건은 빈 출력이 아닌 실패"""
        urls = seed_images(artifacts, wood_png, count=3)
        stage = SegmentationStage(artifacts, FakeVisionClient(regions=[]))

        with pytest.raises(NoComponentsDetected) as exc_info:
            await stage.run(StageContext(job_id="j"), SegmentInput(images=[{"url": u} for u in urls]))
        assert isinstance(exc_info.value, UpstreamError)
        assert "3 image" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_material_only_mode(self, artifacts, fake_vision, wood_png):
        """detect_components=False → 재질명을 라벨로"""
        urls = seed_images(artifacts, wood_png)
        stage = SegmentationStage(artifacts, fake_vision)
        payload = SegmentInput(images=[{"url": urls[0]}], detect_components=False)

        out = await stage.run(StageContext(job_id="j"), payload)
        assert out.components == ["oak", "fabric"]

    @pytest.mark.asyncio
    async def test_cost_counted_per_call(self, artifacts, fake_vision, wood_png):
        urls = seed_images(artifacts, wood_png, count=2)
        ctx = StageContext(job_id="j")
        await SegmentationStage(artifacts, fake_vision).run(ctx, SegmentInput(images=[{"url": u} for u in urls]))
        assert ctx.cost == 2.0

    @pytest.mark.asyncio
    async def test_confidence_out_of_range_or_missing(self, artifacts, wood_png):
        """범위 밖 신뢰도는 [0, 1]로, 누락/비숫자는 0.0으로"""
        vision = FakeVisionClient(regions=[
            {"label": "leg", "bbox": [0, 0, 5, 5], "confidence": 1.02},
            {"label": "seat", "bbox": [0, 0, 5, 5], "confidence": 87},
            {"label": "back", "bbox": [0, 0, 5, 5], "confidence": -0.3},
            {"label": "arm", "bbox": [0, 0, 5, 5], "confidence": None},
            {"label": "frame", "bbox": [0, 0, 5, 5]},
            {"label": "cushion", "bbox": [0, 0, 5, 5], "confidence": "high"},
        ])
        urls = seed_images(artifacts, wood_png)

        out = await SegmentationStage(artifacts, vision).run(
            StageContext(job_id="j"), SegmentInput(images=[{"url": urls[0]}])
        )

        assert [d.confidence for d in out.detections] == [1.0, 1.0, 0.0, 0.0, 0.0, 0.0]


class TestSegmentInput:
    """입력 검증"""

    def test_requires_images(self):
        with pytest.raises(ValueError):
            SegmentInput(images=[])

    def test_requires_a_detector(self):
        with pytest.raises(ValueError):
            SegmentInput(images=[{"url": "a"}], detect_components=False, detect_materials=False)


def test_clamp_confidence():
    assert clamp_confidence(0.42) == 0.42
    assert clamp_confidence("0.5") == 0.5
    assert clamp_confidence(float("nan")) == 0.0
    assert clamp_confidence(float("inf")) == 1.0


def test_unique_labels_case_sensitive():
    """대소문자가 다르면 다른 라벨"""
    class D:
        def __init__(self, label):
            self.label = label

    assert unique_labels([D("Leg"), D("leg"), D("Leg")]) == ["Leg", "leg"]
