"""
Stage Input / Output Models

스테이지별 타입 페이로드 (Pydantic).
작업 레코드에는 model_dump(mode="json") 결과가 저장됩니다.
"""

import math
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from assetgen.config import Config


# ============================================================================
# Common
# ============================================================================

class SourceImage(BaseModel):
    """Image Set의 단일 이미지"""
    url: str
    camera_angle: Optional[str] = None


class ImageSetInput(BaseModel):
    """같은 업로드/제품 컨텍스트의 이미지 묶음 (순서 유지)"""
    images: List[SourceImage] = Field(min_length=1)


# ============================================================================
# Segmentation
# ============================================================================

class SegmentInput(ImageSetInput):
    detect_components: bool = True
    detect_materials: bool = True

    @model_validator(mode="after")
    def _at_least_one_detector(self):
        if not (self.detect_components or self.detect_materials):
            raise ValueError("at least one detector must be enabled")
        return self


class Detection(BaseModel):
    image_index: int
    image_url: str
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    material: Optional[str] = None
    bbox: List[int]
    mask_url: str


class SegmentOutput(BaseModel):
    detections: List[Detection] = Field(min_length=1)
    components: List[str]
    image_count: int


# ============================================================================
# Stain Recolor
# ============================================================================

class StainInput(ImageSetInput):
    target_color: Tuple[int, int, int]
    preserve_grain: float = Field(0.8, ge=0.0, le=1.0)
    strength: float = Field(1.0, ge=0.0, le=1.0)
    name: Optional[str] = None

    @field_validator("target_color", mode="before")
    @classmethod
    def _parse_hex(cls, value):
        # stain_library의 color_hex ("#5a3c2e") 형식도 허용
        if isinstance(value, str):
            text = value.lstrip("#")
            if len(text) != 6:
                raise ValueError(f"invalid hex color: {value}")
            return tuple(int(text[i:i + 2], 16) for i in (0, 2, 4))
        return value

    @field_validator("target_color")
    @classmethod
    def _check_range(cls, value):
        if any(c < 0 or c > 255 for c in value):
            raise ValueError("target_color channels must be within 0..255")
        return value


class TextureBundle(BaseModel):
    id: str
    name: Optional[str] = None
    albedo: str
    normal: str
    roughness: str
    ao: str
    preview: str
    width: int
    height: int
    stain_color: str
    preserve_grain: float
    strength: float
    normal_convention: str = "tangent-space/opengl"


# ============================================================================
# Mesh Generation
# ============================================================================

class MeshMode(str, Enum):
    SINGLE_IMAGE = "single_image"
    PHOTOGRAMMETRY = "photogrammetry"


class MeshInput(ImageSetInput):
    mode: MeshMode = MeshMode.SINGLE_IMAGE
    formats: List[str] = Field(default_factory=lambda: [Config.PRIMARY_MESH_FORMAT, Config.AR_MESH_FORMAT])

    @field_validator("formats")
    @classmethod
    def _required_formats(cls, value):
        formats = [f.lower() for f in value]
        # 렌더 스테이지(glb)와 AR(usdz) 소비자용 포맷은 항상 포함
        for required in (Config.PRIMARY_MESH_FORMAT, Config.AR_MESH_FORMAT):
            if required not in formats:
                formats.append(required)
        allowed = set(Config.EXPORT_FORMATS) | {Config.AR_MESH_FORMAT}
        unknown = [f for f in formats if f not in allowed]
        if unknown:
            raise ValueError(f"unsupported mesh formats: {unknown}")
        return list(dict.fromkeys(formats))


class MeshArtifact(BaseModel):
    id: str
    method: MeshMode
    meshes: Dict[str, str] = Field(min_length=1)
    primary_format: str
    vertex_count: Optional[int] = None
    face_count: Optional[int] = None


# ============================================================================
# Turntable Render
# ============================================================================

class RenderInput(BaseModel):
    mesh_id: str
    frame_count: int = Config.DEFAULT_FRAME_COUNT
    width: int = Field(Config.DEFAULT_RENDER_SIZE, ge=16, le=4096)
    height: int = Field(Config.DEFAULT_RENDER_SIZE, ge=16, le=4096)
    fps: int = Field(Config.DEFAULT_FPS, ge=1, le=60)
    gif_scale: float = Field(Config.GIF_SCALE, gt=0.0, le=1.0)


class RenderArtifact(BaseModel):
    id: str
    mesh_id: str
    frame_count: int
    width: int
    height: int
    fps: int
    angle_start: float = 0.0
    angle_end: float = 2 * math.pi  # exclusive
    video_url: str
    gif_url: str
    thumbnail_urls: List[str] = Field(default_factory=list)


# ============================================================================
# Export
# ============================================================================

class ExportInput(BaseModel):
    mesh_id: str
    formats: List[str] = Field(min_length=1)

    @field_validator("formats")
    @classmethod
    def _known_formats(cls, value):
        formats = [f.lower() for f in value]
        unknown = [f for f in formats if f not in Config.EXPORT_FORMATS]
        if unknown:
            raise ValueError(f"unsupported export formats: {unknown}")
        return list(dict.fromkeys(formats))


class ExportArtifact(BaseModel):
    id: str
    mesh_id: str
    exports: Dict[str, str] = Field(min_length=1)
