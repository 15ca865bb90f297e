"""
Stage Algorithms (image / geometry)

- image_ops: PIL ↔ numpy/OpenCV 변환, PNG 인코딩
- masks: bbox → 바이너리 마스크
- stain: intrinsic decomposition, 나뭇결 보존 리컬러, PBR 맵 합성
- turntable: 카메라 경로, 3점 조명 렌더링, 비디오/GIF 조립
"""

from .image_ops import ImageUtils
from .masks import rasterize_bbox_mask, clamp_bbox
from .stain import TextureMaps, recolor_texture
from .turntable import camera_angles, camera_poses, render_turntable

__all__ = [
    'ImageUtils',
    'rasterize_bbox_mask',
    'clamp_bbox',
    'TextureMaps',
    'recolor_texture',
    'camera_angles',
    'camera_poses',
    'render_turntable',
]
