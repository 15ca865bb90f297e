"""
Mask Rasterization

탐지 영역(bbox)을 원본과 같은 크기의 바이너리 마스크로 변환합니다.
"""

from typing import Sequence, Tuple

import numpy as np


def clamp_bbox(bbox: Sequence[float], width: int, height: int) -> Tuple[int, int, int, int]:
    """[x1, y1, x2, y2]를 이미지 경계로 클램핑 (좌표 순서 정규화 포함)"""
    if len(bbox) != 4:
        raise ValueError(f"bbox must have 4 values, got {len(bbox)}")

    x1, y1, x2, y2 = (float(v) for v in bbox)
    x1, x2 = sorted((x1, x2))
    y1, y2 = sorted((y1, y2))

    x1 = int(np.clip(np.floor(x1), 0, width))
    y1 = int(np.clip(np.floor(y1), 0, height))
    x2 = int(np.clip(np.ceil(x2), 0, width))
    y2 = int(np.clip(np.ceil(y2), 0, height))
    return x1, y1, x2, y2


def rasterize_bbox_mask(bbox: Sequence[float], width: int, height: int) -> np.ndarray:
    """
    bbox 내부를 255로 채운 (height, width) uint8 마스크.

    Args:
        bbox: [x1, y1, x2, y2] 픽셀 좌표 (x2, y2는 exclusive)
        width: 원본 이미지 너비
        height: 원본 이미지 높이
    """
    mask = np.zeros((height, width), dtype=np.uint8)
    x1, y1, x2, y2 = clamp_bbox(bbox, width, height)
    mask[y1:y2, x1:x2] = 255
    return mask
