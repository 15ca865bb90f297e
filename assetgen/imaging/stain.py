"""
Stain Recolor Algorithm

목재 사진에 새 스테인 색을 입히고 PBR 맵을 합성합니다.

1. Intrinsic decomposition: 대형 가우시안으로 조명(shading) 추정, 나눠서 albedo 분리
2. Grain extraction: albedo 그레이스케일의 고주파 잔차
3. Color transfer: L*a*b*에서 a/b만 타깃 색으로 (1 - preserve_grain) 만큼 블렌딩
4. Grain reapplication: 잔차 × strength 재적용
5. PBR maps: normal(잔차 기울기), roughness(지역 표준편차), AO(반전 그레이 블러)
6. Preview: 최종 albedo × shading

모든 중간 계산은 float32로 수행하고, 8-bit 클램핑은 인코딩 시 한 번만 합니다.

Normal map 규약: tangent space, OpenGL(+Y up) 기준.
RGB = (X, Y, Z)를 [-1, 1] → [0, 1]로 매핑. 평평한 면은 (0.5, 0.5, 1.0).
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import cv2
import numpy as np

from assetgen.config import Config

EPS = 1e-4


@dataclass
class Decomposition:
    """intrinsic decomposition 결과"""
    albedo: np.ndarray    # (H, W, 3) float32
    shading: np.ndarray   # (H, W, 1) float32, 평균 1.0으로 정규화


@dataclass
class TextureMaps:
    """co-registered float 맵 묶음 (모두 0~1 범위 기준)"""
    albedo: np.ndarray     # (H, W, 3)
    normal: np.ndarray     # (H, W, 3)
    roughness: np.ndarray  # (H, W)
    ao: np.ndarray         # (H, W)
    preview: np.ndarray    # (H, W, 3)

    @property
    def size(self) -> Tuple[int, int]:
        h, w = self.albedo.shape[:2]
        return w, h

    def items(self):
        return [
            ("albedo", self.albedo),
            ("normal", self.normal),
            ("roughness", self.roughness),
            ("ao", self.ao),
            ("preview", self.preview),
        ]


def _gray(rgb: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(rgb.astype(np.float32), cv2.COLOR_RGB2GRAY)


def _large_sigma(shape, ratio: float, minimum: float = 1.0) -> float:
    return max(minimum, ratio * min(shape[0], shape[1]))


def decompose(image: np.ndarray, sigma: Optional[float] = None) -> Decomposition:
    """
    이미지를 albedo / shading으로 분리합니다.

    shading은 그레이스케일의 대형 가우시안 블러를 평균 1로 정규화한 값이며,
    albedo = image / shading. 넓은 조명 그라디언트는 제거되고 지역 반사율 디테일은 유지됩니다.
    """
    if sigma is None:
        sigma = _large_sigma(image.shape, Config.SHADING_SIGMA_RATIO, Config.SHADING_SIGMA_MIN)

    low_pass = cv2.GaussianBlur(_gray(image), (0, 0), sigmaX=sigma, sigmaY=sigma)
    low_pass = np.maximum(low_pass, EPS)
    shading = low_pass / float(low_pass.mean())

    albedo = image / shading[..., None]
    return Decomposition(albedo=albedo.astype(np.float32), shading=shading[..., None].astype(np.float32))


def extract_grain(albedo: np.ndarray, kernel: int = None) -> np.ndarray:
    """albedo 그레이스케일 - 소형 가우시안 블러 = 나뭇결 잔차 (H, W)"""
    kernel = kernel or Config.GRAIN_KERNEL
    if kernel % 2 == 0:
        kernel += 1
    gray = _gray(albedo)
    return gray - cv2.GaussianBlur(gray, (kernel, kernel), 0)


def target_chroma(target_color: Sequence[int]) -> Tuple[float, float]:
    """RGB(0~255) 타깃 색의 L*a*b* 색도 (a, b)"""
    pixel = np.array([[target_color]], dtype=np.float32) / 255.0
    lab = cv2.cvtColor(pixel, cv2.COLOR_RGB2LAB)
    return float(lab[0, 0, 1]), float(lab[0, 0, 2])


def transfer_color(albedo: np.ndarray, target_color: Sequence[int], preserve_grain: float) -> np.ndarray:
    """
    L*a*b*에서 색도(a, b)만 타깃 쪽으로 블렌딩합니다. 명도(L)는 그대로.

    preserve_grain = 1.0 → 입력 그대로 반환 (색 변화 없음)
    preserve_grain = 0.0 → 색도를 타깃 색도로 완전히 교체
    """
    blend = 1.0 - float(preserve_grain)
    if blend <= 0.0:
        return albedo.copy()

    lab = cv2.cvtColor(albedo.astype(np.float32), cv2.COLOR_RGB2LAB)
    target_a, target_b = target_chroma(target_color)
    lab[..., 1] += (target_a - lab[..., 1]) * blend
    lab[..., 2] += (target_b - lab[..., 2]) * blend
    return cv2.cvtColor(lab, cv2.COLOR_LAB2RGB)


def reapply_grain(recolored: np.ndarray, grain: np.ndarray, strength: float) -> np.ndarray:
    return recolored + grain[..., None] * float(strength)


def normal_map(grain: np.ndarray, strength: float = None) -> np.ndarray:
    """잔차 기울기에서 tangent-space 노멀맵 (H, W, 3), 0~1 packed"""
    strength = Config.NORMAL_STRENGTH if strength is None else strength
    dx = cv2.Sobel(grain, cv2.CV_32F, 1, 0, ksize=3)
    dy = cv2.Sobel(grain, cv2.CV_32F, 0, 1, ksize=3)

    # 이미지 행은 아래로 증가하므로 +Y(up) 기준으로 dy 부호 반전
    nx = -dx * strength
    ny = dy * strength
    nz = np.ones_like(grain)
    length = np.sqrt(nx * nx + ny * ny + nz * nz)
    normal = np.stack([nx, ny, nz], axis=-1) / length[..., None]
    return ((normal + 1.0) * 0.5).astype(np.float32)


def roughness_map(image: np.ndarray, kernel: int = None) -> np.ndarray:
    """원본 그레이스케일 지역 표준편차를 0~1로 정규화"""
    kernel = kernel or Config.ROUGHNESS_KERNEL
    gray = _gray(image)
    mean = cv2.blur(gray, (kernel, kernel))
    mean_sq = cv2.blur(gray * gray, (kernel, kernel))
    std = np.sqrt(np.maximum(mean_sq - mean * mean, 0.0))

    peak = float(std.max())
    if peak < EPS:
        return np.full_like(gray, 0.5)
    return (std / peak).astype(np.float32)


def ao_map(image: np.ndarray, sigma: Optional[float] = None) -> np.ndarray:
    """반전 그레이스케일의 대형 블러로 오목한(어두운) 영역을 어둡게"""
    if sigma is None:
        sigma = _large_sigma(image.shape, Config.AO_SIGMA_RATIO)
    inverted = 1.0 - np.clip(_gray(image), 0.0, 1.0)
    occlusion = cv2.GaussianBlur(inverted, (0, 0), sigmaX=sigma, sigmaY=sigma)
    return (1.0 - occlusion).astype(np.float32)


def preview_composite(albedo: np.ndarray, shading: np.ndarray) -> np.ndarray:
    return albedo * shading


def recolor_texture(
    image: np.ndarray,
    target_color: Sequence[int],
    preserve_grain: float,
    strength: float,
    check_cancelled: Optional[Callable[[], None]] = None,
) -> TextureMaps:
    """
    전체 스테인 리컬러 알고리즘.

    Args:
        image: (H, W, 3) float32 RGB, 0~1
        target_color: (r, g, b) 0~255
        preserve_grain: 0~1
        strength: 0~1
        check_cancelled: 단계 사이에서 호출되는 취소 확인 콜백

    Returns:
        TextureMaps (모든 맵이 원본과 같은 W×H)
    """
    def checkpoint():
        if check_cancelled is not None:
            check_cancelled()

    # 1. Intrinsic decomposition
    decomposition = decompose(image)
    checkpoint()

    # 2. Grain extraction
    grain = extract_grain(decomposition.albedo)
    checkpoint()

    # 3. Color transfer
    recolored = transfer_color(decomposition.albedo, target_color, preserve_grain)
    checkpoint()

    # 4. Grain reapplication
    final_albedo = reapply_grain(recolored, grain, strength)
    checkpoint()

    # 5. PBR maps
    normal = normal_map(grain)
    roughness = roughness_map(image)
    ao = ao_map(image)
    checkpoint()

    # 6. Preview
    preview = preview_composite(final_albedo, decomposition.shading)

    return TextureMaps(
        albedo=final_albedo,
        normal=normal,
        roughness=roughness,
        ao=ao,
        preview=preview,
    )
