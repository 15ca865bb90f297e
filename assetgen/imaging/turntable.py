"""
Turntable Renderer

메시 주위를 한 바퀴 도는 카메라 경로를 만들고 프레임을 렌더링합니다.

- 카메라 각도: angle_i = 2π·i/F (i = 0..F-1), 높이/거리 고정
- 3점 조명 (key / fill / rim): 카메라 기준으로 고정된 스튜디오 리그
- 프레임별 렌더링은 상태가 없음 (메시 + 포즈만으로 재현 가능)
- OpenCV fillConvexPoly 기반 painter's algorithm 래스터라이저
"""

import logging
import math
import os
import tempfile
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import cv2
import imageio
import numpy as np
import trimesh

from assetgen.config import Config
from assetgen.errors import InvalidFrameCount

logger = logging.getLogger(__name__)

DEFAULT_BASE_COLOR = np.array([176, 140, 104], dtype=np.float32) / 255.0


@dataclass(frozen=True)
class CameraPose:
    """카메라 포즈 (월드 좌표, Y-up)"""
    index: int
    angle: float
    eye: Tuple[float, float, float]
    target: Tuple[float, float, float] = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Light:
    """카메라 기준 방향광 (x: 오른쪽, y: 위, z: 카메라 쪽)"""
    name: str
    direction: Tuple[float, float, float]
    intensity: float


THREE_POINT_RIG: Tuple[Light, ...] = (
    Light("key", (-0.6, 0.6, 0.55), 0.85),
    Light("fill", (0.7, 0.2, 0.7), 0.35),
    Light("rim", (0.0, 0.5, -0.9), 0.45),
)
AMBIENT = 0.15


@dataclass
class PreparedMesh:
    """원점 중심, 단위 반경으로 정규화된 메시 데이터"""
    vertices: np.ndarray     # (V, 3)
    faces: np.ndarray        # (F, 3)
    face_normals: np.ndarray  # (F, 3)
    face_colors: np.ndarray  # (F, 3) float 0~1


def validate_frame_count(frame_count: int):
    if frame_count is None or int(frame_count) < 2:
        raise InvalidFrameCount(frame_count)


def camera_angles(frame_count: int) -> List[float]:
    """[0, 2π)를 균등 분할한 오름차순 각도 목록"""
    validate_frame_count(frame_count)
    return [2.0 * math.pi * i / frame_count for i in range(frame_count)]


def camera_poses(
    frame_count: int,
    elevation_deg: float = None,
    distance: float = None,
) -> List[CameraPose]:
    elevation = math.radians(Config.CAMERA_ELEVATION_DEG if elevation_deg is None else elevation_deg)
    distance = Config.CAMERA_DISTANCE if distance is None else distance

    height = distance * math.sin(elevation)
    radius = distance * math.cos(elevation)

    poses = []
    for i, angle in enumerate(camera_angles(frame_count)):
        eye = (radius * math.sin(angle), height, radius * math.cos(angle))
        poses.append(CameraPose(index=i, angle=angle, eye=eye))
    return poses


def prepare_mesh(mesh: trimesh.Trimesh) -> PreparedMesh:
    """렌더링용 메시 정규화 (중심 이동 + 단위 반경 스케일)"""
    vertices = np.asarray(mesh.vertices, dtype=np.float64)
    faces = np.asarray(mesh.faces, dtype=np.int64)
    if len(vertices) == 0 or len(faces) == 0:
        raise ValueError("Mesh has no geometry to render")

    bounds_min, bounds_max = vertices.min(axis=0), vertices.max(axis=0)
    center = (bounds_min + bounds_max) / 2.0
    vertices = vertices - center
    radius = float(np.linalg.norm(vertices, axis=1).max())
    if radius > 0:
        vertices = vertices / radius

    tri = vertices[faces]
    normals = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    normals = normals / np.maximum(lengths, 1e-12)

    return PreparedMesh(
        vertices=vertices,
        faces=faces,
        face_normals=normals,
        face_colors=_face_colors(mesh, len(faces)),
    )


def _face_colors(mesh: trimesh.Trimesh, face_count: int) -> np.ndarray:
    visual = getattr(mesh, "visual", None)
    if visual is not None and getattr(visual, "kind", None) == "face":
        colors = np.asarray(visual.face_colors, dtype=np.float32)[:, :3] / 255.0
        if len(colors) == face_count:
            return colors
    if visual is not None and getattr(visual, "kind", None) == "vertex":
        vertex_colors = np.asarray(visual.vertex_colors, dtype=np.float32)[:, :3] / 255.0
        return vertex_colors[np.asarray(mesh.faces)].mean(axis=1)
    return np.tile(DEFAULT_BASE_COLOR, (face_count, 1))


def _camera_basis(pose: CameraPose):
    eye = np.array(pose.eye, dtype=np.float64)
    target = np.array(pose.target, dtype=np.float64)
    forward = target - eye
    forward /= np.linalg.norm(forward)
    right = np.cross(forward, np.array([0.0, 1.0, 0.0]))
    right /= np.linalg.norm(right)
    up = np.cross(right, forward)
    return eye, forward, right, up


def render_frame(
    mesh: PreparedMesh,
    pose: CameraPose,
    width: int,
    height: int,
    rig: Sequence[Light] = THREE_POINT_RIG,
    fov_deg: float = None,
    background: Tuple[int, int, int] = None,
) -> np.ndarray:
    """
    단일 포즈 렌더링.

    Returns:
        (height, width, 3) uint8 RGB 프레임
    """
    fov = math.radians(Config.CAMERA_FOV_DEG if fov_deg is None else fov_deg)
    background = Config.BACKGROUND_COLOR if background is None else background
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[:] = background

    eye, forward, right, up = _camera_basis(pose)

    # 카메라 좌표계로 변환
    rel = mesh.vertices - eye
    cam_x = rel @ right
    cam_y = rel @ up
    cam_z = rel @ forward

    focal = 0.5 * height / math.tan(fov / 2.0)
    z = np.maximum(cam_z, 1e-6)
    screen = np.stack([
        width / 2.0 + focal * cam_x / z,
        height / 2.0 - focal * cam_y / z,
    ], axis=-1)

    # 후면 제거
    centroids = mesh.vertices[mesh.faces].mean(axis=1)
    to_eye = eye - centroids
    visible = np.einsum("ij,ij->i", mesh.face_normals, to_eye) > 0
    visible &= (cam_z[mesh.faces] > 1e-6).all(axis=1)

    # 조명 (카메라 리그 → 월드 방향)
    intensity = np.full(len(mesh.faces), AMBIENT, dtype=np.float64)
    for light in rig:
        lx, ly, lz = light.direction
        direction = lx * right + ly * up - lz * forward
        direction /= np.linalg.norm(direction)
        intensity += light.intensity * np.clip(mesh.face_normals @ direction, 0.0, None)

    shaded = np.clip(mesh.face_colors * intensity[:, None], 0.0, 1.0)
    colors = np.rint(shaded * 255.0).astype(np.uint8)

    # painter's algorithm: 먼 면부터 그리기
    depth = cam_z[mesh.faces].mean(axis=1)
    order = np.argsort(-depth)
    polygons = np.rint(screen[mesh.faces] * 16.0).astype(np.int32)

    for face_idx in order:
        if not visible[face_idx]:
            continue
        color = colors[face_idx]
        cv2.fillConvexPoly(
            frame,
            polygons[face_idx],
            (int(color[0]), int(color[1]), int(color[2])),
            lineType=cv2.LINE_AA,
            shift=4,
        )

    return frame


def render_turntable(
    mesh: trimesh.Trimesh,
    frame_count: int,
    width: int,
    height: int,
    check_cancelled: Optional[Callable[[], None]] = None,
) -> Tuple[List[CameraPose], List[np.ndarray]]:
    """
    전체 턴테이블 프레임 렌더링 (각도 오름차순).

    frame_count < 2면 렌더링 전에 InvalidFrameCount.
    """
    validate_frame_count(frame_count)
    poses = camera_poses(frame_count)
    prepared = prepare_mesh(mesh)

    frames = []
    for pose in poses:
        if check_cancelled is not None:
            check_cancelled()
        frames.append(render_frame(prepared, pose, width, height))

    logger.info(f"[Turntable] Rendered {len(frames)} frames at {width}x{height}")
    return poses, frames


def thumbnail_indices(frame_count: int) -> List[int]:
    """0°, 90°, 180°, 270°에 가장 가까운 프레임 인덱스 (중복 제거, 오름차순)"""
    indices = {int(round(frame_count * q / 4.0)) % frame_count for q in range(4)}
    return sorted(indices)


def encode_video(frames: Sequence[np.ndarray], fps: int) -> bytes:
    """프레임 시퀀스 → mp4 바이트 (imageio-ffmpeg)"""
    with tempfile.TemporaryDirectory() as tmp_dir:
        video_path = os.path.join(tmp_dir, "turntable.mp4")
        imageio.mimsave(video_path, list(frames), fps=fps, macro_block_size=2)
        with open(video_path, "rb") as f:
            return f.read()


def encode_gif(frames: Sequence[np.ndarray], fps: int, scale: float = None) -> bytes:
    """
    프레임 시퀀스 → 무한 루프 축소 GIF 바이트

    duration은 프레임당 밀리초, loop=0은 무한 반복입니다.
    """
    scale = Config.GIF_SCALE if scale is None else scale
    small_frames = []
    for frame in frames:
        h, w = frame.shape[:2]
        size = (max(1, int(w * scale)), max(1, int(h * scale)))
        small_frames.append(cv2.resize(frame, size, interpolation=cv2.INTER_AREA))

    with tempfile.TemporaryDirectory() as tmp_dir:
        gif_path = os.path.join(tmp_dir, "turntable.gif")
        imageio.mimsave(
            gif_path,
            small_frames,
            format="GIF",
            duration=1000.0 / fps,
            loop=0,
        )
        with open(gif_path, "rb") as f:
            return f.read()
