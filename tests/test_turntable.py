"""
Tests for assetgen/imaging/turntable.py

턴테이블 렌더링:
- 카메라 각도 2π·i/F, [0, 2π) 오름차순
- F < 2 검증
- 프레임 크기 / 배경 / 오브젝트 픽셀
- GIF / mp4 인코딩
"""

import math

import numpy as np
import pytest
import trimesh

from assetgen.config import Config
from assetgen.errors import InvalidFrameCount, JobCancelled
from assetgen.imaging.turntable import (
    camera_angles,
    camera_poses,
    encode_gif,
    encode_video,
    prepare_mesh,
    render_frame,
    render_turntable,
    thumbnail_indices,
)


class TestCameraPath:
    """카메라 경로"""

    @pytest.mark.parametrize("frame_count", [2, 3, 36, 100])
    def test_angles_cover_full_turn(self, frame_count):
        """각도 = 2π·i/F, 엄격히 증가, 2π 미포함"""
        angles = camera_angles(frame_count)
        assert len(angles) == frame_count
        assert angles[0] == 0.0
        for i, angle in enumerate(angles):
            assert angle == pytest.approx(2 * math.pi * i / frame_count)
        assert all(b > a for a, b in zip(angles, angles[1:]))
        assert angles[-1] < 2 * math.pi

    @pytest.mark.parametrize("frame_count", [-1, 0, 1])
    def test_too_few_frames_rejected(self, frame_count):
        with pytest.raises(InvalidFrameCount):
            camera_angles(frame_count)

    def test_constant_distance_and_elevation(self):
        """모든 포즈가 같은 거리/높이"""
        poses = camera_poses(8)
        heights = {round(p.eye[1], 6) for p in poses}
        distances = {round(float(np.linalg.norm(p.eye)), 6) for p in poses}
        assert len(heights) == 1
        assert distances == {round(Config.CAMERA_DISTANCE, 6)}

    def test_thumbnail_indices(self):
        """0/90/180/270° 프레임"""
        assert thumbnail_indices(36) == [0, 9, 18, 27]
        assert thumbnail_indices(2) == [0, 1]


class TestPrepareMesh:
    """렌더링용 정규화"""

    def test_unit_radius(self, box_mesh):
        prepared = prepare_mesh(box_mesh)
        assert float(np.linalg.norm(prepared.vertices, axis=1).max()) == pytest.approx(1.0)
        assert prepared.face_colors.shape == (len(box_mesh.faces), 3)

    def test_empty_mesh(self):
        with pytest.raises(ValueError):
            prepare_mesh(trimesh.Trimesh())


class TestRender:
    """프레임 렌더링"""

    def test_frame_shape_and_content(self, box_mesh):
        """배경 위에 오브젝트가 그려짐"""
        pose = camera_poses(4)[0]
        frame = render_frame(prepare_mesh(box_mesh), pose, 64, 48)
        assert frame.shape == (48, 64, 3)
        assert frame.dtype == np.uint8
        background = np.array(Config.BACKGROUND_COLOR, dtype=np.uint8)
        assert frame[0, 0].tolist() == background.tolist()
        assert (frame != background).any(axis=-1).sum() > 50

    def test_render_turntable_frame_count(self, box_mesh):
        poses, frames = render_turntable(box_mesh, 6, 32, 32)
        assert len(poses) == len(frames) == 6
        assert [p.index for p in poses] == list(range(6))

    def test_invalid_frame_count_before_render(self):
        """F < 2면 메시를 보기 전에 실패"""
        with pytest.raises(InvalidFrameCount):
            render_turntable(trimesh.Trimesh(), 1, 32, 32)

    def test_cancelled_mid_render(self, box_mesh):
        calls = []

        def check():
            calls.append(1)
            if len(calls) > 3:
                raise JobCancelled("stop")

        with pytest.raises(JobCancelled):
            render_turntable(box_mesh, 10, 16, 16, check_cancelled=check)
        assert len(calls) == 4


class TestEncoding:
    """GIF / mp4"""

    def test_gif_header(self, box_mesh):
        _, frames = render_turntable(box_mesh, 4, 32, 32)
        data = encode_gif(frames, fps=12, scale=0.5)
        assert data[:6] in (b"GIF87a", b"GIF89a")

    @pytest.mark.slow
    def test_mp4_container(self, box_mesh):
        _, frames = render_turntable(box_mesh, 4, 32, 32)
        data = encode_video(frames, fps=12)
        assert b"ftyp" in data[:64]
