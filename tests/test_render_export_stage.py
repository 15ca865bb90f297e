"""
Tests for assetgen/stages/render.py and assetgen/stages/export.py

- 존재하지 않는 mesh_id → MeshNotFound (UpstreamError)
- F < 2 → 메시 조회 전에 InvalidFrameCount
- 턴테이블: 비디오, GIF, 썸네일 업로드
- Export: 요청 포맷만 재인코딩
"""

from unittest.mock import patch

import pytest

from assetgen.errors import InvalidFrameCount, MeshNotFound, UpstreamError
from assetgen.reconstruction.mesh_tools import load_mesh
from assetgen.stages.base import StageContext
from assetgen.stages.export import ExportStage
from assetgen.stages.render import RenderStage
from assetgen.stages.schemas import ExportInput, RenderInput


async def seed_mesh(artifacts, mesh, mesh_id="mesh1"):
    url = await artifacts.put(f"mesh/{mesh_id}/model.glb", mesh.export(file_type="glb"), "model/gltf-binary")
    await artifacts.put_record("mesh", mesh_id, {
        "id": mesh_id,
        "method": "photogrammetry",
        "meshes": {"glb": url},
        "primary_format": "glb",
    })
    return mesh_id


class TestRenderStage:
    """RenderStage.run"""

    @pytest.mark.asyncio
    async def test_missing_mesh(self, artifacts):
        with pytest.raises(MeshNotFound) as exc_info:
            await RenderStage(artifacts).run(StageContext(job_id="j"), RenderInput(mesh_id="nope"))
        assert isinstance(exc_info.value, UpstreamError)

    @pytest.mark.asyncio
    async def test_invalid_frame_count_before_lookup(self, artifacts):
        stage = RenderStage(artifacts)
        with patch("assetgen.stages.render.load_mesh_artifact") as mock_load:
            with pytest.raises(InvalidFrameCount):
                await stage.run(StageContext(job_id="j"), RenderInput(mesh_id="m", frame_count=1))
        mock_load.assert_not_called()

    def test_validate_hook(self, artifacts):
        with pytest.raises(InvalidFrameCount):
            RenderStage(artifacts).validate(RenderInput(mesh_id="m", frame_count=0))

    @pytest.mark.asyncio
    async def test_turntable_outputs(self, artifacts, box_mesh):
        mesh_id = await seed_mesh(artifacts, box_mesh)
        payload = RenderInput(mesh_id=mesh_id, frame_count=8, width=32, height=32, fps=8)

        with patch("assetgen.stages.render.encode_video", return_value=b"mp4-bytes"):
            artifact = await RenderStage(artifacts).run(StageContext(job_id="j"), payload)

        assert artifact.mesh_id == mesh_id
        assert artifact.frame_count == 8
        assert artifacts.blobs[artifact.video_url] == b"mp4-bytes"
        assert artifacts.blobs[artifact.gif_url][:3] == b"GIF"
        assert len(artifact.thumbnail_urls) == 4
        assert artifact.thumbnail_urls[1].endswith("thumb_090.png")
        assert artifact.id in artifacts.records["render"]


class TestExportStage:
    """ExportStage.run"""

    @pytest.mark.asyncio
    async def test_exports_requested_formats(self, artifacts, box_mesh):
        mesh_id = await seed_mesh(artifacts, box_mesh)
        payload = ExportInput(mesh_id=mesh_id, formats=["STL", "obj", "stl"])

        artifact = await ExportStage(artifacts).run(StageContext(job_id="j"), payload)

        assert list(artifact.exports) == ["stl", "obj"]
        for fmt, url in artifact.exports.items():
            assert len(load_mesh(artifacts.blobs[url], fmt).faces) == 12

    @pytest.mark.asyncio
    async def test_missing_mesh(self, artifacts):
        with pytest.raises(MeshNotFound):
            await ExportStage(artifacts).run(StageContext(job_id="j"), ExportInput(mesh_id="x", formats=["glb"]))

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            ExportInput(mesh_id="x", formats=["usdz"])
