"""
Export Stage

Mesh Artifact → 요청 포맷(glb, gltf, obj, ply, stl)으로 재인코딩
"""

import asyncio
import logging
import tempfile

from assetgen.reconstruction.mesh_tools import CONTENT_TYPES, MeshConverter
from assetgen.stages.base import StageContext, StageHandler, new_artifact_id
from assetgen.stages.mesh import load_mesh_artifact
from assetgen.stages.schemas import ExportArtifact, ExportInput
from assetgen.storage.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)


class ExportStage(StageHandler):
    name = "export"
    input_model = ExportInput

    def __init__(self, artifacts: ArtifactStore, converter: MeshConverter = None):
        self.artifacts = artifacts
        self.converter = converter or MeshConverter()

    async def run(self, ctx: StageContext, payload: ExportInput) -> ExportArtifact:
        _, mesh = await load_mesh_artifact(self.artifacts, payload.mesh_id)
        ctx.check_cancelled()

        with tempfile.TemporaryDirectory(prefix="export_") as work_dir:
            encoded = await asyncio.to_thread(
                self.converter.convert_all, mesh, payload.formats, work_dir
            )
        ctx.check_cancelled()

        export_id = new_artifact_id()
        exports = {}
        for fmt, data in encoded.items():
            exports[fmt] = await self.artifacts.put(
                f"export/{export_id}/model.{fmt}", data, CONTENT_TYPES[fmt]
            )

        logger.info(f"[Export] job={ctx.job_id} mesh={payload.mesh_id} formats={list(exports)}")
        return ExportArtifact(id=export_id, mesh_id=payload.mesh_id, exports=exports)
