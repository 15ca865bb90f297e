"""
Mesh Generation Stage

두 가지 모드:
- single_image: 외부 image→3D 기능 호출, 반환된 포맷별 URL을 그대로 전달
- photogrammetry: 전체 Image Set → 외부 SfM 도구 → 검증 → 포맷 변환 (glb, usdz, ...)

생성된 Mesh Artifact는 "mesh" 레코드로 저장되어 render/export 작업이 mesh_id로 참조합니다.
"""

import asyncio
import logging
import os
import tempfile
from typing import Dict, Optional

from assetgen.config import Config
from assetgen.errors import MeshNotFound, ReconstructionFailed, UpstreamError
from assetgen.reconstruction.mesh_tools import (
    CONTENT_TYPES,
    MeshConverter,
    PhotogrammetryRunner,
    load_mesh,
    validate_mesh,
)
from assetgen.stages.base import StageContext, StageHandler, new_artifact_id
from assetgen.stages.schemas import MeshArtifact, MeshInput, MeshMode
from assetgen.storage.artifact_store import ArtifactStore
from assetgen.vision.client import VisionClient

logger = logging.getLogger(__name__)


def _write_bytes(path: str, data: bytes):
    with open(path, "wb") as f:
        f.write(data)


def _image_extension(url: str) -> str:
    ext = os.path.splitext(url.split("?", 1)[0])[1].lower()
    return ext if ext in (".jpg", ".jpeg", ".png", ".webp") else ".jpg"


def _primary_format(meshes: Dict[str, str]) -> str:
    if Config.PRIMARY_MESH_FORMAT in meshes:
        return Config.PRIMARY_MESH_FORMAT
    return next(iter(meshes))


class MeshStage(StageHandler):
    name = "mesh"
    input_model = MeshInput

    def __init__(
        self,
        artifacts: ArtifactStore,
        vision: VisionClient,
        runner: Optional[PhotogrammetryRunner] = None,
        converter: Optional[MeshConverter] = None,
    ):
        self.artifacts = artifacts
        self.vision = vision
        self.runner = runner or PhotogrammetryRunner()
        self.converter = converter or MeshConverter()

    async def run(self, ctx: StageContext, payload: MeshInput) -> MeshArtifact:
        if payload.mode == MeshMode.PHOTOGRAMMETRY:
            artifact = await self._photogrammetry(ctx, payload)
        else:
            artifact = await self._single_image(ctx, payload)

        await self.artifacts.put_record("mesh", artifact.id, artifact.model_dump(mode="json"))
        logger.info(
            f"[Mesh] job={ctx.job_id} mesh={artifact.id} method={artifact.method.value} "
            f"formats={list(artifact.meshes)}"
        )
        return artifact

    async def _single_image(self, ctx: StageContext, payload: MeshInput) -> MeshArtifact:
        data = await self.artifacts.get(payload.images[0].url)
        ctx.check_cancelled()

        meshes = await self.vision.image_to_mesh(data)
        ctx.add_cost(1.0)
        meshes = {fmt.lower(): url for fmt, url in meshes.items() if url}
        if not meshes:
            raise ReconstructionFailed("image-to-mesh service returned no mesh references")

        return MeshArtifact(
            id=new_artifact_id(),
            method=MeshMode.SINGLE_IMAGE,
            meshes=meshes,
            primary_format=_primary_format(meshes),
        )

    async def _photogrammetry(self, ctx: StageContext, payload: MeshInput) -> MeshArtifact:
        mesh_id = new_artifact_id()

        with tempfile.TemporaryDirectory(prefix=f"mesh_{mesh_id}_") as work_dir:
            images_dir = os.path.join(work_dir, "images")
            output_dir = os.path.join(work_dir, "sfm")
            convert_dir = os.path.join(work_dir, "convert")
            os.makedirs(images_dir)

            for index, source in enumerate(payload.images):
                data = await self.artifacts.get(source.url)
                path = os.path.join(images_dir, f"{index:03d}{_image_extension(source.url)}")
                await asyncio.to_thread(_write_bytes, path, data)
            ctx.check_cancelled()

            mesh_path = await asyncio.to_thread(self.runner.reconstruct, images_dir, output_dir)
            ctx.check_cancelled()

            try:
                mesh = await asyncio.to_thread(load_mesh, mesh_path)
            except ReconstructionFailed:
                raise
            except Exception as e:
                raise ReconstructionFailed(f"could not load reconstructed mesh: {e}")
            validate_mesh(mesh)
            ctx.check_cancelled()

            encoded = await asyncio.to_thread(
                self.converter.convert_all, mesh, payload.formats, convert_dir
            )

        meshes = {}
        for fmt, data in encoded.items():
            meshes[fmt] = await self.artifacts.put(
                f"mesh/{mesh_id}/model.{fmt}", data, CONTENT_TYPES[fmt]
            )

        return MeshArtifact(
            id=mesh_id,
            method=MeshMode.PHOTOGRAMMETRY,
            meshes=meshes,
            primary_format=_primary_format(meshes),
            vertex_count=len(mesh.vertices),
            face_count=len(mesh.faces),
        )


# render/export가 읽을 수 있는 포맷 (우선순위 순)
LOADABLE_FORMATS = ("glb", "gltf", "obj", "ply", "stl")


async def load_mesh_artifact(artifacts: ArtifactStore, mesh_id: str):
    """
    mesh_id → (MeshArtifact, trimesh.Trimesh)

    Raises:
        MeshNotFound: 레코드가 없는 경우
        UpstreamError: 읽을 수 있는 포맷이 없는 경우
    """
    record = await artifacts.get_record("mesh", mesh_id)
    if record is None:
        raise MeshNotFound(mesh_id)
    artifact = MeshArtifact.model_validate(record)

    fmt = next((f for f in LOADABLE_FORMATS if f in artifact.meshes), None)
    if fmt is None:
        raise UpstreamError(
            f"mesh artifact {mesh_id} has no renderable format (have {sorted(artifact.meshes)})"
        )

    data = await artifacts.get(artifact.meshes[fmt])
    try:
        mesh = await asyncio.to_thread(load_mesh, data, fmt)
    except ReconstructionFailed:
        raise
    except Exception as e:
        raise UpstreamError(f"mesh artifact {mesh_id} could not be decoded as {fmt}: {e}")
    validate_mesh(mesh)
    return artifact, mesh
