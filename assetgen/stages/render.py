"""
Turntable Render Stage

Mesh Artifact → 360° 턴테이블 (mp4 + 루프 GIF + 0/90/180/270° 썸네일)
"""

import asyncio
import logging
import math

from assetgen.imaging.image_ops import ImageUtils
from assetgen.imaging.turntable import (
    encode_gif,
    encode_video,
    render_turntable,
    thumbnail_indices,
    validate_frame_count,
)
from assetgen.stages.base import StageContext, StageHandler, new_artifact_id
from assetgen.stages.mesh import load_mesh_artifact
from assetgen.stages.schemas import RenderArtifact, RenderInput
from assetgen.storage.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)


class RenderStage(StageHandler):
    name = "render"
    input_model = RenderInput

    def __init__(self, artifacts: ArtifactStore):
        self.artifacts = artifacts

    def validate(self, payload: RenderInput):
        validate_frame_count(payload.frame_count)

    async def run(self, ctx: StageContext, payload: RenderInput) -> RenderArtifact:
        # 메시를 읽거나 렌더링하기 전에 거부
        validate_frame_count(payload.frame_count)

        _, mesh = await load_mesh_artifact(self.artifacts, payload.mesh_id)
        ctx.check_cancelled()

        poses, frames = await asyncio.to_thread(
            render_turntable,
            mesh,
            payload.frame_count,
            payload.width,
            payload.height,
            ctx.check_cancelled,
        )

        video = await asyncio.to_thread(encode_video, frames, payload.fps)
        ctx.check_cancelled()
        gif = await asyncio.to_thread(encode_gif, frames, payload.fps, payload.gif_scale)
        ctx.check_cancelled()

        render_id = new_artifact_id()
        video_url = await self.artifacts.put(f"render/{render_id}/turntable.mp4", video, "video/mp4")
        gif_url = await self.artifacts.put(f"render/{render_id}/turntable.gif", gif, "image/gif")

        thumbnail_urls = []
        for index in thumbnail_indices(payload.frame_count):
            degrees = int(round(math.degrees(poses[index].angle)))
            png = ImageUtils.encode_png(frames[index])
            thumbnail_urls.append(
                await self.artifacts.put(f"render/{render_id}/thumb_{degrees:03d}.png", png, "image/png")
            )

        artifact = RenderArtifact(
            id=render_id,
            mesh_id=payload.mesh_id,
            frame_count=payload.frame_count,
            width=payload.width,
            height=payload.height,
            fps=payload.fps,
            video_url=video_url,
            gif_url=gif_url,
            thumbnail_urls=thumbnail_urls,
        )
        await self.artifacts.put_record("render", render_id, artifact.model_dump(mode="json"))

        logger.info(
            f"[Render] job={ctx.job_id} mesh={payload.mesh_id} frames={payload.frame_count} "
            f"{payload.width}x{payload.height}@{payload.fps}fps"
        )
        return artifact
