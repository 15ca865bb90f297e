"""
Stain Recolor Stage

목재 사진 → 나뭇결을 보존한 리컬러 텍스처 세트
(albedo, normal, roughness, ao, preview PNG)
"""

import asyncio
import logging
from typing import Dict

import numpy as np

from assetgen.imaging.image_ops import ImageUtils
from assetgen.imaging.stain import TextureMaps, recolor_texture
from assetgen.stages.base import StageContext, StageHandler, new_artifact_id
from assetgen.stages.schemas import StainInput, TextureBundle
from assetgen.storage.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)


def encode_texture_maps(maps: TextureMaps) -> Dict[str, bytes]:
    """float 맵 → PNG 바이트. 0~1 클램프는 이 시점에만 적용"""
    encoded = {}
    for name, array in maps.items():
        encoded[name] = ImageUtils.encode_png(ImageUtils.float_to_uint8(array))
    return encoded


class StainStage(StageHandler):
    name = "stain"
    input_model = StainInput

    def __init__(self, artifacts: ArtifactStore):
        self.artifacts = artifacts

    async def run(self, ctx: StageContext, payload: StainInput) -> TextureBundle:
        source = payload.images[0]
        data = await self.artifacts.get(source.url)
        image = ImageUtils.to_float(ImageUtils.decode_image(data))
        ctx.check_cancelled()

        maps = await asyncio.to_thread(
            recolor_texture,
            image,
            payload.target_color,
            payload.preserve_grain,
            payload.strength,
            ctx.check_cancelled,
        )

        for name, array in maps.items():
            if array.shape[:2] != image.shape[:2]:
                raise RuntimeError(f"{name} map size {array.shape[:2]} differs from input {image.shape[:2]}")

        encoded = await asyncio.to_thread(encode_texture_maps, maps)
        ctx.check_cancelled()

        texture_id = new_artifact_id()
        urls = {}
        for name, png in encoded.items():
            urls[name] = await self.artifacts.put(f"stain/{texture_id}/{name}.png", png, "image/png")

        width, height = maps.size
        bundle = TextureBundle(
            id=texture_id,
            name=payload.name,
            width=width,
            height=height,
            stain_color=ImageUtils.hex_color(payload.target_color),
            preserve_grain=payload.preserve_grain,
            strength=payload.strength,
            **urls,
        )
        await self.artifacts.put_record("texture", texture_id, bundle.model_dump(mode="json"))

        logger.info(
            f"[Stain] job={ctx.job_id} texture={texture_id} {width}x{height} "
            f"color={bundle.stain_color} mean_albedo={float(np.mean(maps.albedo)):.3f}"
        )
        return bundle
