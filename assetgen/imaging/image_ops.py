import io

import numpy as np
from PIL import Image, ImageOps


class ImageUtils:
    @staticmethod
    def decode_image(data: bytes) -> Image.Image:
        """바이트 → RGB PIL 이미지 (EXIF 회전 반영)"""
        try:
            image = Image.open(io.BytesIO(data))
            image = ImageOps.exif_transpose(image)
            return image.convert("RGB")
        except Exception as e:
            raise ValueError(f"Image Decode Error: {e}")

    @staticmethod
    def to_float(pil_image: Image.Image) -> np.ndarray:
        """RGB PIL → float32 (H, W, 3), 0~1"""
        return np.asarray(pil_image.convert("RGB"), dtype=np.float32) / 255.0

    @staticmethod
    def float_to_uint8(array: np.ndarray) -> np.ndarray:
        """float 0~1 → uint8. 클램핑은 여기서 한 번만 수행"""
        return np.clip(np.rint(array * 255.0), 0, 255).astype(np.uint8)

    @staticmethod
    def encode_png(array: np.ndarray) -> bytes:
        """uint8 배열(H,W) 또는 (H,W,3)을 PNG 바이트로 인코딩"""
        buffer = io.BytesIO()
        Image.fromarray(array).save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def hex_color(rgb) -> str:
        r, g, b = (int(c) for c in rgb)
        return f"#{r:02x}{g:02x}{b:02x}"
