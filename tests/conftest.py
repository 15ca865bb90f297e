"""
pytest configuration and shared fixtures
"""
import io

import numpy as np
import pytest
import trimesh
from PIL import Image

from assetgen.jobs import JobStore
from assetgen.storage import MemoryArtifactStore
from assetgen.vision import VisionClient


# pytest-asyncio mode 설정
pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "asyncio: marks tests as async")


class FakeVisionClient(VisionClient):
    """고정 응답을 돌려주는 vision 클라이언트"""

    def __init__(self, regions=None, meshes=None):
        self.regions = regions if regions is not None else []
        self.meshes = meshes if meshes is not None else {}
        self.detect_calls = 0
        self.mesh_calls = 0

    async def detect_components(self, image):
        self.detect_calls += 1
        if callable(self.regions):
            return self.regions(self.detect_calls)
        return list(self.regions)

    async def image_to_mesh(self, image):
        self.mesh_calls += 1
        return dict(self.meshes)


def make_wood_image(width=64, height=48, seed=0) -> np.ndarray:
    """나뭇결 줄무늬 + 조명 그라디언트가 있는 uint8 RGB 이미지"""
    rng = np.random.default_rng(seed)
    x = np.linspace(0, 12 * np.pi, width)
    stripes = 0.5 + 0.25 * np.sin(x)[None, :] + 0.05 * rng.standard_normal((height, width))
    light = np.linspace(0.7, 1.0, height)[:, None]
    base = np.array([0.62, 0.45, 0.30])
    image = np.clip(stripes[..., None] * light[..., None] * base * 1.6, 0, 1)
    return (image * 255).astype(np.uint8)


def encode_image(array: np.ndarray, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def wood_png():
    return encode_image(make_wood_image())


@pytest.fixture
def artifacts():
    return MemoryArtifactStore()


@pytest.fixture
def job_store():
    return JobStore()


@pytest.fixture
def box_mesh():
    return trimesh.creation.box(extents=(1.0, 0.6, 0.4))


@pytest.fixture
def fake_vision():
    return FakeVisionClient(
        regions=[
            {"label": "leg", "bbox": [2, 2, 20, 40], "confidence": 0.9, "material": "oak"},
            {"label": "seat", "bbox": [10, 5, 60, 25], "confidence": 0.8, "material": "fabric"},
        ],
        meshes={"glb": "https://cdn.example.com/chair.glb"},
    )
