"""
API Configuration

환경변수 설정 및 저장소 경로
"""

import os

# Thread limits (OpenCV / numpy 스테이지 워커가 코어를 과점하지 않도록)
os.environ.setdefault("OMP_NUM_THREADS", "4")
os.environ.setdefault("OPENBLAS_NUM_THREADS", "4")
os.environ.setdefault("MKL_NUM_THREADS", "4")

from assetgen.config import Config

# Assets directory (LocalArtifactStore 루트, /assets 정적 마운트)
ASSETS_DIR = os.environ.get(
    "ASSETGEN_ASSETS_DIR",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "assets"),
)
os.makedirs(ASSETS_DIR, exist_ok=True)

ASSETS_BASE_URL = "/assets"

# External vision / generation service
VISION_API_URL = Config.VISION_API_URL
VISION_TIMEOUT = Config.VISION_TIMEOUT

# Logging
LOG_LEVEL = os.environ.get("ASSETGEN_LOG_LEVEL", "INFO").upper()

# Device
device = Config.DEVICE

# Server
API_HOST = os.environ.get("ASSETGEN_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("ASSETGEN_PORT", "8000"))
