"""
Vision-and-Generation Client

외부 vision/generation 서비스 호출:
- detect_components(image) -> [{label, bbox, confidence, material}]
- image_to_mesh(image) -> {format: url}

네트워크 호출은 신뢰할 수 없다고 가정합니다.
타임아웃과 non-2xx 응답은 UpstreamError로 올리고, 내부 재시도는 하지 않습니다.
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

import aiohttp

from assetgen.errors import UpstreamError

logger = logging.getLogger(__name__)


class VisionClient(ABC):
    """외부 vision/generation 기능 계약"""

    @abstractmethod
    async def detect_components(self, image: bytes) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def image_to_mesh(self, image: bytes) -> Dict[str, str]:
        ...


class HttpVisionClient(VisionClient):
    """
    HTTP JSON API 클라이언트

    Endpoints:
        POST {api_url}/detect-components  {"image": base64} -> {"regions": [...]}
        POST {api_url}/image-to-mesh      {"image": base64} -> {"meshes": {"glb": url, ...}}
    """

    def __init__(self, api_url: str, timeout: int = 60):
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout

    async def _post(self, endpoint: str, image: bytes) -> Dict[str, Any]:
        url = f"{self.api_url}/{endpoint}"
        payload = {"image": base64.b64encode(image).decode("utf-8")}

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status < 200 or response.status >= 300:
                        text = await response.text()
                        raise UpstreamError(
                            f"Vision service {endpoint} returned HTTP {response.status}: {text[:200]}"
                        )
                    return await response.json()
        except asyncio.TimeoutError:
            raise UpstreamError(f"Vision service {endpoint} timed out after {self.timeout}s")
        except aiohttp.ClientError as e:
            raise UpstreamError(f"Vision service {endpoint} unreachable: {e}")

    async def detect_components(self, image: bytes) -> List[Dict[str, Any]]:
        result = await self._post("detect-components", image)
        regions = result.get("regions", [])
        logger.info(f"[VisionClient] detect-components returned {len(regions)} regions")
        return regions

    async def image_to_mesh(self, image: bytes) -> Dict[str, str]:
        result = await self._post("image-to-mesh", image)
        return dict(result.get("meshes") or {})
