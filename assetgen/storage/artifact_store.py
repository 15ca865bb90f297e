"""
Artifact Store Client

바이너리 blob 업로드/다운로드와 구조화 레코드 읽기/쓰기 인터페이스.

- get(url) -> bytes
- put(path, data, content_type) -> url  (같은 path 재업로드는 덮어쓰기)
- get_record(kind, record_id) / put_record(kind, record_id, record)
"""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from assetgen.errors import UpstreamError

logger = logging.getLogger(__name__)


class ArtifactStore(ABC):
    """아티팩트 저장소 계약"""

    @abstractmethod
    async def get(self, url: str) -> bytes:
        ...

    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str) -> str:
        ...

    @abstractmethod
    async def get_record(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def put_record(self, kind: str, record_id: str, record: Dict[str, Any]):
        ...


def is_remote_url(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


async def fetch_url(url: str, timeout: int = 30) -> bytes:
    """
    HTTP(S) URL에서 바이트를 가져옵니다.

    Raises:
        FileNotFoundError: non-200 응답
        UpstreamError: 연결 실패 또는 타임아웃
    """
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=timeout)
            ) as response:
                if response.status != 200:
                    raise FileNotFoundError(f"HTTP {response.status} for {url}")
                return await response.read()
    except asyncio.TimeoutError:
        raise UpstreamError(f"Fetch of {url} timed out after {timeout}s")
    except aiohttp.ClientError as e:
        raise UpstreamError(f"{url} unreachable: {e}")


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _write_file(path: str, data: bytes):
    # 임시 파일에 쓴 뒤 교체 (재업로드 시 덮어쓰기)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    tmp_path = path + ".part"
    with open(tmp_path, "wb") as f:
        f.write(data)
    os.replace(tmp_path, path)


def _read_json(path: str) -> Optional[Dict[str, Any]]:
    if not os.path.isfile(path):
        return None
    with open(path, "r") as f:
        return json.load(f)


def _write_json(path: str, record: Dict[str, Any]):
    _write_file(path, json.dumps(record, indent=2, default=str).encode("utf-8"))


class LocalArtifactStore(ArtifactStore):
    """
    로컬 디렉토리 기반 저장소

    blob은 root_dir/<path>에, 레코드는 root_dir/records/<kind>/<id>.json에 저장.
    반환 URL은 base_url/<path> (FastAPI /assets 정적 마운트와 일치).

    Usage:
        store = LocalArtifactStore(ASSETS_DIR)
        url = await store.put("stain/abc/albedo.png", png_bytes, "image/png")
        data = await store.get(url)
    """

    def __init__(self, root_dir: str, base_url: str = "/assets", fetch_timeout: int = 30):
        self.root_dir = os.path.abspath(root_dir)
        self.base_url = base_url.rstrip("/")
        self.fetch_timeout = fetch_timeout
        os.makedirs(self.root_dir, exist_ok=True)

    def _resolve(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.root_dir, path.lstrip("/")))
        if not full_path.startswith(self.root_dir + os.sep):
            raise ValueError(f"Path escapes artifact root: {path}")
        return full_path

    def url_to_path(self, url: str) -> str:
        """저장소 URL → 로컬 파일 경로"""
        if url.startswith(self.base_url + "/"):
            return self._resolve(url[len(self.base_url) + 1:])
        if url.startswith("file://"):
            return url[len("file://"):]
        return url

    async def get(self, url: str) -> bytes:
        if is_remote_url(url):
            return await fetch_url(url, timeout=self.fetch_timeout)

        path = self.url_to_path(url)
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Artifact not found: {url}")
        return await asyncio.to_thread(_read_file, path)

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        full_path = self._resolve(path)
        await asyncio.to_thread(_write_file, full_path, data)

        logger.debug(f"[ArtifactStore] Stored {path} ({len(data)} bytes, {content_type})")
        return f"{self.base_url}/{path.lstrip('/')}"

    def _record_path(self, kind: str, record_id: str) -> str:
        return self._resolve(os.path.join("records", kind, f"{record_id}.json"))

    async def get_record(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(_read_json, self._record_path(kind, record_id))

    async def put_record(self, kind: str, record_id: str, record: Dict[str, Any]):
        await asyncio.to_thread(_write_json, self._record_path(kind, record_id), record)


class MemoryArtifactStore(ArtifactStore):
    """프로세스 메모리 저장소 (테스트 및 로컬 실행용)"""

    def __init__(self, base_url: str = "mem://"):
        self.base_url = base_url
        self.blobs: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.records: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def get(self, url: str) -> bytes:
        if url in self.blobs:
            return self.blobs[url]
        if is_remote_url(url):
            return await fetch_url(url)
        raise FileNotFoundError(f"Artifact not found: {url}")

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        url = f"{self.base_url}{path.lstrip('/')}"
        async with self._lock:
            self.blobs[url] = bytes(data)
            self.content_types[url] = content_type
        return url

    async def get_record(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        return self.records.get(kind, {}).get(record_id)

    async def put_record(self, kind: str, record_id: str, record: Dict[str, Any]):
        async with self._lock:
            self.records.setdefault(kind, {})[record_id] = dict(record)
