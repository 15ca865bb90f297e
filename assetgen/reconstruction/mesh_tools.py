"""
Reconstruction & Format Conversion Tools

외부 structure-from-motion 도구와 포맷 변환 도구를 subprocess로 실행합니다.
- 실패 신호: non-zero exit 또는 빈 출력 → ReconstructionFailed
- trimesh가 지원하는 포맷(glb, gltf, obj, ply, stl)은 프로세스 내에서 변환
- usdz는 외부 변환기(usd_from_gltf 등) 사용
"""

import glob
import io
import logging
import os
import shlex
import subprocess
from typing import Dict, List, Optional, Union

import numpy as np
import trimesh
from trimesh.exchange.gltf import export_gltf

from assetgen.config import Config
from assetgen.errors import ReconstructionFailed

logger = logging.getLogger(__name__)

CONTENT_TYPES: Dict[str, str] = {
    "glb": "model/gltf-binary",
    "gltf": "model/gltf+json",
    "obj": "text/plain",
    "ply": "application/octet-stream",
    "stl": "model/stl",
    "usdz": "model/vnd.usdz+zip",
}

# SfM 출력에서 찾을 메시 확장자 (우선순위 순)
MESH_EXTENSIONS = ("obj", "glb", "gltf", "ply")


def run_tool(command_template: str, timeout: int = None, **paths) -> subprocess.CompletedProcess:
    """
    명령 템플릿에 경로를 채워 실행합니다.

    Raises:
        ReconstructionFailed: 실행 불가, 타임아웃, non-zero exit
    """
    timeout = timeout or Config.TOOL_TIMEOUT
    cmd = [part.format(**paths) for part in shlex.split(command_template)]
    logger.info(f"[MeshTools] Running: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise ReconstructionFailed(f"{cmd[0]} timed out (exceeded {timeout}s)")
    except FileNotFoundError:
        raise ReconstructionFailed(f"{cmd[0]} is not installed")

    if result.stdout:
        logger.debug(f"[MeshTools][stdout] {result.stdout[-2000:]}")

    if result.returncode != 0:
        error_msg = (result.stderr or result.stdout or "").strip()
        raise ReconstructionFailed(
            f"{cmd[0]} exited with code {result.returncode}: {error_msg[-500:]}"
        )
    return result


def find_mesh_file(output_dir: str) -> Optional[str]:
    """출력 디렉토리에서 가장 우선순위가 높은 비어있지 않은 메시 파일"""
    for ext in MESH_EXTENSIONS:
        candidates = sorted(glob.glob(os.path.join(output_dir, "**", f"*.{ext}"), recursive=True))
        for path in candidates:
            if os.path.getsize(path) > 0:
                return path
    return None


def load_mesh(source: Union[str, bytes], file_type: Optional[str] = None) -> trimesh.Trimesh:
    """
    파일 경로 또는 바이트에서 단일 Trimesh를 로드합니다.
    Scene이면 모든 geometry를 합칩니다.
    """
    if isinstance(source, (bytes, bytearray)):
        loaded = trimesh.load(io.BytesIO(source), file_type=file_type, force="mesh")
    else:
        loaded = trimesh.load(source, file_type=file_type, force="mesh")

    if isinstance(loaded, trimesh.Scene):
        geometries = [g for g in loaded.geometry.values() if isinstance(g, trimesh.Trimesh)]
        if not geometries:
            raise ReconstructionFailed("mesh file contains no geometry")
        loaded = trimesh.util.concatenate(geometries)

    if not isinstance(loaded, trimesh.Trimesh):
        raise ReconstructionFailed(f"unsupported mesh content: {type(loaded).__name__}")
    return loaded


def validate_mesh(mesh: trimesh.Trimesh):
    """빈 메시 또는 면적 0인 퇴화 메시 거부"""
    if len(mesh.vertices) == 0 or len(mesh.faces) == 0:
        raise ReconstructionFailed("reconstruction produced empty geometry")
    if not np.isfinite(mesh.vertices).all():
        raise ReconstructionFailed("reconstruction produced non-finite vertices")
    if float(mesh.area) <= 0.0:
        raise ReconstructionFailed("reconstruction produced degenerate geometry (zero area)")


class PhotogrammetryRunner:
    """
    외부 SfM 도구 실행기

    Usage:
        runner = PhotogrammetryRunner()
        mesh_path = runner.reconstruct(images_dir, output_dir)
    """

    def __init__(self, command: str = None, timeout: int = None):
        self.command = command or Config.SFM_COMMAND
        self.timeout = timeout or Config.TOOL_TIMEOUT

    def reconstruct(self, images_dir: str, output_dir: str) -> str:
        os.makedirs(output_dir, exist_ok=True)
        run_tool(self.command, timeout=self.timeout, images=images_dir, output=output_dir)

        mesh_path = find_mesh_file(output_dir)
        if mesh_path is None:
            raise ReconstructionFailed("reconstruction tool produced no mesh file")
        logger.info(f"[Photogrammetry] Mesh produced: {mesh_path}")
        return mesh_path


class MeshConverter:
    """
    하나의 텍스처 메시 → 여러 인코딩

    Usage:
        converter = MeshConverter()
        encoded = converter.convert_all(mesh, ["glb", "usdz"], work_dir)
    """

    def __init__(self, usdz_command: str = None, timeout: int = None):
        self.usdz_command = usdz_command or Config.USDZ_COMMAND
        self.timeout = timeout or Config.TOOL_TIMEOUT

    def convert(self, mesh: trimesh.Trimesh, fmt: str, work_dir: str) -> bytes:
        fmt = fmt.lower()
        if fmt == "usdz":
            return self._convert_usdz(mesh, work_dir)
        if fmt == "gltf":
            files = export_gltf(trimesh.Scene(mesh), embed_buffers=True)
            return files["model.gltf"]
        if fmt not in CONTENT_TYPES:
            raise ValueError(f"Unsupported mesh format: {fmt}")

        data = mesh.export(file_type=fmt)
        if isinstance(data, str):
            data = data.encode("utf-8")
        return data

    def _convert_usdz(self, mesh: trimesh.Trimesh, work_dir: str) -> bytes:
        glb_path = os.path.join(work_dir, "source.glb")
        usdz_path = os.path.join(work_dir, "model.usdz")
        with open(glb_path, "wb") as f:
            f.write(mesh.export(file_type="glb"))

        run_tool(self.usdz_command, timeout=self.timeout, input=glb_path, output=usdz_path)

        if not os.path.exists(usdz_path) or os.path.getsize(usdz_path) == 0:
            raise ReconstructionFailed("usdz conversion produced no output")
        with open(usdz_path, "rb") as f:
            return f.read()

    def convert_all(self, mesh: trimesh.Trimesh, formats: List[str], work_dir: str) -> Dict[str, bytes]:
        os.makedirs(work_dir, exist_ok=True)
        return {fmt: self.convert(mesh, fmt, work_dir) for fmt in formats}
