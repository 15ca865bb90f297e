"""
Mesh Reconstruction & Conversion
"""

from .mesh_tools import (
    CONTENT_TYPES,
    MeshConverter,
    PhotogrammetryRunner,
    find_mesh_file,
    load_mesh,
    run_tool,
    validate_mesh,
)

__all__ = [
    'CONTENT_TYPES',
    'MeshConverter',
    'PhotogrammetryRunner',
    'find_mesh_file',
    'load_mesh',
    'run_tool',
    'validate_mesh',
]
