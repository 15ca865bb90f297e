"""
GPU Pool Management Module
"""

from .gpu_pool_manager import GPUPoolManager, GPUSlot

__all__ = [
    'GPUPoolManager',
    'GPUSlot',
]
