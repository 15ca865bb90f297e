"""
External Vision-and-Generation Service
"""

from .client import VisionClient, HttpVisionClient

__all__ = [
    'VisionClient',
    'HttpVisionClient',
]
