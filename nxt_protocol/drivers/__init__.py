"""
Async drivers for integrating a brick into asyncio applications.
"""

from .base import BaseDriver
from .nxt_brick import NxtBrickDriver

__all__ = ["BaseDriver", "NxtBrickDriver"]
