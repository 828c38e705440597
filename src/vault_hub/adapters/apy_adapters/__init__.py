from __future__ import annotations

from .base import BaseApySource
from .static import StaticApySource

__all__ = ["BaseApySource", "StaticApySource"]
